"""Data models for cleancut."""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from bs4 import Tag
from pydantic import BaseModel, ConfigDict, Field

# =============================================================================
# Rule Engine
# =============================================================================


class FilterAction(str, Enum):
    """What to do with an element matched by a filter rule."""

    REMOVE = "remove"
    UNWRAP = "unwrap"


class FilterRule(BaseModel):
    """A declarative boilerplate rule.

    Usage:
        FilterRule(description="Cookie banner", selector="#cookie-banner", action=FilterAction.REMOVE)
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    description: str
    selector: str = Field(min_length=1)
    action: FilterAction = FilterAction.REMOVE


class FilterError(BaseModel):
    """A rule that could not be applied. Collected, never raised."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    description: str
    selector: str
    message: str


class TechnicalSignals(BaseModel):
    """Technical-content signals used by the bypass heuristic."""

    model_config = ConfigDict(extra="forbid")

    code_blocks: int = 0
    code_text_ratio: float = 0.0
    has_highlight_markers: bool = False
    api_headings: int = 0
    prose_paragraphs: int = 0
    score: float = 0.0
    bypass: bool = False


# =============================================================================
# Scoring Engine
# =============================================================================


@dataclass(frozen=True)
class Candidate:
    """A scored element considered as the article container."""

    node: Tag
    score: float


@dataclass(frozen=True)
class CandidateSearch:
    """Outcome of a best-candidate search.

    Attributes:
        candidate: Best candidate above the score floor, or None
        all_candidates: Every scored candidate in document order
    """

    candidate: Candidate | None
    all_candidates: list[Candidate]


# =============================================================================
# Quality gates and pipeline
# =============================================================================


class ExtractionStage(str, Enum):
    """Pipeline stages in canonical order."""

    SITE_SPECIFIC = "site-specific"
    SEMANTIC = "semantic"
    EXTERNAL_EXTRACTOR = "external-extractor"
    HEURISTIC = "heuristic"


class QualityGateResult(BaseModel):
    """Verdict of a per-stage quality gate."""

    model_config = ConfigDict(extra="forbid")

    stage_name: str
    passed: bool
    score: float = Field(ge=0, le=100)
    signals: dict[str, float] = Field(default_factory=dict)
    reasons: list[str] = Field(default_factory=list)


@dataclass
class ExtractedArticle:
    """Result handed back by an external article-extraction component."""

    content: Tag
    title: str | None = None
    byline: str | None = None
    excerpt: str | None = None


class SourceMetadata(BaseModel):
    """Where the extracted content came from."""

    model_config = ConfigDict(extra="forbid")

    url: str = ""
    title: str = ""
    captured_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class PipelineResult(BaseModel):
    """Outcome of one extraction run. Always populated, even on total failure."""

    model_config = ConfigDict(extra="forbid")

    content: str = Field(description="Extracted HTML fragment")
    stage: ExtractionStage
    quality_score: float = Field(ge=0, le=100)
    quality_report: str = ""
    fallbacks_used: list[str] = Field(default_factory=list)
    extraction_time_ms: int = Field(default=0, ge=0)
    source_metadata: SourceMetadata = Field(default_factory=SourceMetadata)
    error: str | None = None


# =============================================================================
# Output quality validation
# =============================================================================


class IssueKind(str, Enum):
    """How serious a quality issue is."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class IssueCategory(str, Enum):
    """Which aspect of the output a quality issue concerns."""

    CONTENT = "content"
    STRUCTURE = "structure"
    FORMATTING = "formatting"
    METADATA = "metadata"


class QualityIssue(BaseModel):
    """A single finding of the output quality validator."""

    model_config = ConfigDict(extra="forbid")

    severity: int = Field(ge=1, le=10)
    kind: IssueKind
    category: IssueCategory
    message: str
    suggestion: str | None = None


class QualityMetrics(BaseModel):
    """The five output quality metrics, each in [0, 100]."""

    model_config = ConfigDict(extra="forbid")

    content_preservation: float = Field(ge=0, le=100)
    structure_integrity: float = Field(ge=0, le=100)
    output_format_quality: float = Field(ge=0, le=100)
    readability: float = Field(ge=0, le=100)
    completeness: float = Field(ge=0, le=100)


class QualityReport(BaseModel):
    """End-to-end quality assessment of a rendered extraction."""

    model_config = ConfigDict(extra="forbid")

    overall_score: float = Field(ge=0, le=100)
    metrics: QualityMetrics
    issues: list[QualityIssue] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    passes_threshold: bool


class ProcessingStats(BaseModel):
    """What happened while producing the output being validated."""

    model_config = ConfigDict(extra="forbid")

    fallbacks_used: list[str] = Field(default_factory=list)
    total_time_ms: float = Field(default=0.0, ge=0)
    errors: list[str] = Field(default_factory=list)


class ClipResult(BaseModel):
    """Everything the result sink receives for one clip."""

    model_config = ConfigDict(extra="forbid")

    pipeline: PipelineResult
    markdown: str
    quality: QualityReport
