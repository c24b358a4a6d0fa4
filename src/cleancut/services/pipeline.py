"""Graceful-degradation extraction pipeline.

Stages run strictly in order and the first accepted output wins:

1. site-specific: only when an extractor is registered for the page host
2. (pre-clean) safe rules, hidden elements, aggressive rules on technical pages
3. semantic: first of article / main / [role=main] / [role=article]
4. external-extractor: readability-lxml on a clone; skipped on technical pages
5. heuristic: scoring engine best candidate, pruned; always accepted

A stage is accepted when its quality gate passes and its score clears the
configured floor. Every rejected stage leaves a "<stage>-gate-failed" marker.

The time budget is checked before pre-clean and at each stage boundary. A
timeout or any unexpected exception ends the run with the raw body as content
and a score of 0; ``execute`` itself never raises.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from bs4 import BeautifulSoup, Tag

from cleancut.config import PipelineConfig
from cleancut.exceptions import ExtractionTimeoutError, generate_correlation_id
from cleancut.models import ExtractionStage, PipelineResult, QualityGateResult, SourceMetadata
from cleancut.services.filters import RuleEngine
from cleancut.services.quality_gates import GateContext, QualityGateValidator
from cleancut.services.readability_extractor import ArticleExtractor, ReadabilityExtractor
from cleancut.services.scoring import ScoringEngine
from cleancut.services.site_extractors import SITE_EXTRACTORS, SiteExtractor, find_site_extractor
from cleancut.utils import clone, document_body, document_title, inner_html, log_with_correlation, text_length

LOGGER = logging.getLogger(__name__)

SEMANTIC_SELECTORS = ["article", "main", "[role='main']", "[role='article']"]

TIMEOUT_MARKER = "timeout"
ERROR_MARKER = "pipeline-error"
NO_STAGE_MARKER = "no-eligible-stage"

# Tags serialised without their own wrapper
_DOCUMENT_TAGS = frozenset({"[document]", "html", "body"})


def gate_failed_marker(stage: ExtractionStage) -> str:
    """Fallback marker recorded when ``stage`` is rejected."""
    return f"{stage.value}-gate-failed"


@dataclass
class _Attempt:
    stage: ExtractionStage
    node: Tag | None
    gate: QualityGateResult
    title: str | None = None


@dataclass
class _RunState:
    """Mutable per-request bookkeeping, shared with the failure handlers."""

    correlation_id: str
    started: float
    url: str
    title: str
    raw_body: str = ""
    fallbacks: list[str] = field(default_factory=list)
    last: _Attempt | None = None


class ExtractionPipeline:
    """Runs the extraction stages over one document per call.

    The pipeline holds only read-only collaborators, so one instance may
    serve concurrent requests; each call works on its own clone.

    Usage:
        pipeline = ExtractionPipeline(PipelineConfig(timeout_ms=2000))
        result = pipeline.execute(soup, url="https://example.com/post")
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        *,
        rule_engine: RuleEngine | None = None,
        scoring_engine: ScoringEngine | None = None,
        gates: QualityGateValidator | None = None,
        extractor: ArticleExtractor | None = None,
        site_extractors: list[SiteExtractor] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialise the pipeline.

        Args:
            config: Stage toggles, quality floor and time budget.
            rule_engine: Boilerplate filter (defaults to the built-in rule sets).
            scoring_engine: Heuristic candidate scorer.
            gates: Per-stage quality gates.
            extractor: External article extractor (defaults to readability-lxml).
            site_extractors: Site-specific extractor registry.
            clock: Monotonic clock in seconds, injectable for tests.
        """
        self.config = config or PipelineConfig()
        self.rule_engine = rule_engine or RuleEngine()
        self.scoring_engine = scoring_engine or ScoringEngine()
        self.gates = gates or QualityGateValidator()
        self.extractor = extractor if extractor is not None else ReadabilityExtractor()
        self.site_extractors = site_extractors if site_extractors is not None else SITE_EXTRACTORS
        self.clock = clock

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def execute(self, document: BeautifulSoup | Tag, url: str = "", title: str = "") -> PipelineResult:
        """
        Extract the main content of a document.

        Args:
            document: Parsed document. Not modified.
            url: Page URL, used for site-specific extractors and presets.
            title: Page title supplied by the caller, if known.

        Returns:
            PipelineResult, populated even when every stage fails.
        """
        state = _RunState(
            correlation_id=generate_correlation_id(),
            started=self.clock(),
            url=url,
            title=title,
        )
        try:
            working = clone(document)
            state.raw_body = inner_html(document_body(working))
            if not state.title:
                state.title = document_title(working)
            return self._run(working, state)
        except ExtractionTimeoutError as e:
            log_with_correlation(
                LOGGER, logging.WARNING, f"Extraction timed out: {e.message}", state.correlation_id, url=url
            )
            return self._degraded(state, TIMEOUT_MARKER, error=e.message)
        except Exception as e:
            log_with_correlation(
                LOGGER, logging.ERROR, f"Extraction pipeline failed: {e}", state.correlation_id, url=url
            )
            return self._degraded(state, ERROR_MARKER, error=str(e))

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    def _run(self, working: Tag, state: _RunState) -> PipelineResult:
        body = document_body(working)
        context = GateContext(original_length=text_length(body), url=state.url)

        site_extractor = find_site_extractor(state.url, self.site_extractors)
        if site_extractor is not None:
            self._check_timeout(state, ExtractionStage.SITE_SPECIFIC)
            node = self._run_site_extractor(site_extractor, working, state)
            attempt = self._gate(ExtractionStage.SITE_SPECIFIC, node, context, state)
            if self._accepted(attempt):
                return self._finish(attempt, state)

        self._check_timeout(state, self._next_stage())
        outcome = self.rule_engine.preclean(body)
        log_with_correlation(
            LOGGER,
            logging.DEBUG,
            f"Pre-clean: bypass={outcome.bypass} hidden={outcome.hidden_removed} "
            f"empty={outcome.empty_removed} rule_errors={len(outcome.errors)}",
            state.correlation_id,
        )

        if self.config.enable_semantic_stage:
            self._check_timeout(state, ExtractionStage.SEMANTIC)
            attempt = self._gate(ExtractionStage.SEMANTIC, self._find_semantic(body), context, state)
            if self._accepted(attempt):
                return self._finish(attempt, state)

        if self.config.enable_external_extractor_stage and not outcome.bypass:
            self._check_timeout(state, ExtractionStage.EXTERNAL_EXTRACTOR)
            node, article_title = self._run_external_extractor(working, state)
            attempt = self._gate(ExtractionStage.EXTERNAL_EXTRACTOR, node, context, state)
            attempt.title = article_title
            if self._accepted(attempt):
                return self._finish(attempt, state)
        elif outcome.bypass:
            log_with_correlation(
                LOGGER, logging.DEBUG, "Technical content, skipping external extractor", state.correlation_id
            )

        if self.config.enable_heuristic_stage:
            self._check_timeout(state, ExtractionStage.HEURISTIC)
            search = self.scoring_engine.find_best_candidate(body)
            if search.candidate is not None:
                node = self.scoring_engine.prune_node(search.candidate.node)
            else:
                node = clone(body)
            attempt = self._gate(ExtractionStage.HEURISTIC, node, context, state)
            return self._finish(attempt, state)

        if state.last is not None:
            # Nothing accepted: the last attempted stage is the result
            state.fallbacks.pop()
            return self._finish(state.last, state)

        return self._degraded(state, NO_STAGE_MARKER, error="No extraction stage was eligible for this document")

    def _run_site_extractor(self, extractor: SiteExtractor, working: Tag, state: _RunState) -> Tag | None:
        try:
            return extractor.extract(working, state.url)
        except Exception as e:
            log_with_correlation(
                LOGGER,
                logging.WARNING,
                f"Site extractor '{extractor.name}' failed: {e}",
                state.correlation_id,
            )
            return None

    def _find_semantic(self, body: Tag) -> Tag | None:
        for selector in SEMANTIC_SELECTORS:
            element = body.select_one(selector)
            if element is not None:
                LOGGER.debug(f"Semantic stage matched selector: {selector}")
                return element
        return None

    def _run_external_extractor(self, working: Tag, state: _RunState) -> tuple[Tag | None, str | None]:
        try:
            article = self.extractor.extract(clone(working), state.url)
        except Exception as e:
            log_with_correlation(
                LOGGER,
                logging.WARNING,
                f"External extractor '{getattr(self.extractor, 'name', 'unknown')}' failed: {e}",
                state.correlation_id,
            )
            return None, None
        if article is None:
            return None, None
        return article.content, article.title

    # -------------------------------------------------------------------------
    # Bookkeeping
    # -------------------------------------------------------------------------

    def _next_stage(self) -> ExtractionStage:
        if self.config.enable_semantic_stage:
            return ExtractionStage.SEMANTIC
        if self.config.enable_external_extractor_stage:
            return ExtractionStage.EXTERNAL_EXTRACTOR
        return ExtractionStage.HEURISTIC

    def _check_timeout(self, state: _RunState, stage: ExtractionStage) -> None:
        elapsed_ms = (self.clock() - state.started) * 1000
        if elapsed_ms > self.config.timeout_ms:
            raise ExtractionTimeoutError(
                f"Time budget of {self.config.timeout_ms}ms exhausted before {stage.value} stage",
                stage=stage.value,
                elapsed_ms=elapsed_ms,
                correlation_id=state.correlation_id,
            )

    def _gate(
        self,
        stage: ExtractionStage,
        node: Tag | None,
        context: GateContext,
        state: _RunState,
    ) -> _Attempt:
        gate = self.gates.validate(stage, node, context)
        attempt = _Attempt(stage=stage, node=node, gate=gate)
        level = logging.INFO if self.config.debug else logging.DEBUG
        log_with_correlation(
            LOGGER,
            level,
            f"{stage.value} stage scored {gate.score:.0f} (passed={gate.passed})",
            state.correlation_id,
        )
        if self.config.debug:
            log_with_correlation(LOGGER, logging.INFO, self.gates.generate_report(gate), state.correlation_id)
        if stage is not ExtractionStage.HEURISTIC and not self._accepted(attempt):
            state.fallbacks.append(gate_failed_marker(stage))
            state.last = attempt
        return attempt

    def _accepted(self, attempt: _Attempt) -> bool:
        if attempt.stage is ExtractionStage.HEURISTIC:
            return True
        return attempt.gate.passed and attempt.gate.score >= self.config.min_quality_score

    def _elapsed_ms(self, state: _RunState) -> int:
        return max(0, int((self.clock() - state.started) * 1000))

    def _metadata(self, state: _RunState, title: str | None = None) -> SourceMetadata:
        return SourceMetadata(url=state.url, title=state.title or title or "")

    def _finish(self, attempt: _Attempt, state: _RunState) -> PipelineResult:
        content = ""
        if attempt.node is not None:
            content = inner_html(attempt.node) if attempt.node.name in _DOCUMENT_TAGS else str(attempt.node)
        result = PipelineResult(
            content=content,
            stage=attempt.stage,
            quality_score=attempt.gate.score,
            quality_report=self.gates.generate_report(attempt.gate),
            fallbacks_used=list(state.fallbacks),
            extraction_time_ms=self._elapsed_ms(state),
            source_metadata=self._metadata(state, attempt.title),
        )
        log_with_correlation(
            LOGGER,
            logging.INFO,
            f"Extracted content via {attempt.stage.value} stage (score={attempt.gate.score:.0f}, "
            f"fallbacks={len(state.fallbacks)}, {result.extraction_time_ms}ms)",
            state.correlation_id,
            url=state.url,
        )
        return result

    def _degraded(self, state: _RunState, marker: str, error: str) -> PipelineResult:
        return PipelineResult(
            content=state.raw_body,
            stage=ExtractionStage.HEURISTIC,
            quality_score=0,
            quality_report="",
            fallbacks_used=[*state.fallbacks, marker],
            extraction_time_ms=self._elapsed_ms(state),
            source_metadata=self._metadata(state),
            error=error,
        )
