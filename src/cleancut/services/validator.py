"""End-to-end output quality validation.

Once the chosen stage's content has been rendered to Markdown, this module
scores the whole transformation on five independent metrics (0-100 each):

- content_preservation (25%): how much text survived, relative to the page
- structure_integrity (20%): headings, lists and code blocks carried over
- output_format_quality (20%): leftover HTML, blank-line runs, broken links,
  heading level skips
- readability (15%): sentence and paragraph shape
- completeness (20%): fallbacks, errors and suspiciously fast processing

The overall score is the weighted sum of the five metrics.
"""

import logging
import re

from bs4 import BeautifulSoup, Tag

from cleancut.config import ValidationOptions
from cleancut.models import (
    IssueCategory,
    IssueKind,
    ProcessingStats,
    QualityIssue,
    QualityMetrics,
    QualityReport,
)
from cleancut.utils import document_body, parse_html, text_length

LOGGER = logging.getLogger(__name__)

METRIC_WEIGHTS: dict[str, float] = {
    "content_preservation": 0.25,
    "structure_integrity": 0.20,
    "output_format_quality": 0.20,
    "readability": 0.15,
    "completeness": 0.20,
}

# Rendered Markdown shorter than this caps the content score at 20.
# Kept at 200 when the speed bar (ValidationOptions.fast_processing_ms) moved from 100ms to 1ms.
SHORT_OUTPUT_CHARS = 200
STRICT_METRIC_FLOOR = 70
HIGH_SEVERITY = 7

FENCED_BLOCK_RE = re.compile(r"^\s*```.*?^\s*```", re.MULTILINE | re.DOTALL)
MD_HEADING_RE = re.compile(r"^(#{1,6})\s", re.MULTILINE)
MD_LIST_ITEM_RE = re.compile(r"^\s*(?:[-*+]|\d+\.)\s", re.MULTILINE)
HTML_TAG_RE = re.compile(r"<[a-zA-Z/!][^>]*>")
EMPTY_LINK_RE = re.compile(r"(?<!!)\[([^\]]*)\]\(\s*\)")
SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")

GRADES: list[tuple[float, str, str]] = [
    (90, "A", "Excellent quality"),
    (80, "B", "Good quality"),
    (70, "C", "Acceptable quality"),
    (60, "D", "Poor quality"),
]


def _prose(markdown: str) -> str:
    """Markdown with fenced code blocks removed."""
    return FENCED_BLOCK_RE.sub("", markdown)


def quality_grade(score: float) -> tuple[str, str]:
    """
    Map an overall score to a letter grade.

    Args:
        score: Overall quality score.

    Returns:
        (grade, description), e.g. ("B", "Good quality").
    """
    for floor, grade, description in GRADES:
        if score >= floor:
            return grade, description
    return "F", "Failed quality check"


def generate_summary_report(report: QualityReport) -> str:
    """
    Render a short human-readable summary of a quality report.

    Args:
        report: Report to summarise.

    Returns:
        Multi-line summary with grade, issue counts and top recommendations.
    """
    grade, description = quality_grade(report.overall_score)
    errors = sum(1 for issue in report.issues if issue.kind is IssueKind.ERROR)
    warnings = sum(1 for issue in report.issues if issue.kind is IssueKind.WARNING)
    lines = [
        f"Quality Report: {grade} ({report.overall_score:.1f}/100)",
        description,
        "",
        f"Issues: {errors} errors, {warnings} warnings",
        "✅ Passes quality threshold" if report.passes_threshold else "❌ Below quality threshold",
    ]
    if report.recommendations:
        lines.append("")
        lines.append("Top Recommendations:")
        lines.extend(f"• {recommendation}" for recommendation in report.recommendations[:3])
    return "\n".join(lines)


class OutputQualityValidator:
    """Scores rendered Markdown against the document it came from.

    Usage:
        validator = OutputQualityValidator()
        report = validator.validate(markdown, soup, ProcessingStats(total_time_ms=42))
    """

    def validate(
        self,
        rendered: str,
        original: BeautifulSoup | Tag | str,
        stats: ProcessingStats | None = None,
        options: ValidationOptions | None = None,
    ) -> QualityReport:
        """
        Score a rendered extraction.

        Args:
            rendered: Final Markdown text.
            original: Source document (parsed, or raw HTML).
            stats: What happened during processing. Completeness checks are
                skipped when absent.
            options: Thresholds; defaults to ValidationOptions().

        Returns:
            QualityReport with issues sorted by descending severity.
        """
        options = options or ValidationOptions()
        if isinstance(original, str):
            original = parse_html(original)
        issues: list[QualityIssue] = []

        metrics = QualityMetrics(
            content_preservation=self._clamp(self._content_preservation(rendered, original, options, issues)),
            structure_integrity=self._clamp(self._structure_integrity(rendered, original, options, issues)),
            output_format_quality=self._clamp(self._output_format_quality(rendered, issues)),
            readability=self._clamp(self._readability(rendered, issues)),
            completeness=self._clamp(self._completeness(stats, options, issues)),
        )

        overall = sum(getattr(metrics, name) * weight for name, weight in METRIC_WEIGHTS.items())
        overall = self._clamp(overall)
        recommendations = self._recommendations(metrics, issues)
        passes = overall >= options.quality_threshold and self._meets_minimum_requirements(metrics, options)

        LOGGER.debug(f"Output quality {overall:.1f}/100 (passes={passes}, issues={len(issues)})")
        return QualityReport(
            overall_score=overall,
            metrics=metrics,
            issues=sorted(issues, key=lambda issue: issue.severity, reverse=True),
            recommendations=recommendations,
            passes_threshold=passes,
        )

    @staticmethod
    def _clamp(value: float) -> float:
        return max(0.0, min(100.0, value))

    # -------------------------------------------------------------------------
    # Metrics
    # -------------------------------------------------------------------------

    def _content_preservation(
        self,
        rendered: str,
        original: Tag,
        options: ValidationOptions,
        issues: list[QualityIssue],
    ) -> float:
        rendered_length = len(rendered.strip())
        original_length = text_length(document_body(original))
        reduction = 1 - rendered_length / original_length if original_length else 0.0

        score = 100.0
        if reduction > 0.95:
            score = 10
            issues.append(
                QualityIssue(
                    severity=9,
                    kind=IssueKind.ERROR,
                    category=IssueCategory.CONTENT,
                    message=f"Excessive content reduction ({reduction * 100:.1f}%)",
                    suggestion="Content extraction may have failed - check extraction selectors",
                )
            )
        elif reduction > options.max_content_reduction:
            score = 30
            issues.append(
                QualityIssue(
                    severity=7,
                    kind=IssueKind.WARNING,
                    category=IssueCategory.CONTENT,
                    message=f"High content reduction ({reduction * 100:.1f}%)",
                    suggestion="Verify that main content was preserved",
                )
            )
        elif reduction > 0.8:
            score = 60
            issues.append(
                QualityIssue(
                    severity=5,
                    kind=IssueKind.WARNING,
                    category=IssueCategory.CONTENT,
                    message=f"Significant content reduction ({reduction * 100:.1f}%)",
                )
            )
        elif reduction < 0.1 and original_length >= options.min_content_length:
            score = 70
            issues.append(
                QualityIssue(
                    severity=3,
                    kind=IssueKind.INFO,
                    category=IssueCategory.CONTENT,
                    message="Minimal content reduction - boilerplate may not have been filtered",
                    suggestion="Review boilerplate filtering rules",
                )
            )

        if rendered_length < SHORT_OUTPUT_CHARS:
            score = min(score, 20)
            issues.append(
                QualityIssue(
                    severity=8,
                    kind=IssueKind.ERROR,
                    category=IssueCategory.CONTENT,
                    message=f"Output too short ({rendered_length} chars)",
                    suggestion="Check if content extraction is working correctly",
                )
            )
        return score

    def _structure_integrity(
        self,
        rendered: str,
        original: Tag,
        options: ValidationOptions,
        issues: list[QualityIssue],
    ) -> float:
        body = document_body(original)
        prose = _prose(rendered)

        original_headings = len(body.find_all(["h1", "h2", "h3", "h4", "h5", "h6"]))
        original_lists = len(body.find_all(["ul", "ol"]))
        original_code = len(body.find_all("pre"))
        rendered_headings = len(MD_HEADING_RE.findall(prose))
        rendered_list_items = len(MD_LIST_ITEM_RE.findall(prose))
        rendered_code = len(FENCED_BLOCK_RE.findall(rendered))

        score = 100.0
        if original_headings:
            ratio = rendered_headings / original_headings
            if ratio < 0.3:
                score -= 30
                issues.append(
                    QualityIssue(
                        severity=8,
                        kind=IssueKind.ERROR,
                        category=IssueCategory.STRUCTURE,
                        message="Poor heading preservation (<30%)",
                        suggestion="Check heading extraction rules",
                    )
                )
            elif ratio < 0.6:
                score -= 15
                issues.append(
                    QualityIssue(
                        severity=5,
                        kind=IssueKind.WARNING,
                        category=IssueCategory.STRUCTURE,
                        message="Moderate heading loss",
                    )
                )

        if original_lists and rendered_list_items / original_lists < options.min_structure_preservation:
            score -= 20
            issues.append(
                QualityIssue(
                    severity=6,
                    kind=IssueKind.WARNING,
                    category=IssueCategory.STRUCTURE,
                    message="Poor list preservation",
                )
            )

        if original_code and rendered_code / original_code < 0.7:
            score -= 25
            issues.append(
                QualityIssue(
                    severity=7,
                    kind=IssueKind.ERROR,
                    category=IssueCategory.STRUCTURE,
                    message="Poor code block preservation",
                    suggestion="Verify code block extraction and conversion rules",
                )
            )
        return score

    def _output_format_quality(self, rendered: str, issues: list[QualityIssue]) -> float:
        prose = _prose(rendered)
        score = 100.0

        tags = HTML_TAG_RE.findall(prose)
        if tags:
            score -= min(40, len(tags) * 2)
            issues.append(
                QualityIssue(
                    severity=6,
                    kind=IssueKind.WARNING,
                    category=IssueCategory.FORMATTING,
                    message=f"HTML tags found in Markdown output ({len(tags)})",
                    suggestion="Improve HTML to Markdown conversion rules",
                )
            )

        if re.search(r"\n{4,}", rendered):
            score -= 10
            issues.append(
                QualityIssue(
                    severity=3,
                    kind=IssueKind.INFO,
                    category=IssueCategory.FORMATTING,
                    message="Excessive whitespace detected",
                    suggestion="Enable post-processing whitespace cleanup",
                )
            )

        if EMPTY_LINK_RE.search(prose):
            score -= 15
            issues.append(
                QualityIssue(
                    severity=5,
                    kind=IssueKind.WARNING,
                    category=IssueCategory.FORMATTING,
                    message="Malformed links detected",
                    suggestion="Improve link processing and validation",
                )
            )

        levels = [len(match) for match in MD_HEADING_RE.findall(prose)]
        skips = sum(1 for previous, current in zip(levels, levels[1:]) if current > previous + 1)
        if skips:
            score -= skips * 5
            issues.append(
                QualityIssue(
                    severity=4,
                    kind=IssueKind.INFO,
                    category=IssueCategory.STRUCTURE,
                    message=f"Heading hierarchy skips detected ({skips})",
                    suggestion="Enable heading normalization in post-processing",
                )
            )
        return score

    def _readability(self, rendered: str, issues: list[QualityIssue]) -> float:
        sentences = [s for s in SENTENCE_SPLIT_RE.split(rendered) if s.strip()]
        words = rendered.split()
        paragraphs = [p for p in re.split(r"\n\s*\n", rendered) if p.strip()]

        if not sentences or not words:
            issues.append(
                QualityIssue(
                    severity=10,
                    kind=IssueKind.ERROR,
                    category=IssueCategory.CONTENT,
                    message="No readable content found",
                )
            )
            return 0.0

        score = 100.0
        if len(words) / len(sentences) > 30:
            score -= 15
            issues.append(
                QualityIssue(
                    severity=3,
                    kind=IssueKind.INFO,
                    category=IssueCategory.CONTENT,
                    message="Long average sentence length may affect readability",
                )
            )

        if len(paragraphs) < 2 and len(words) > 100:
            score -= 20
            issues.append(
                QualityIssue(
                    severity=5,
                    kind=IssueKind.WARNING,
                    category=IssueCategory.STRUCTURE,
                    message="Poor paragraph structure",
                    suggestion="Content may need better paragraph breaks",
                )
            )

        if len(words) < 50:
            score -= 30
            issues.append(
                QualityIssue(
                    severity=6,
                    kind=IssueKind.WARNING,
                    category=IssueCategory.CONTENT,
                    message="Very short content may not be meaningful",
                )
            )
        return score

    def _completeness(
        self,
        stats: ProcessingStats | None,
        options: ValidationOptions,
        issues: list[QualityIssue],
    ) -> float:
        if stats is None:
            return 100.0

        score = 100.0
        if stats.fallbacks_used:
            score -= 15 * len(stats.fallbacks_used)
            issues.append(
                QualityIssue(
                    severity=6,
                    kind=IssueKind.WARNING,
                    category=IssueCategory.CONTENT,
                    message=f"Processing used {len(stats.fallbacks_used)} fallback(s)",
                    suggestion="Primary extraction stages failed, check configuration",
                )
            )

        if stats.total_time_ms < options.fast_processing_ms:
            score -= 10
            issues.append(
                QualityIssue(
                    severity=3,
                    kind=IssueKind.INFO,
                    category=IssueCategory.METADATA,
                    message="Very fast processing time may indicate incomplete processing",
                )
            )

        if stats.errors:
            score -= 40
            issues.append(
                QualityIssue(
                    severity=8,
                    kind=IssueKind.ERROR,
                    category=IssueCategory.CONTENT,
                    message=f"Processing errors occurred ({len(stats.errors)})",
                )
            )
        return score

    # -------------------------------------------------------------------------
    # Verdict
    # -------------------------------------------------------------------------

    def _recommendations(self, metrics: QualityMetrics, issues: list[QualityIssue]) -> list[str]:
        recommendations: list[str] = []
        if metrics.content_preservation < 60:
            recommendations.append("Review content extraction selectors and rules")
            recommendations.append("Consider adjusting external extractor thresholds")
        if metrics.structure_integrity < 70:
            recommendations.append("Review heading and list conversion rules")
        if metrics.output_format_quality < 80:
            recommendations.append("Enable post-processing to clean up Markdown formatting")
        if metrics.readability < 70:
            recommendations.append("Consider content preprocessing to improve structure")
        if metrics.completeness < 80:
            recommendations.append("Review processing pipeline for potential failures")
        if any(issue.severity >= HIGH_SEVERITY for issue in issues):
            recommendations.append("Address high-severity issues to improve overall quality")
        return list(dict.fromkeys(recommendations))

    def _meets_minimum_requirements(self, metrics: QualityMetrics, options: ValidationOptions) -> bool:
        if options.strict_mode:
            return all(value >= STRICT_METRIC_FLOOR for value in metrics.model_dump().values())
        return metrics.content_preservation >= 50 and metrics.structure_integrity >= 40
