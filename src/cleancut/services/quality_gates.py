"""Per-stage quality gates.

Each extraction stage's output is scored 0-100 from shared content signals
and compared against a stage-specific threshold:

- site-specific and semantic: 60 (cheap stages; a false accept wastes the
  chance to try a better one)
- external-extractor: 40
- heuristic: pinned to 0, so any output is accepted

An absent candidate is an expected outcome and yields a zero-score failure,
never an exception.
"""

import logging
from dataclasses import dataclass

from bs4 import Tag

from cleancut.exceptions import ConfigurationError
from cleancut.models import ExtractionStage, QualityGateResult
from cleancut.utils import inner_html, link_density, text_length, visible_text

LOGGER = logging.getLogger(__name__)

DEFAULT_THRESHOLDS: dict[ExtractionStage, float] = {
    ExtractionStage.SITE_SPECIFIC: 60,
    ExtractionStage.SEMANTIC: 60,
    ExtractionStage.EXTERNAL_EXTRACTOR: 40,
    ExtractionStage.HEURISTIC: 0,
}

HEADING_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6"]
SEMANTIC_SELECTOR = "article, main, section, [role='main'], [role='article']"
SEMANTIC_TAGS = frozenset({"article", "main", "section"})
BLOCK_STRUCTURE_TAGS = ["p", "ul", "ol", "pre", "blockquote", "table", "br"] + HEADING_TAGS

BLOB_MIN_CHARS = 3000
BLOB_PENALTY = 20
CONTENT_LOSS_RATIO = 0.05
CONTENT_LOSS_PENALTY = 25


@dataclass
class GateContext:
    """What a gate knows about the document a stage worked on.

    Attributes:
        original_length: Visible text length of the full document body
        url: Source URL, for log messages
    """

    original_length: int = 0
    url: str = ""


class QualityGateValidator:
    """Scores stage output and decides whether the pipeline can stop.

    Usage:
        gates = QualityGateValidator()
        result = gates.validate(ExtractionStage.SEMANTIC, article)
        print(gates.generate_report(result))
    """

    def __init__(self, thresholds: dict[ExtractionStage, float] | None = None) -> None:
        """
        Initialise the validator.

        Args:
            thresholds: Per-stage overrides of ``DEFAULT_THRESHOLDS``.

        Raises:
            ConfigurationError: If the heuristic threshold is overridden with a non-zero value.
        """
        self.thresholds = {**DEFAULT_THRESHOLDS, **(thresholds or {})}
        if self.thresholds[ExtractionStage.HEURISTIC] != 0:
            raise ConfigurationError(
                "The heuristic stage is the last resort and its threshold must stay 0",
                setting="thresholds",
                context={"stage": ExtractionStage.HEURISTIC.value},
            )

    def threshold(self, stage: ExtractionStage | str) -> float:
        return self.thresholds[ExtractionStage(stage)]

    def compute_signals(self, node: Tag) -> dict[str, float]:
        """
        Measure the content signals of a stage's output.

        Args:
            node: Output subtree.

        Returns:
            Signal name to value.
        """
        characters = text_length(node)
        paragraphs = node.find_all("p")
        paragraph_lengths = [text_length(p) for p in paragraphs]
        headings = len(node.find_all(HEADING_TAGS))
        html_length = len(inner_html(node))

        semantic = len(node.select(SEMANTIC_SELECTOR))
        if node.name in SEMANTIC_TAGS or (node.get("role") or "") in ("main", "article"):
            semantic += 1

        return {
            "character_count": float(characters),
            "paragraph_count": float(len(paragraphs)),
            "link_density": link_density(node),
            "avg_paragraph_length": sum(paragraph_lengths) / len(paragraphs) if paragraphs else 0.0,
            "heading_count": float(headings),
            "signal_to_noise": characters / html_length if html_length else 0.0,
            "structure_score": float(min(100, semantic * 20 + headings * 5)),
        }

    def _base_score(self, signals: dict[str, float]) -> float:
        chars = signals["character_count"]
        paragraphs = signals["paragraph_count"]
        density = signals["link_density"]
        snr = signals["signal_to_noise"]

        score = 0.0
        if chars >= 5000:
            score += 30
        elif chars >= 1000:
            score += 25
        elif chars >= 300:
            score += 15

        if paragraphs >= 5:
            score += 20
        elif paragraphs >= 3:
            score += 15
        elif paragraphs >= 1:
            score += 10

        if density < 0.1:
            score += 20
        elif density < 0.2:
            score += 15
        elif density < 0.4:
            score += 10
        elif density < 0.6:
            score += 5

        if snr > 0.5:
            score += 15
        elif snr > 0.3:
            score += 10
        elif snr > 0.1:
            score += 5

        score += min(15, signals["structure_score"] / 10)
        return score

    def _failure_reasons(self, stage: ExtractionStage, signals: dict[str, float]) -> list[str]:
        chars = signals["character_count"]
        density = signals["link_density"]
        reasons: list[str] = []
        if stage in (ExtractionStage.SITE_SPECIFIC, ExtractionStage.SEMANTIC):
            if chars < 500:
                reasons.append(f"Insufficient content: {int(chars)} chars (min 500)")
            if signals["paragraph_count"] < 2:
                reasons.append(f"Too few paragraphs: {int(signals['paragraph_count'])} (min 2)")
            if density > 0.4:
                reasons.append(f"High link density: {density * 100:.1f}% (max 40%)")
            if signals["structure_score"] < 30:
                reasons.append(f"Poor structure: {signals['structure_score']:.0f} (min 30)")
        elif stage is ExtractionStage.EXTERNAL_EXTRACTOR:
            if chars < 300:
                reasons.append(f"Insufficient content: {int(chars)} chars (min 300)")
            if density > 0.5:
                reasons.append(f"High link density: {density * 100:.1f}% (max 50%)")
        return reasons

    def validate(
        self,
        stage: ExtractionStage | str,
        output: Tag | None,
        context: GateContext | None = None,
    ) -> QualityGateResult:
        """
        Score a stage's output against the stage's threshold.

        Args:
            stage: Stage that produced the output.
            output: Output subtree, or None when the stage found nothing.
            context: Optional document context (original body length).

        Returns:
            QualityGateResult. ``passed`` implies ``score >= threshold``.
        """
        stage = ExtractionStage(stage)
        context = context or GateContext()
        threshold = self.threshold(stage)

        if output is None:
            return QualityGateResult(
                stage_name=stage.value,
                passed=False,
                score=0,
                signals={},
                reasons=["No candidate content found"],
            )

        signals = self.compute_signals(output)
        pathologies: list[str] = []

        if not visible_text(output):
            score = 0.0
            pathologies.append("Output is empty or whitespace-only")
        else:
            score = self._base_score(signals)
            has_structure = output.find(BLOCK_STRUCTURE_TAGS) is not None
            if signals["character_count"] > BLOB_MIN_CHARS and not has_structure:
                score -= BLOB_PENALTY
                pathologies.append("Single unbroken text blob with no block structure")

            if stage is ExtractionStage.EXTERNAL_EXTRACTOR and context.original_length > 0:
                retained = signals["character_count"] / context.original_length
                signals["retained_ratio"] = retained
                if retained < CONTENT_LOSS_RATIO:
                    score -= CONTENT_LOSS_PENALTY
                    pathologies.append(f"Near-total content loss: kept {retained * 100:.1f}% of the original text")

        score = float(round(max(0.0, min(100.0, score))))

        passed = score >= threshold

        reasons: list[str] = []
        if not passed:
            reasons = pathologies + self._failure_reasons(stage, signals)
            reasons.append(f"Score {score:.0f} below threshold {threshold:.0f}")

        LOGGER.debug(f"{stage.value} gate: score={score:.0f} threshold={threshold:.0f} passed={passed}")
        return QualityGateResult(
            stage_name=stage.value,
            passed=passed,
            score=score,
            signals=signals,
            reasons=reasons,
        )

    def generate_report(self, result: QualityGateResult) -> str:
        """
        Render a gate result as a human-readable report.

        Args:
            result: Gate result to describe.

        Returns:
            Multi-line report text.
        """
        signals = result.signals
        lines = [
            "Quality Gate Report",
            f"Stage: {result.stage_name}",
            f"Status: {'✓ PASSED' if result.passed else '✗ FAILED'}",
            f"Score: {result.score:.0f}/100",
        ]
        if signals:
            lines.extend(
                [
                    "",
                    "Metrics:",
                    f"  - Characters: {signals['character_count']:.0f}",
                    f"  - Paragraphs: {signals['paragraph_count']:.0f}",
                    f"  - Link Density: {signals['link_density'] * 100:.1f}%",
                    f"  - Avg Paragraph Length: {signals['avg_paragraph_length']:.0f}",
                    f"  - Headings: {signals['heading_count']:.0f}",
                    f"  - Signal-to-Noise: {signals['signal_to_noise'] * 100:.1f}%",
                    f"  - Structure Score: {signals['structure_score']:.1f}",
                ]
            )
        if result.reasons:
            lines.append("")
            lines.append("Failure Reasons:")
            lines.extend(f"  - {reason}" for reason in result.reasons)
        return "\n".join(lines)
