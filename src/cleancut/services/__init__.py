"""Service layer for cleancut.

This module provides the extraction core and its collaborators:
- RuleEngine: Rule-based boilerplate filtering
- ScoringEngine: Heuristic content scoring and pruning
- QualityGateValidator: Per-stage quality gates
- ExtractionPipeline: Graceful-degradation stage orchestration
- OutputQualityValidator: End-to-end output quality scoring
- MarkdownRenderer: HTML to Markdown rendering
- ReadabilityExtractor: readability-lxml article extraction
- ContentClipper: Parse, extract, render and validate in one call
"""

from cleancut.services.clipper import ContentClipper
from cleancut.services.converter import MarkdownRenderer
from cleancut.services.filters import AGGRESSIVE_RULES, SAFE_RULES, RuleEngine, RuleSet
from cleancut.services.pipeline import ExtractionPipeline
from cleancut.services.quality_gates import QualityGateValidator
from cleancut.services.readability_extractor import ReadabilityExtractor
from cleancut.services.scoring import ScoringEngine
from cleancut.services.validator import OutputQualityValidator

__all__ = [
    "AGGRESSIVE_RULES",
    "SAFE_RULES",
    "ContentClipper",
    "ExtractionPipeline",
    "MarkdownRenderer",
    "OutputQualityValidator",
    "QualityGateValidator",
    "ReadabilityExtractor",
    "RuleEngine",
    "RuleSet",
    "ScoringEngine",
]
