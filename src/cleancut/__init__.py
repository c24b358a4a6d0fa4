"""cleancut: extract the readable article from noisy HTML."""

from cleancut.config import PipelineConfig
from cleancut.models import ClipResult, ExtractionStage, PipelineResult, QualityReport
from cleancut.services import ContentClipper, ExtractionPipeline

__version__ = "0.1.0"

__all__ = [
    "ClipResult",
    "ContentClipper",
    "ExtractionPipeline",
    "ExtractionStage",
    "PipelineConfig",
    "PipelineResult",
    "QualityReport",
    "__version__",
]
