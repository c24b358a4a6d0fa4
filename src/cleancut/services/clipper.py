"""Clip service: HTML in, Markdown plus quality reports out.

Ties the pipeline to its collaborators: parse, extract, render, post-process,
validate. Each call parses its own tree, so one ContentClipper can serve
independent requests concurrently (``aclip`` runs the synchronous core in a
worker thread).
"""

import asyncio
import logging

from bs4 import BeautifulSoup, Tag

from cleancut.config import PipelineConfig, PostProcessOptions, ValidationOptions
from cleancut.exceptions import ValidationError
from cleancut.models import ClipResult, ProcessingStats
from cleancut.services.converter import MarkdownRenderer
from cleancut.services.pipeline import ExtractionPipeline
from cleancut.services.postprocess import post_process_markdown
from cleancut.services.validator import OutputQualityValidator
from cleancut.utils import parse_html

LOGGER = logging.getLogger(__name__)


class ContentClipper:
    """Extract, render and validate the article of a page.

    Usage:
        clipper = ContentClipper()
        result = clipper.clip(html, url="https://example.com/post")
        print(result.markdown)
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        *,
        pipeline: ExtractionPipeline | None = None,
        renderer: MarkdownRenderer | None = None,
        validator: OutputQualityValidator | None = None,
        post_process_options: PostProcessOptions | None = None,
    ) -> None:
        self.config = config or (pipeline.config if pipeline else PipelineConfig())
        self.pipeline = pipeline or ExtractionPipeline(self.config)
        self.renderer = renderer or MarkdownRenderer()
        self.validator = validator or OutputQualityValidator()
        self.post_process_options = post_process_options or PostProcessOptions()

    def clip(self, html: str | BeautifulSoup, url: str = "", title: str = "") -> ClipResult:
        """
        Clip a page.

        Args:
            html: Raw HTML or an already-parsed document.
            url: Page URL, used for site extractors and link resolution.
            title: Page title, if the caller knows it.

        Returns:
            ClipResult with the pipeline result, Markdown and quality report.

        Raises:
            ValidationError: If ``html`` is neither a string nor a parsed tree.
        """
        if isinstance(html, str):
            soup = parse_html(html)
        elif isinstance(html, Tag):
            soup = html
        else:
            raise ValidationError("Expected an HTML string or a parsed document", field="html", value=type(html).__name__)
        result = self.pipeline.execute(soup, url=url, title=title)

        rendered = self.renderer.render(result.content, base_url=url or None)
        processed = post_process_markdown(rendered, self.post_process_options)

        stats = ProcessingStats(
            fallbacks_used=result.fallbacks_used,
            total_time_ms=float(result.extraction_time_ms),
            errors=[result.error] if result.error else [],
        )
        options = ValidationOptions(strict_mode=self.config.strict_quality_mode)
        quality = self.validator.validate(processed.markdown, soup, stats, options)

        LOGGER.info(
            f"Clipped {url or 'document'}: stage={result.stage.value} "
            f"gate={result.quality_score:.0f} output={quality.overall_score:.1f}"
        )
        return ClipResult(pipeline=result, markdown=processed.markdown, quality=quality)

    async def aclip(self, html: str | BeautifulSoup, url: str = "", title: str = "") -> ClipResult:
        """Async variant of :meth:`clip`, run in a worker thread."""
        return await asyncio.to_thread(self.clip, html, url, title)
