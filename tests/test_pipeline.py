"""Tests for the graceful-degradation extraction pipeline."""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime

import pytest
from bs4 import BeautifulSoup

from cleancut.config import PipelineConfig
from cleancut.models import ExtractedArticle, ExtractionStage
from cleancut.services.filters import RuleEngine
from cleancut.services.pipeline import (
    ERROR_MARKER,
    NO_STAGE_MARKER,
    TIMEOUT_MARKER,
    ExtractionPipeline,
    gate_failed_marker,
)
from cleancut.services.site_extractors import SiteExtractor
from cleancut.utils import parse_html

SEMANTIC_FAILED = "semantic-gate-failed"
EXTERNAL_FAILED = "external-extractor-gate-failed"
SITE_FAILED = "site-specific-gate-failed"

SENTENCE = "Lighthouses guided ships along dangerous coasts long before satellite navigation existed. "


class ExplodingRuleEngine(RuleEngine):
    """Rule engine whose pre-clean pass always fails."""

    def preclean(self, root):
        raise RuntimeError("boom")


def _explode(root, url):
    raise ValueError("site markup changed")


class TestStageSelection:
    """Tests for which stage produces the result."""

    def test_semantic_stage_wins_on_article_page(self, article_html, null_extractor):
        """Test that a clean <article> is accepted by the semantic stage."""
        pipeline = ExtractionPipeline(extractor=null_extractor)
        result = pipeline.execute(parse_html(article_html), url="https://example.com/blog/sourdough")

        assert result.stage is ExtractionStage.SEMANTIC
        assert result.fallbacks_used == []
        assert result.quality_score >= 60
        assert result.error is None
        assert "Sourdough starts with" in result.content
        assert result.content.startswith("<article")
        assert "We use cookies" not in result.content
        assert "Hidden tracking text" not in result.content
        assert result.quality_report.startswith("Quality Gate Report")
        assert null_extractor.calls == []

    def test_bare_code_page_skips_external_extractor(self, null_extractor):
        """Test that a code-only page goes straight to the heuristic stage unmodified."""
        html = "<pre><code>def f(): pass</code></pre>"
        result = ExtractionPipeline(extractor=null_extractor).execute(parse_html(html))

        assert null_extractor.calls == []
        assert result.stage is ExtractionStage.HEURISTIC
        assert result.content == html
        assert result.fallbacks_used == [SEMANTIC_FAILED]
        assert result.error is None

    def test_falls_back_to_heuristic(self, no_semantic_html, null_extractor):
        """Test that semantic and external failures are recorded in order."""
        pipeline = ExtractionPipeline(extractor=null_extractor)
        result = pipeline.execute(parse_html(no_semantic_html), url="https://example.com/notes")

        assert result.stage is ExtractionStage.HEURISTIC
        assert result.fallbacks_used == [SEMANTIC_FAILED, EXTERNAL_FAILED]
        assert "Field Notes on Urban Birds" in result.content
        assert "Archive 3" not in result.content
        assert null_extractor.calls == ["https://example.com/notes"]

    def test_technical_page_skips_external_extractor(self, technical_html, null_extractor):
        """Test that code-heavy pages go straight to the heuristic stage."""
        pipeline = ExtractionPipeline(extractor=null_extractor)
        result = pipeline.execute(parse_html(technical_html), url="https://docs.example.com/client")

        assert null_extractor.calls == []
        assert result.stage is ExtractionStage.HEURISTIC
        assert result.fallbacks_used == [SEMANTIC_FAILED]
        assert 'client.get("/users"' in result.content
        assert result.content.count("<pre>") == 2
        assert "Docs home" not in result.content
        assert "headerlink" not in result.content

    def test_external_extractor_accepted(self, no_semantic_html, make_extractor):
        """Test that a good external extraction ends the run."""
        article = BeautifulSoup("<div>" + f"<p>{SENTENCE * 3}</p>" * 5 + "</div>", "html.parser").div
        extractor = make_extractor(ExtractedArticle(content=article, title="Readable title"))
        pipeline = ExtractionPipeline(extractor=extractor)
        result = pipeline.execute(parse_html(no_semantic_html))

        assert result.stage is ExtractionStage.EXTERNAL_EXTRACTOR
        assert result.fallbacks_used == [SEMANTIC_FAILED]
        assert "Lighthouses guided ships" in result.content

    def test_extractor_title_used_when_page_has_none(self, make_extractor):
        """Test that the extractor's title fills in a missing page title."""
        paragraphs = "".join(f"<p>{SENTENCE * 3}</p>" for _ in range(5))
        article = BeautifulSoup(f"<div>{paragraphs}</div>", "html.parser").div
        extractor = make_extractor(ExtractedArticle(content=article, title="Readable title"))
        pipeline = ExtractionPipeline(extractor=extractor)
        result = pipeline.execute(parse_html(f"<body><div>{paragraphs}</div></body>"))

        assert result.stage is ExtractionStage.EXTERNAL_EXTRACTOR
        assert result.source_metadata.title == "Readable title"

    def test_failing_external_extractor_is_a_gate_failure(self, no_semantic_html, failing_extractor):
        """Test that an extractor exception counts as an empty result."""
        pipeline = ExtractionPipeline(extractor=failing_extractor)
        result = pipeline.execute(parse_html(no_semantic_html))

        assert result.stage is ExtractionStage.HEURISTIC
        assert result.fallbacks_used == [SEMANTIC_FAILED, EXTERNAL_FAILED]
        assert result.error is None

    def test_min_quality_floor_rejects_passing_gate(self, article_html, null_extractor):
        """Test that a gate pass below the caller's floor still falls through."""
        pipeline = ExtractionPipeline(PipelineConfig(min_quality_score=95), extractor=null_extractor)
        result = pipeline.execute(parse_html(article_html))

        assert result.stage is ExtractionStage.HEURISTIC
        assert result.fallbacks_used == [SEMANTIC_FAILED, EXTERNAL_FAILED]

    def test_disabled_semantic_stage_is_not_recorded(self, article_html, null_extractor):
        """Test that disabled stages leave no fallback marker."""
        pipeline = ExtractionPipeline(PipelineConfig(enable_semantic_stage=False), extractor=null_extractor)
        result = pipeline.execute(parse_html(article_html))

        assert result.stage is ExtractionStage.HEURISTIC
        assert result.fallbacks_used == [EXTERNAL_FAILED]
        assert "Sourdough starts with" in result.content

    def test_last_attempt_returned_without_heuristic(self, no_semantic_html, null_extractor):
        """Test that with the heuristic disabled the last attempted stage is the result."""
        pipeline = ExtractionPipeline(PipelineConfig(enable_heuristic_stage=False), extractor=null_extractor)
        result = pipeline.execute(parse_html(no_semantic_html))

        assert result.stage is ExtractionStage.EXTERNAL_EXTRACTOR
        assert result.fallbacks_used == [SEMANTIC_FAILED]
        assert result.content == ""
        assert result.quality_score == 0

    def test_no_eligible_stage(self, article_html):
        """Test the typed result when nothing can run."""
        config = PipelineConfig.model_construct(
            enable_semantic_stage=False,
            enable_external_extractor_stage=False,
            enable_heuristic_stage=False,
        )
        result = ExtractionPipeline(config).execute(parse_html(article_html))

        assert result.fallbacks_used == [NO_STAGE_MARKER]
        assert result.quality_score == 0
        assert result.error
        assert "Sourdough starts with" in result.content


class TestSiteSpecificStage:
    """Tests for the site-specific stage."""

    def test_reddit_thread(self, reddit_html, null_extractor):
        """Test that Reddit threads are rebuilt by the site extractor."""
        pipeline = ExtractionPipeline(extractor=null_extractor)
        result = pipeline.execute(
            parse_html(reddit_html),
            url="https://www.reddit.com/r/Breadit/comments/abc123/favourite_bread/",
        )

        assert result.stage is ExtractionStage.SITE_SPECIFIC
        assert result.fallbacks_used == []
        assert "What is your favourite bread to bake at home?" in result.content
        assert "u/loafer" in result.content
        assert "(OP)" in result.content
        assert "2 Comments" in result.content
        assert "Community rules" not in result.content

    def test_github_readme(self, github_html, null_extractor):
        """Test that GitHub READMEs are taken from the rendered markdown body."""
        pipeline = ExtractionPipeline(extractor=null_extractor)
        result = pipeline.execute(parse_html(github_html), url="https://github.com/acme/widget-kit")

        assert result.stage is ExtractionStage.SITE_SPECIFIC
        assert "pip install widget-kit" in result.content
        assert "Pull requests" not in result.content

    def test_site_extractor_miss_falls_through(self, article_html, null_extractor):
        """Test that a registered host without the expected markup continues to later stages."""
        pipeline = ExtractionPipeline(extractor=null_extractor)
        result = pipeline.execute(parse_html(article_html), url="https://www.reddit.com/r/Breadit/")

        assert result.stage is ExtractionStage.SEMANTIC
        assert result.fallbacks_used == [SITE_FAILED]

    def test_site_extractor_exception_falls_through(self, article_html, null_extractor):
        """Test that a crashing site extractor is treated as a miss."""
        registry = [SiteExtractor(name="broken", description="Always fails", hosts=("example.com",), extract=_explode)]
        pipeline = ExtractionPipeline(extractor=null_extractor, site_extractors=registry)
        result = pipeline.execute(parse_html(article_html), url="https://blog.example.com/post")

        assert result.stage is ExtractionStage.SEMANTIC
        assert result.fallbacks_used == [gate_failed_marker(ExtractionStage.SITE_SPECIFIC)]
        assert result.error is None


class TestDegradation:
    """Tests for timeouts and unexpected failures."""

    def test_timeout_returns_raw_body(self, article_html, null_extractor, make_clock):
        """Test that an exhausted time budget returns the body with score 0."""
        pipeline = ExtractionPipeline(extractor=null_extractor, clock=make_clock(10.0))
        result = pipeline.execute(parse_html(article_html))

        assert result.fallbacks_used == [TIMEOUT_MARKER]
        assert result.quality_score == 0
        assert result.stage is ExtractionStage.HEURISTIC
        assert "<nav" in result.content
        assert "Sourdough starts with" in result.content
        assert "Time budget" in result.error
        assert result.extraction_time_ms >= 5000

    def test_timeout_keeps_earlier_markers(self, no_semantic_html, null_extractor, make_clock):
        """Test that stages attempted before the timeout stay recorded."""
        pipeline = ExtractionPipeline(
            PipelineConfig(timeout_ms=5000),
            extractor=null_extractor,
            clock=make_clock(1.5),
        )
        result = pipeline.execute(parse_html(no_semantic_html))

        assert result.fallbacks_used == [SEMANTIC_FAILED, EXTERNAL_FAILED, TIMEOUT_MARKER]

    def test_deeply_nested_page_finishes_within_budget(self, null_extractor):
        """Test that thousands of nested wrappers are extracted without timing out."""
        paragraph = (SENTENCE * 12).strip()
        html = "<html><body>" + "<div>" * 3000 + f"<p>{paragraph}</p>" + "</div>" * 3000 + "</body></html>"
        pipeline = ExtractionPipeline(PipelineConfig(timeout_ms=2000), extractor=null_extractor)
        result = pipeline.execute(parse_html(html))

        assert TIMEOUT_MARKER not in result.fallbacks_used
        assert result.error is None
        assert result.stage is ExtractionStage.HEURISTIC
        assert result.fallbacks_used == [SEMANTIC_FAILED, EXTERNAL_FAILED]
        assert paragraph in result.content

    def test_timeout_checked_before_preclean(self, article_html, null_extractor, make_clock):
        """Test that an exhausted budget stops the run before any filtering."""
        pipeline = ExtractionPipeline(
            PipelineConfig(timeout_ms=1000),
            rule_engine=ExplodingRuleEngine(),
            extractor=null_extractor,
            clock=make_clock(2.0),
        )
        result = pipeline.execute(parse_html(article_html))

        assert result.fallbacks_used == [TIMEOUT_MARKER]
        assert "before semantic stage" in result.error

    def test_unexpected_exception_is_contained(self, article_html, null_extractor):
        """Test that a failing stage never propagates to the caller."""
        pipeline = ExtractionPipeline(rule_engine=ExplodingRuleEngine(), extractor=null_extractor)
        result = pipeline.execute(parse_html(article_html))

        assert result.fallbacks_used == [ERROR_MARKER]
        assert result.quality_score == 0
        assert result.error == "boom"
        assert "Sourdough starts with" in result.content

    @pytest.mark.parametrize(
        "html",
        [
            "",
            "   ",
            "plain text without markup",
            "<div><p>unclosed <b>tags",
            "<<<>>></div></div></p>",
            "<html><body></body></html>",
        ],
    )
    def test_never_raises_on_degenerate_input(self, html, null_extractor):
        """Test that empty and malformed documents still produce a result."""
        result = ExtractionPipeline(extractor=null_extractor).execute(parse_html(html))
        assert isinstance(result.content, str)
        assert 0 <= result.quality_score <= 100
        assert result.extraction_time_ms >= 0


class TestResult:
    """Tests for result bookkeeping."""

    def test_input_document_not_modified(self, article_html, null_extractor):
        """Test that the caller's tree is left intact."""
        soup = parse_html(article_html)
        before = str(soup)
        ExtractionPipeline(extractor=null_extractor).execute(soup)
        assert str(soup) == before

    def test_source_metadata(self, article_html, null_extractor):
        """Test url, title and capture time are recorded."""
        result = ExtractionPipeline(extractor=null_extractor).execute(
            parse_html(article_html), url="https://example.com/blog/sourdough"
        )
        assert result.source_metadata.url == "https://example.com/blog/sourdough"
        assert result.source_metadata.title == "How to Bake Sourdough | The Crumb Blog"
        assert datetime.fromisoformat(result.source_metadata.captured_at).tzinfo is not None

    def test_caller_title_wins(self, article_html, null_extractor):
        """Test that a title passed by the caller overrides the page title."""
        result = ExtractionPipeline(extractor=null_extractor).execute(parse_html(article_html), title="Saved title")
        assert result.source_metadata.title == "Saved title"

    def test_debug_logs_gate_reports(self, article_html, null_extractor, caplog):
        """Test that debug mode logs each gate report."""
        caplog.set_level(logging.INFO, logger="cleancut.services.pipeline")
        ExtractionPipeline(PipelineConfig(debug=True), extractor=null_extractor).execute(parse_html(article_html))
        assert "Quality Gate Report" in caplog.text

    def test_concurrent_requests_are_independent(self, article_html, no_semantic_html, null_extractor):
        """Test that one pipeline serves concurrent documents."""
        pipeline = ExtractionPipeline(extractor=null_extractor)
        pages = [article_html, no_semantic_html] * 4
        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(lambda html: pipeline.execute(parse_html(html)), pages))
        stages = [result.stage for result in results]
        assert stages == [ExtractionStage.SEMANTIC, ExtractionStage.HEURISTIC] * 4
