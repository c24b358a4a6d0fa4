"""External article extraction with readability-lxml.

readability-lxml rewrites the document it is given, so the pipeline always
hands this extractor a clone. Extraction thresholds are picked from URL
presets: forum threads and API references have short paragraphs, while blog
and news articles should produce a long body or nothing.
"""

import logging
import re
from dataclasses import dataclass
from typing import Protocol

from bs4 import BeautifulSoup, Tag
from readability import Document

from cleancut.exceptions import ExtractorError
from cleancut.models import ExtractedArticle
from cleancut.utils import normalise_whitespace, visible_text

LOGGER = logging.getLogger(__name__)

EXCERPT_LENGTH = 200
# What readability-lxml reports for documents without a <title>
NO_TITLE = "[no-title]"


class ArticleExtractor(Protocol):
    """Contract for external article-extraction components."""

    name: str

    def extract(self, document: Tag, url: str = "") -> ExtractedArticle | None:
        """Extract the article from a document the extractor may mutate."""
        ...


@dataclass(frozen=True)
class ReadabilityPreset:
    """Extraction thresholds for a family of sites.

    Attributes:
        name: Preset identifier
        url_patterns: Regexes matched against the page URL
        retry_length: Minimum article length before readability retries less strictly
        min_text_length: Minimum paragraph length readability keeps
    """

    name: str
    url_patterns: tuple[str, ...]
    retry_length: int
    min_text_length: int = 25


DEFAULT_PRESET = ReadabilityPreset(name="default", url_patterns=(), retry_length=500)

PRESETS: list[ReadabilityPreset] = [
    ReadabilityPreset(
        name="technical-documentation",
        url_patterns=(r"docs?\.", r"api\.", r"developer\.", r"github\.com", r"stackoverflow\.com", r"\.readthedocs\."),
        retry_length=300,
    ),
    ReadabilityPreset(
        name="blog-article",
        url_patterns=(r"blog", r"article", r"/post", r"medium\.com", r"substack\.com"),
        retry_length=800,
    ),
    ReadabilityPreset(
        name="news-article",
        url_patterns=(r"news", r"\.com/\d{4}/\d{2}/\d{2}", r"reuters\.com", r"bbc\.co", r"nytimes\.com"),
        retry_length=600,
    ),
    ReadabilityPreset(
        name="academic-paper",
        url_patterns=(r"arxiv\.org", r"\.edu", r"researchgate\.net", r"scholar\.google", r"pubmed"),
        retry_length=400,
    ),
    ReadabilityPreset(
        name="forum-discussion",
        url_patterns=(r"reddit\.com", r"discourse\.", r"forum", r"community", r"discuss"),
        retry_length=200,
        min_text_length=10,
    ),
    ReadabilityPreset(
        name="wiki-content",
        url_patterns=(r"wikipedia\.org", r"wiki", r"fandom\.com"),
        retry_length=500,
    ),
]

POSITIVE_KEYWORDS = ["article", "body", "content", "entry", "hentry", "main", "page", "post", "text", "blog", "story"]
NEGATIVE_KEYWORDS = [
    "comment",
    "contact",
    "footer",
    "masthead",
    "meta",
    "outbrain",
    "promo",
    "related",
    "share",
    "sidebar",
    "sponsor",
    "widget",
]


def select_preset(url: str) -> ReadabilityPreset:
    """
    Pick the extraction preset for a URL.

    Args:
        url: Page URL (may be empty).

    Returns:
        First preset with a matching pattern, else DEFAULT_PRESET.
    """
    lowered = (url or "").lower()
    for preset in PRESETS:
        if any(re.search(pattern, lowered) for pattern in preset.url_patterns):
            return preset
    return DEFAULT_PRESET


def _meta_content(document: Tag, *names: str) -> str | None:
    for name in names:
        meta = document.find("meta", attrs={"name": name}) or document.find("meta", attrs={"property": name})
        if isinstance(meta, Tag) and meta.get("content"):
            return normalise_whitespace(str(meta["content"]))
    return None


class ReadabilityExtractor:
    """Article extractor backed by readability-lxml.

    Usage:
        extractor = ReadabilityExtractor()
        article = extractor.extract(clone(soup), url="https://example.com/blog/post")
    """

    name = "readability"

    def extract(self, document: Tag, url: str = "") -> ExtractedArticle | None:
        """
        Extract the main article from a document.

        Args:
            document: Document tree. Serialised, so the caller's tree is not touched.
            url: Page URL, used for preset selection and link resolution.

        Returns:
            ExtractedArticle, or None when readability finds no content.

        Raises:
            ExtractorError: If readability-lxml fails to parse the document.
        """
        html = str(document)
        if not html.strip():
            return None

        preset = select_preset(url)
        try:
            doc = Document(
                html,
                url=url or None,
                min_text_length=preset.min_text_length,
                retry_length=preset.retry_length,
                positive_keywords=POSITIVE_KEYWORDS,
                negative_keywords=NEGATIVE_KEYWORDS,
            )
            summary = doc.summary(html_partial=True)
            title = doc.short_title() or doc.title()
            if title == NO_TITLE:
                title = None
        except Exception as e:
            raise ExtractorError(
                f"Readability extraction failed: {e}",
                extractor=self.name,
                context={"url": url, "preset": preset.name},
            ) from e

        fragment = BeautifulSoup(summary or "", "html.parser")
        content = fragment.find(True)
        if not isinstance(content, Tag) or not visible_text(content):
            LOGGER.debug(f"Readability returned no content for {url or 'document'}")
            return None

        excerpt = _meta_content(document, "description", "og:description")
        if not excerpt:
            first = content.find("p")
            excerpt = visible_text(first)[:EXCERPT_LENGTH] if isinstance(first, Tag) else None

        LOGGER.debug(f"Readability extracted {len(visible_text(content))} chars using preset '{preset.name}'")
        return ExtractedArticle(
            content=content,
            title=title or None,
            byline=_meta_content(document, "author", "article:author"),
            excerpt=excerpt or None,
        )
