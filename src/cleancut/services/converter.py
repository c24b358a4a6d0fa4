"""HTML to Markdown rendering.

The pipeline hands over an extracted HTML fragment; markdownify converts it
with ATX headings, "-" bullets and no line wrapping. Relative links and
images are resolved against the page URL, javascript: links are dropped, and
fenced code blocks keep the language named by ``language-*`` / ``lang-*``
classes.
"""

import logging
import re
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup, Tag
from markdownify import MarkdownConverter as BaseMarkdownConverter

LOGGER = logging.getLogger(__name__)

_LANGUAGE_CLASS_RE = re.compile(r"^(?:language|lang)-([\w+#-]+)$", re.IGNORECASE)


def detect_code_language(el: Tag) -> str:
    """Return the language named on a ``pre`` or its ``code`` child, or ""."""
    candidates = [el]
    code = el.find("code")
    if isinstance(code, Tag):
        candidates.append(code)
    for candidate in candidates:
        for cls in candidate.get("class") or []:
            match = _LANGUAGE_CLASS_RE.match(cls)
            if match:
                return match.group(1).lower()
    return ""


class AbsoluteUrlConverter(BaseMarkdownConverter):
    """Markdownify converter that resolves relative URLs to absolute.

    Key features:
    - Resolves relative URLs to absolute
    - Drops javascript: pseudo-links
    - Keeps link text when the href is empty
    """

    def __init__(self, base_url: str | None = None, **kwargs):
        """Initialize with base URL for resolving relative links."""
        super().__init__(**kwargs)
        self.base_url = base_url

    def convert_a(self, el, text, parent_tags):
        """Convert anchor tags, resolving relative URLs.

        Strips javascript: pseudo-protocol links (UI interactions with no semantic meaning).
        """
        href = (el.get("href") or "").strip()
        title = el.get("title", "")

        text = text.strip() if text else ""
        if not text:
            text = el.get_text(strip=True)
        if not text:
            return ""

        if href.lower().startswith("javascript:"):
            return ""

        # An anchor without a target is just text
        if not href:
            return text

        if self.base_url and not urlparse(href).netloc and not href.startswith(("#", "mailto:", "tel:")):
            href = urljoin(self.base_url, href)

        if title:
            return f'[{text}]({href} "{title}")'
        return f"[{text}]({href})"

    def convert_img(self, el, text, parent_tags):
        """Convert image tags, resolving relative URLs."""
        src = el.get("src", "")
        alt = el.get("alt", "")
        title = el.get("title", "")

        if src and self.base_url and not urlparse(src).netloc and not src.startswith("data:"):
            src = urljoin(self.base_url, src)

        if not src:
            return ""

        if title:
            return f'![{alt}]({src} "{title}")'
        return f"![{alt}]({src})"


class MarkdownRenderer:
    """Render extracted HTML fragments as Markdown.

    Usage:
        renderer = MarkdownRenderer()
        markdown = renderer.render(result.content, base_url="https://example.com")
    """

    def render(self, html: str, base_url: str | None = None) -> str:
        """Convert an HTML fragment to Markdown.

        Args:
            html: Extracted HTML fragment
            base_url: Base URL for resolving relative links

        Returns:
            Markdown string ("" for empty input)
        """
        if not html or not html.strip():
            return ""

        try:
            converter = AbsoluteUrlConverter(
                base_url=base_url,
                heading_style="atx",
                bullets="-",
                code_language_callback=detect_code_language,
                strip=["script", "style"],
                wrap=False,
            )
            return self._clean_whitespace(converter.convert(html))
        except Exception as e:
            LOGGER.warning(f"Markdown rendering failed, falling back to plain text: {e}")
            soup = BeautifulSoup(html, "html.parser")
            return soup.get_text(separator="\n\n", strip=True)

    def _clean_whitespace(self, markdown: str) -> str:
        """Clean up excessive whitespace."""
        lines = []
        prev_empty = False

        for line in markdown.splitlines():
            stripped = line.rstrip()
            is_empty = not stripped

            if is_empty:
                if not prev_empty:
                    lines.append("")
                prev_empty = True
            else:
                lines.append(stripped)
                prev_empty = False

        return "\n".join(lines).strip()
