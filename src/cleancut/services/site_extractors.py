"""Site-specific extractors.

Some sites ship markup that generic extraction handles poorly (custom
elements, content split across web components). For those hosts we keep a
registry of extractors that rebuild the article directly from known markup.

To add a new extractor:
1. Create a handler function: _extract_<name>(root, url) -> Tag | None
2. Register it in SITE_EXTRACTORS with the hosts it serves

An extractor returns None when the expected markup is missing; the pipeline
then falls through to the generic stages.
"""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from urllib.parse import urlparse

from bs4 import BeautifulSoup, Tag

from cleancut.utils import clone, is_detached, normalise_whitespace, visible_text

LOGGER = logging.getLogger(__name__)


@dataclass
class SiteExtractor:
    """Registration for a site-specific extractor.

    Attributes:
        name: Short identifier (e.g., "reddit")
        description: What this extractor handles
        hosts: Hostnames served, subdomains included
        extract: Function building the article fragment from the page
    """

    name: str
    description: str
    hosts: tuple[str, ...]
    extract: Callable[[Tag, str], Tag | None]

    def matches(self, url: str) -> bool:
        """Check if this extractor serves the host of ``url``."""
        host = (urlparse(url).hostname or "").lower()
        return any(host == h or host.endswith(f".{h}") for h in self.hosts)


# =============================================================================
# Reddit
# =============================================================================

REDDIT_MAX_COMMENTS = 50
REDDIT_MIN_COMMENT_CHARS = 10

# Interface text that leaks into comment bodies
REDDIT_NOISE_RE = re.compile(
    r"^(share|save|hide|report|reply|edit|delete|permalink|collapse|vote|awards?|give award"
    r"|sort by:?.*|\d+\s*(upvotes?|downvotes?|comments?|points?|karma)"
    r"|\d+\s*(hours?|days?|months?|years?)\s*ago)$",
    re.IGNORECASE,
)


def _drop_reddit_noise(fragment: Tag) -> None:
    """Remove buttons and elements whose whole text is interface noise."""
    for element in fragment.find_all(["button", "faceplate-tracker", "svg", "form"]):
        if not is_detached(element):
            element.decompose()
    for element in fragment.find_all(True):
        if is_detached(element):
            continue
        if REDDIT_NOISE_RE.match(visible_text(element)):
            element.decompose()


def _extract_reddit(root: Tag, url: str) -> Tag | None:
    """Rebuild a Reddit post and its comments from shreddit markup.

    Args:
        root: Page tree (not modified).
        url: Page URL.

    Returns:
        ``<article>`` with title, post body and comments, or None.
    """
    title = root.select_one("shreddit-title h1, shreddit-post h1, h1[slot='title']")
    body = root.select_one("shreddit-post-text-body div[id*='-post-rtjson-content'], [slot='text-body']")
    if title is None and body is None:
        return None

    soup = BeautifulSoup("", "html.parser")
    article = soup.new_tag("article")

    if title is not None:
        heading = soup.new_tag("h1")
        heading.string = visible_text(title)
        article.append(heading)

    post = root.select_one("shreddit-post")
    post_author = post.get("author") if post is not None else None

    if body is not None:
        post_body = clone(body)
        _drop_reddit_noise(post_body)
        post_body.name = "div"
        article.append(post_body)

    comments = soup.new_tag("section")
    kept = 0
    for comment in root.select("shreddit-comment"):
        if kept >= REDDIT_MAX_COMMENTS:
            break
        slot = comment.select_one("[slot='comment']")
        if slot is None:
            continue
        text_node = clone(slot)
        _drop_reddit_noise(text_node)
        if len(visible_text(text_node)) < REDDIT_MIN_COMMENT_CHARS:
            continue

        author = comment.get("author") or "[deleted]"
        depth_attr = str(comment.get("depth") or "0")
        depth = int(depth_attr) if depth_attr.isdigit() else 0
        byline = soup.new_tag("p")
        strong = soup.new_tag("strong")
        strong.string = f"u/{author}"
        byline.append(strong)
        if post_author and author == post_author:
            byline.append(" (OP)")

        entry = soup.new_tag("blockquote" if depth > 0 else "div")
        entry.append(byline)
        text_node.name = "div"
        entry.append(text_node)
        comments.append(entry)
        kept += 1

    if kept:
        heading = soup.new_tag("h2")
        heading.string = f"{kept} Comment{'s' if kept > 1 else ''}"
        comments.insert(0, heading)
        article.append(comments)

    LOGGER.debug(f"Reddit extractor kept post body={body is not None} and {kept} comments for {url}")
    return article


# =============================================================================
# GitHub
# =============================================================================


def _extract_github_readme(root: Tag, url: str) -> Tag | None:
    """Return a copy of the rendered README or markdown file, or None."""
    readme = root.select_one("#readme article.markdown-body, article.markdown-body, .markdown-body")
    if readme is None:
        return None
    fragment = clone(readme)
    for anchor in fragment.select("a.anchor, .octicon"):
        if not is_detached(anchor):
            anchor.decompose()
    LOGGER.debug(f"GitHub extractor found README ({len(normalise_whitespace(fragment.get_text(' ')))} chars)")
    return fragment


# =============================================================================
# Registry
# =============================================================================

SITE_EXTRACTORS: list[SiteExtractor] = [
    SiteExtractor(
        name="reddit",
        description="Reddit posts rendered with shreddit web components, with top comments",
        hosts=("reddit.com", "redd.it"),
        extract=_extract_reddit,
    ),
    SiteExtractor(
        name="github",
        description="GitHub repository READMEs and rendered markdown files",
        hosts=("github.com",),
        extract=_extract_github_readme,
    ),
]


def find_site_extractor(url: str, registry: list[SiteExtractor] | None = None) -> SiteExtractor | None:
    """
    Find the extractor registered for the host of ``url``.

    Args:
        url: Page URL. Empty URLs match nothing.
        registry: Extractors to search (defaults to SITE_EXTRACTORS).

    Returns:
        The first matching extractor, or None.
    """
    if not url:
        return None
    for extractor in registry if registry is not None else SITE_EXTRACTORS:
        if extractor.matches(url):
            return extractor
    return None
