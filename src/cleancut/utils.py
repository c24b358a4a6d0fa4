"""Utility functions for cleancut."""

import copy
import logging
import re
from typing import Any

from bs4 import BeautifulSoup, Tag

from cleancut.exceptions import generate_correlation_id

LOGGER = logging.getLogger(__name__)

# Inline styles that take an element out of the rendered page
_HIDDEN_STYLE_RE = re.compile(r"(display\s*:\s*none|visibility\s*:\s*hidden)", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")


def log_with_correlation(
    logger: logging.Logger,
    level: int,
    message: str,
    correlation_id: str | None = None,
    **kwargs: Any,
) -> None:
    """
    Log a message with correlation ID and additional context.

    Args:
        logger: Logger instance to use.
        level: Logging level (e.g., logging.INFO, logging.ERROR).
        message: Log message format string.
        correlation_id: Optional correlation ID. If None, generates a new one.
        **kwargs: Additional context to include in log extra fields.
    """
    corr_id = correlation_id or generate_correlation_id()
    extra = {"correlation_id": corr_id, **kwargs}
    logger.log(level, message, extra=extra)


# Parsing


def parse_html(html: str) -> BeautifulSoup:
    """
    Parse an HTML document or fragment into a mutable tree.

    Args:
        html: Raw HTML markup.

    Returns:
        BeautifulSoup tree built with the stdlib ``html.parser`` backend.
    """
    return BeautifulSoup(html or "", "html.parser")


def document_body(soup: BeautifulSoup | Tag) -> Tag:
    """Return the ``<body>`` of a document, or the tree itself for fragments."""
    body = soup.find("body") if isinstance(soup, BeautifulSoup) else None
    return body if isinstance(body, Tag) else soup


def document_title(soup: BeautifulSoup | Tag) -> str:
    """Return the stripped ``<title>`` text, or an empty string."""
    title = soup.find("title")
    if isinstance(title, Tag):
        return normalise_whitespace(title.get_text())
    return ""


def clone(node: Tag) -> Tag:
    """Deep-copy a subtree. The copy has no parent."""
    return copy.copy(node)


def inner_html(node: Tag) -> str:
    """Serialise the children of a node."""
    return node.decode_contents()


# Text measurement


def normalise_whitespace(text: str) -> str:
    """Collapse runs of whitespace to single spaces and strip the ends."""
    return _WHITESPACE_RE.sub(" ", text).strip()


def visible_text(node: Tag) -> str:
    """
    Return the whitespace-normalised text of a subtree.

    Args:
        node: Subtree root.

    Returns:
        Text content with whitespace collapsed.
    """
    return normalise_whitespace(node.get_text(" "))


def text_length(node: Tag) -> int:
    """Length of the normalised visible text of a subtree."""
    return len(visible_text(node))


def link_text_length(node: Tag) -> int:
    """
    Total text length inside anchors of a subtree.

    Nested anchors are counted once, via their outermost ``<a>``.
    """
    if node.name == "a":
        return text_length(node)
    total = 0
    for anchor in node.find_all("a"):
        if anchor.find_parent("a") is not None:
            continue
        total += text_length(anchor)
    return total


def link_density(node: Tag) -> float:
    """
    Ratio of anchor text length to total text length.

    Args:
        node: Subtree root.

    Returns:
        Value in [0, 1]; 0.0 for empty subtrees.
    """
    total = text_length(node)
    if total == 0:
        return 0.0
    return min(1.0, link_text_length(node) / total)


# Structure


def descendants_bottom_up(node: Tag) -> list[Tag]:
    """
    Every element below ``node``, each listed before its ancestors.

    Walks iteratively so pathological nesting cannot exhaust the stack.
    """
    order: list[Tag] = []
    stack = [child for child in node.children if isinstance(child, Tag)]
    while stack:
        element = stack.pop()
        order.append(element)
        stack.extend(child for child in element.children if isinstance(child, Tag))
    order.reverse()
    return order


def is_detached(tag: Tag) -> bool:
    """
    Check whether an element has been removed from its tree.

    Decomposed elements carry a ``_decomposed`` flag in their own ``__dict__``
    and extracted ones have no parent. ``Tag.decomposed`` is not used: on a
    live tag the missing attribute falls through to a subtree search.
    """
    return tag.__dict__.get("_decomposed", False) or tag.parent is None


def class_and_id(tag: Tag) -> str:
    """Lower-cased ``class`` and ``id`` attribute values joined by spaces."""
    classes = tag.get("class") or []
    if isinstance(classes, str):
        classes = classes.split()
    el_id = tag.get("id") or ""
    return f"{' '.join(classes)} {el_id}".lower().strip()


def is_hidden(tag: Tag) -> bool:
    """
    Check whether an element is hidden from layout by its own markup.

    Args:
        tag: Element to check.

    Returns:
        True for inline ``display:none`` / ``visibility:hidden``, the ``hidden``
        attribute, or ``aria-hidden="true"``.
    """
    if tag.has_attr("hidden"):
        return True
    if str(tag.get("aria-hidden", "")).lower() == "true":
        return True
    style = tag.get("style")
    return bool(style and _HIDDEN_STYLE_RE.search(str(style)))


def has_ancestor(tag: Tag, names: tuple[str, ...], classes: tuple[str, ...] = ()) -> bool:
    """
    Check whether any ancestor has one of ``names`` or one of ``classes``.

    Args:
        tag: Element whose ancestors are inspected.
        names: Tag names to look for.
        classes: Class tokens to look for.

    Returns:
        True if a matching ancestor exists.
    """
    for parent in tag.parents:
        if parent.name in names:
            return True
        if classes:
            parent_classes = parent.get("class") or []
            if any(cls in parent_classes for cls in classes):
                return True
    return False
