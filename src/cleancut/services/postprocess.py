"""Markdown post-processing.

Small, deterministic clean-ups applied to rendered Markdown before it is
validated: whitespace normalisation, heading spacing and hierarchy repair,
removal of links with empty targets, and blank-line collapsing. Lines inside
fenced code blocks are never rewritten.
"""

import re
from dataclasses import dataclass, field

from cleancut.config import PostProcessOptions

FENCE_RE = re.compile(r"^\s*(```|~~~)")
HEADING_RE = re.compile(r"^(#{1,6})(?!#)[ \t]*(\S.*)$")
EMPTY_LINK_RE = re.compile(r"(?<!!)\[([^\]]*)\]\(\s*\)")


@dataclass
class PostProcessResult:
    """Processed Markdown and the list of changes made."""

    markdown: str
    improvements: list[str] = field(default_factory=list)


def _map_prose_lines(markdown: str, fn) -> str:
    """Apply ``fn`` to every line outside fenced code blocks."""
    out: list[str] = []
    in_fence = False
    for line in markdown.split("\n"):
        if FENCE_RE.match(line):
            in_fence = not in_fence
            out.append(line)
            continue
        out.append(line if in_fence else fn(line))
    return "\n".join(out)


def _fix_heading_hierarchy(markdown: str) -> str:
    current = 0

    def fix(line: str) -> str:
        nonlocal current
        match = HEADING_RE.match(line)
        if not match:
            return line
        level = len(match.group(1))
        if level > current + 1:
            level = current + 1
        current = level
        return f"{'#' * level} {match.group(2)}"

    return _map_prose_lines(markdown, fix)


def post_process_markdown(markdown: str, options: PostProcessOptions | None = None) -> PostProcessResult:
    """
    Clean up rendered Markdown.

    Args:
        markdown: Rendered Markdown.
        options: Which clean-ups to run (defaults to all).

    Returns:
        PostProcessResult with the processed text and a description of each change.
    """
    options = options or PostProcessOptions()
    improvements: list[str] = []
    processed = markdown

    if options.cleanup_whitespace:
        before = processed
        processed = processed.replace("\r\n", "\n").replace("\r", "\n")
        if processed != before:
            improvements.append("Normalized line endings")

        before = processed
        processed = re.sub(r"[ \t]+$", "", processed, flags=re.MULTILINE)
        processed = _map_prose_lines(processed, lambda line: line.replace("\t", "  "))
        if processed != before:
            improvements.append("Removed trailing whitespace and tabs")

    if options.normalize_headings:
        before = processed
        processed = _map_prose_lines(
            processed,
            lambda line: HEADING_RE.sub(lambda m: f"{m.group(1)} {m.group(2)}", line),
        )
        if processed != before:
            improvements.append("Fixed heading spacing")

        before = processed
        processed = _fix_heading_hierarchy(processed)
        if processed != before:
            improvements.append("Fixed heading hierarchy")

    if options.strip_empty_links:
        before = processed
        processed = _map_prose_lines(processed, lambda line: EMPTY_LINK_RE.sub(r"\1", line))
        if processed != before:
            improvements.append("Removed links with empty targets")

    before = processed
    limit = options.max_consecutive_newlines
    processed = re.sub(r"\n{%d,}" % (limit + 1), "\n" * limit, processed).strip()
    if processed != before.strip():
        improvements.append("Collapsed blank lines")

    return PostProcessResult(markdown=processed, improvements=improvements)
