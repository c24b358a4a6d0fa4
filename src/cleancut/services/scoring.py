"""Heuristic content scoring.

Every block-level container in a subtree is scored on its own (no score
inheritance between parents and children) from four signals:

1. Text density: non-link text length per element in the subtree
2. Keyword bias: class/id hints such as "article" or "sidebar", plus tag bias
3. Paragraph-like children: a capped per-child bonus
4. Link density: a multiplicative penalty for link-heavy regions

The best candidate is then pruned of nested stragglers (link lists, nested
navigation, forms) that candidate scoring could not see.
"""

import logging
import re
from dataclasses import dataclass

from bs4 import CData, NavigableString, Tag
from pydantic import BaseModel, ConfigDict, Field

from cleancut.models import Candidate, CandidateSearch
from cleancut.utils import class_and_id, clone, descendants_bottom_up, is_hidden, link_density

LOGGER = logging.getLogger(__name__)

CANDIDATE_TAGS = ["div", "section", "article", "main"]
PARAGRAPH_TAGS = frozenset({"p", "pre", "blockquote", "ul", "ol", "table"})

# Containers prune_node may remove
PRUNABLE_TAGS = frozenset({"div", "section", "aside", "ul", "ol", "nav", "header", "footer", "form"})
PRUNE_PENALISED_TAGS = frozenset({"nav", "aside", "header", "footer", "form"})
# Containers holding any of these are never pruned
PRESERVE_TAGS = ["pre", "code", "table", "img"]

POSITIVE_RE = re.compile(r"article|body|content|entry|main|post|story|text|blog|hentry", re.IGNORECASE)
NEGATIVE_RE = re.compile(
    r"sidebar|footer|comment|widget|nav|menu|breadcrumb|social|share|promo|sponsor|related|banner|popup"
    r"|masthead|(^|[\s_-])ads?([\s_-]|$)",
    re.IGNORECASE,
)


class ScoringWeights(BaseModel):
    """Tunable constants of the scoring engine."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    density_weight: float = 0.25
    positive_keyword_bonus: float = 25.0
    negative_keyword_penalty: float = 25.0
    tag_bonus: dict[str, float] = Field(default_factory=lambda: {"article": 20.0, "main": 20.0, "section": 10.0})
    paragraph_bonus: float = 3.0
    paragraph_bonus_cap: float = 30.0
    link_density_threshold: float = 0.33
    min_text_length: int = 50
    min_score: float = 20.0

    prune_tag_penalty: float = 50.0
    prune_link_density_threshold: float = 0.5
    prune_link_penalty: float = 50.0
    prune_threshold: float = -10.0
    max_prune_depth: int = Field(default=64, ge=1)


@dataclass
class SubtreeStats:
    """Text and size measurements of one subtree.

    ``text_length`` and ``link_length`` match ``utils.text_length`` and
    ``utils.link_text_length`` for the same subtree.
    """

    chars: int = 0
    words: int = 0
    link_length: int = 0
    elements: int = 1

    @property
    def text_length(self) -> int:
        return self.chars + self.words - 1 if self.words else 0


def measure_subtrees(root: Tag) -> dict[int, SubtreeStats]:
    """
    Measure every subtree below and including ``root`` in one bottom-up pass.

    Args:
        root: Subtree to measure.

    Returns:
        Stats keyed by ``id()`` of each element.
    """
    stats: dict[int, SubtreeStats] = {}
    for element in [*descendants_bottom_up(root), root]:
        current = SubtreeStats()
        child_links = 0
        for child in element.children:
            if isinstance(child, Tag):
                sub = stats[id(child)]
                current.chars += sub.chars
                current.words += sub.words
                current.elements += sub.elements
                child_links += sub.link_length
            elif type(child) in (NavigableString, CData):
                words = child.split()
                current.chars += sum(len(word) for word in words)
                current.words += len(words)
        # Nested anchors are counted once, via the outermost <a>
        current.link_length = current.text_length if element.name == "a" else child_links
        stats[id(element)] = current
    return stats


class ScoringEngine:
    """Scores candidate containers and prunes the winner.

    Usage:
        engine = ScoringEngine()
        search = engine.find_best_candidate(body)
        if search.candidate:
            article = engine.prune_node(search.candidate.node)
    """

    def __init__(self, weights: ScoringWeights | None = None) -> None:
        self.weights = weights or ScoringWeights()

    def keyword_bias(self, element: Tag) -> float:
        """Class/id keyword bonus minus penalty. Both may apply."""
        hints = class_and_id(element)
        if not hints:
            return 0.0
        bias = 0.0
        if POSITIVE_RE.search(hints):
            bias += self.weights.positive_keyword_bonus
        if NEGATIVE_RE.search(hints):
            bias -= self.weights.negative_keyword_penalty
        return bias

    def score_node(self, element: Tag) -> float:
        """
        Score a single container.

        Args:
            element: Candidate container.

        Returns:
            Content-likelihood score (unbounded, higher is better).
        """
        return self._score(element, measure_subtrees(element)[id(element)])

    def _score(self, element: Tag, stats: SubtreeStats) -> float:
        w = self.weights
        total = stats.text_length
        links = min(total, stats.link_length)
        density = (total - links) / stats.elements

        score = w.density_weight * density
        score += self.keyword_bias(element)
        score += w.tag_bonus.get(element.name, 0.0)

        paragraphs = sum(1 for child in element.children if isinstance(child, Tag) and child.name in PARAGRAPH_TAGS)
        score += min(w.paragraph_bonus_cap, w.paragraph_bonus * paragraphs)

        ratio = links / total if total else 0.0
        if ratio > w.link_density_threshold:
            # Pushes negative scores further down too
            score -= abs(score) * ratio
        return score

    def find_best_candidate(self, root: Tag) -> CandidateSearch:
        """
        Score every candidate container in a subtree and pick the best.

        Hidden containers and containers with less than ``min_text_length``
        characters are not scored. Ties keep the earliest candidate in
        document order.

        Args:
            root: Subtree to search, included when it is a candidate tag itself.

        Returns:
            CandidateSearch; ``candidate`` is None when nothing reaches ``min_score``.
        """
        elements = root.find_all(CANDIDATE_TAGS)
        if root.name in CANDIDATE_TAGS:
            elements.insert(0, root)

        stats = measure_subtrees(root)
        candidates: list[Candidate] = []
        best: Candidate | None = None
        for element in elements:
            element_stats = stats[id(element)]
            if is_hidden(element) or element_stats.text_length < self.weights.min_text_length:
                continue
            candidate = Candidate(node=element, score=self._score(element, element_stats))
            candidates.append(candidate)
            if best is None or candidate.score > best.score:
                best = candidate

        if best is not None and best.score < self.weights.min_score:
            LOGGER.debug(f"Best candidate scored {best.score:.1f}, below floor {self.weights.min_score}")
            best = None
        elif best is not None:
            LOGGER.debug(f"Best candidate <{best.node.name}> scored {best.score:.1f} of {len(candidates)} candidates")

        return CandidateSearch(candidate=best, all_candidates=candidates)

    def local_score(self, element: Tag) -> float:
        """Score a nested container on its own signals, for pruning."""
        w = self.weights
        score = self.keyword_bias(element)
        if element.name in PRUNE_PENALISED_TAGS:
            score -= w.prune_tag_penalty
        density = link_density(element)
        if density > w.prune_link_density_threshold:
            score -= density * w.prune_link_penalty
        return score

    def prune_node(self, node: Tag) -> Tag:
        """
        Return a copy of ``node`` without low-value nested containers.

        The input is not modified. Containers holding code, tables or images
        are always kept. Descent stops at ``max_prune_depth``.

        Args:
            node: Winning candidate.

        Returns:
            Pruned deep copy.
        """
        pruned = clone(node)
        removed = 0
        stack: list[tuple[Tag, int]] = [(pruned, 0)]
        while stack:
            element, depth = stack.pop()
            if depth >= self.weights.max_prune_depth:
                continue
            for child in list(element.children):
                if not isinstance(child, Tag):
                    continue
                if (
                    child.name in PRUNABLE_TAGS
                    and child.find(PRESERVE_TAGS) is None
                    and self.local_score(child) < self.weights.prune_threshold
                ):
                    child.decompose()
                    removed += 1
                else:
                    stack.append((child, depth + 1))
        if removed:
            LOGGER.debug(f"Pruned {removed} low-value containers")
        return pruned
