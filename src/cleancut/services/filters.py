"""Rule-based boilerplate filtering.

Boilerplate removal is driven by declarative rules: a CSS selector plus an
action (remove the element, or unwrap it and keep its children in place).
Rules are grouped into immutable, versioned RuleSets:

- SAFE_RULES: unambiguous chrome (navigation, ads, cookie banners, social
  widgets, comment sections, known site containers). Applied to every page.
- AGGRESSIVE_RULES: documentation chrome (sidebars, tables of contents,
  breadcrumbs, permalink anchors, pagination). Applied only when the page
  looks like technical documentation, where prose extractors do more harm
  than good.

Adding rules at runtime never mutates a published RuleSet. The engine swaps
in a new snapshot under a lock, so requests already running keep the
snapshot they started with.
"""

import logging
import re
import threading
from dataclasses import dataclass, field

import soupsieve
from bs4 import Tag
from pydantic import BaseModel, ConfigDict, Field, field_validator

from cleancut.exceptions import ConfigurationError, RuleEvaluationError
from cleancut.models import FilterAction, FilterError, FilterRule, TechnicalSignals
from cleancut.utils import descendants_bottom_up, has_ancestor, is_detached, is_hidden, text_length

LOGGER = logging.getLogger(__name__)

MAX_RULES = 256

# Never removed by a REMOVE rule, nor when they wrap one of MAIN_CONTENT_SELECTOR
PROTECTED_TAGS = frozenset({"html", "body", "main", "article"})
MAIN_CONTENT_SELECTOR = "main, article, [role='main']"

CODE_TAGS = ("pre", "code")
CODE_CLASSES = ("highlight",)

EMPTY_CANDIDATE_TAGS = ["p", "div", "span", "section", "article"]

HIGHLIGHT_MARKERS = ("highlight", "hljs", "language-", "lang-", "prism", "sourcecode", "codehilite", "syntax")

API_HEADING_RE = re.compile(
    r"^\s*("
    r"[\w.$:]+\s*\(.*\)"  # foo(bar), Client.get(url)
    r"|parameters|returns?|arguments|args|methods|properties|api reference|endpoints?|examples?"
    r"|(get|post|put|patch|delete|head|options)\s+/"
    r")",
    re.IGNORECASE,
)

BYPASS_THRESHOLD = 0.5
PROSE_PARAGRAPH_MIN_CHARS = 80


class RuleSet(BaseModel):
    """An immutable, versioned snapshot of filter rules.

    Usage:
        custom = SAFE_RULES.with_rule(FilterRule(description="Promo bar", selector=".promo-bar"))
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    version: int = Field(default=1, ge=1)
    rules: tuple[FilterRule, ...] = ()
    # Skip matches that are, contain, or sit inside pre/code
    protect_code: bool = False

    @field_validator("rules")
    @classmethod
    def _bounded(cls, rules: tuple[FilterRule, ...]) -> tuple[FilterRule, ...]:
        if len(rules) > MAX_RULES:
            raise ConfigurationError(
                f"Rule set exceeds {MAX_RULES} rules",
                setting="rules",
                context={"rule_count": len(rules)},
            )
        return rules

    def with_rule(self, rule: FilterRule) -> "RuleSet":
        """Return a new snapshot with ``rule`` appended and the version bumped."""
        return RuleSet(
            name=self.name,
            version=self.version + 1,
            rules=(*self.rules, rule),
            protect_code=self.protect_code,
        )

    def __len__(self) -> int:
        return len(self.rules)


def _rule(description: str, selector: str, action: FilterAction = FilterAction.REMOVE) -> FilterRule:
    return FilterRule(description=description, selector=selector, action=action)


SAFE_RULES = RuleSet(
    name="safe",
    rules=(
        _rule("Non-content elements", "script, style, noscript, template, iframe, object, embed, svg, canvas"),
        _rule("Navigation", "nav, [role='navigation'], .navbar, .main-menu, .nav-menu"),
        _rule("Site banner", "[role='banner'], .site-header, #masthead"),
        _rule("Site footer", "footer, [role='contentinfo'], .site-footer, .page-footer, #footer"),
        _rule(
            "Advertisements",
            ".ad, .ads, .advert, .advertisement, [class^='ad-'], [class*=' ad-'], [id^='ad-'], "
            ".adsbygoogle, ins.adsbygoogle, .sponsored, .promo",
        ),
        _rule(
            "Social widgets",
            ".social-share, .share-buttons, .sharing, .social-media, .follow-us, .twitter-tweet, .fb-post",
        ),
        _rule("Cookie and consent banners", ".cookie, .consent, .privacy-notice, .gdpr, [id*='cookie'], [class*='cookie']"),
        _rule("Comment sections", ".comments, .comment-section, #comments, #disqus_thread, .disqus, .livefyre"),
        _rule("Related content", ".related, .related-posts, .recommended, .more-articles, .you-might-like"),
        _rule("Newsletter sign-ups", ".newsletter, .subscribe, .email-signup, .signup-form, .call-to-action"),
        _rule("Popups and modals", ".popup, .modal, .lightbox"),
        _rule(
            "Reddit chrome",
            "shreddit-comments-page > aside, shreddit-ad, faceplate-tracker, faceplate-iframe, "
            "[slot='sidebar'], [data-testid='post-sidebar'], [data-testid='left-sidebar'], "
            "[data-testid='content-gate'], [data-adclicklocation], [promoted], shreddit-comment-tree",
        ),
        _rule(
            "GitHub chrome",
            ".gh-header, .js-navigation-container, .repository-lang-stats, .Header, .pagehead, .UnderlineNav, "
            ".flash, .file-navigation, .Layout-sidebar, .hx_pagehead, .gisthead, .BorderGrid, .header-search",
        ),
        _rule("Wikipedia navigation boxes", ".navbox, .infobox, .metadata, .navigation-not-searchable, .mw-editsection"),
        _rule("GitHub README wrapper", "#readme .markdown-body", FilterAction.UNWRAP),
        _rule(
            "Reddit post wrapper",
            "shreddit-post, [data-test-id='post-content'], [data-testid='post-container']",
            FilterAction.UNWRAP,
        ),
    ),
)

AGGRESSIVE_RULES = RuleSet(
    name="aggressive",
    protect_code=True,
    rules=(
        _rule("Page headers", "body > header, .page-header, .md-header, .wy-nav-top"),
        _rule(
            "Sidebars",
            "aside, [role='complementary'], .sidebar, .side-bar, .sphinxsidebar, .wy-nav-side, .md-sidebar",
        ),
        _rule("Tables of contents", ".toc, .table-of-contents, #toc, .on-this-page"),
        _rule("Breadcrumbs", ".breadcrumb, .breadcrumbs, [aria-label='breadcrumb'], [aria-label='Breadcrumb']"),
        _rule("Search boxes", "[role='search'], .search, .search-box, .search-form"),
        _rule("Skip links", ".skip-link, .skip-nav, .screen-reader-text, .sr-only, .visually-hidden"),
        _rule("Permalink anchors", "a.headerlink, a.anchor-link, a.hash-link"),
        _rule("Pagination", ".pagination, .prev-next, .nav-links, .rst-footer-buttons, .md-footer"),
        _rule("Edit links", ".edit-this-page, .edit-page-link, a.edit-link"),
        _rule("Version switchers", ".version-switcher, .version-selector"),
    ),
)


# =============================================================================
# Rule application
# =============================================================================


def _guards_main_content(element: Tag) -> bool:
    """Check if removing ``element`` would take the main content with it."""
    if element.name in PROTECTED_TAGS:
        return True
    if (element.get("role") or "").lower() == "main":
        return True
    return element.select_one(MAIN_CONTENT_SELECTOR) is not None


def _touches_code(element: Tag) -> bool:
    if element.name in CODE_TAGS:
        return True
    if element.find(list(CODE_TAGS)) is not None:
        return True
    return has_ancestor(element, CODE_TAGS)


def apply_rules(root: Tag, rule_set: RuleSet) -> list[FilterError]:
    """
    Apply every rule of a rule set to a tree, in order, in place.

    All matches of a rule are collected before any of them is mutated. A rule
    whose selector cannot be evaluated is recorded and skipped; the remaining
    rules still run.

    Args:
        root: Subtree to clean. The root itself is never matched.
        rule_set: Rules to apply.

    Returns:
        One FilterError per rule that failed.
    """
    errors: list[FilterError] = []
    for rule in rule_set.rules:
        try:
            matches = root.select(rule.selector)
        except Exception as e:
            LOGGER.warning(f"Filter rule '{rule.description}' failed on selector '{rule.selector}': {e}")
            errors.append(FilterError(description=rule.description, selector=rule.selector, message=str(e)))
            continue

        applied = 0
        for element in matches:
            if is_detached(element):
                continue
            if rule_set.protect_code and _touches_code(element):
                continue
            if rule.action is FilterAction.REMOVE:
                if _guards_main_content(element):
                    continue
                element.decompose()
            else:
                element.unwrap()
            applied += 1

        if applied:
            LOGGER.debug(f"Rule '{rule.description}' ({rule.action.value}) matched {applied} elements")
    return errors


def remove_hidden_elements(root: Tag) -> int:
    """
    Remove elements hidden by their own markup.

    Hidden means inline ``display:none`` or ``visibility:hidden``, the
    ``hidden`` attribute, or ``aria-hidden="true"``. Elements inside
    ``pre``, ``code`` or ``.highlight`` are kept. The walk does not descend
    into removed or exempt subtrees, so each element is inspected once.

    Args:
        root: Subtree to clean in place.

    Returns:
        Number of elements removed.
    """
    if _is_code_context(root) or has_ancestor(root, CODE_TAGS, CODE_CLASSES):
        return 0

    removed = 0
    stack = [child for child in root.children if isinstance(child, Tag)]
    while stack:
        element = stack.pop()
        if is_hidden(element):
            element.decompose()
            removed += 1
            continue
        if _is_code_context(element):
            continue
        stack.extend(child for child in element.children if isinstance(child, Tag))
    if removed:
        LOGGER.debug(f"Removed {removed} hidden elements")
    return removed


def _is_code_context(element: Tag) -> bool:
    if element.name in CODE_TAGS:
        return True
    classes = element.get("class") or []
    return any(cls in classes for cls in CODE_CLASSES)


def _is_empty(element: Tag) -> bool:
    if any(isinstance(child, Tag) for child in element.children):
        return False
    text = element.get_text()
    if text.strip():
        return False
    # Whitespace-only inline spans still separate words
    return not (text and element.name == "span")


def cleanup_empty_elements(root: Tag) -> int:
    """
    Remove empty containers left behind by filtering.

    Elements are visited children first, so a parent emptied by a removal is
    seen after its last child went and is removed in the same pass.

    Args:
        root: Subtree to clean in place. The root itself is kept.

    Returns:
        Number of elements removed.
    """
    if root.name == "pre" or has_ancestor(root, ("pre",)):
        return 0
    inside_pre = {id(element) for pre in root.find_all("pre") for element in pre.find_all(True)}

    removed = 0
    for element in descendants_bottom_up(root):
        if element.name not in EMPTY_CANDIDATE_TAGS or id(element) in inside_pre:
            continue
        if _is_empty(element):
            element.decompose()
            removed += 1
    return removed


# =============================================================================
# Technical content detection
# =============================================================================


def _code_nodes(root: Tag) -> list[Tag]:
    """Outermost pre blocks plus inline code outside any pre."""
    nodes: list[Tag] = []
    for element in root.find_all(list(CODE_TAGS)):
        if element.name == "code" and element.find_parent("pre") is not None:
            continue
        if element.name == "pre" and element.find_parent("pre") is not None:
            continue
        nodes.append(element)
    return nodes


def _has_highlight_markers(root: Tag) -> bool:
    for element in root.find_all(class_=True):
        classes = " ".join(element.get("class") or []).lower()
        if any(marker in classes for marker in HIGHLIGHT_MARKERS):
            return True
    return False


def analyze_technical_content(root: Tag) -> TechnicalSignals:
    """
    Measure how strongly a subtree looks like technical documentation.

    Args:
        root: Subtree to inspect. Not modified.

    Returns:
        TechnicalSignals with the combined score and bypass verdict.
    """
    code_nodes = _code_nodes(root)
    if root.name in CODE_TAGS:
        code_nodes.append(root)
    if not code_nodes:
        return TechnicalSignals()

    total_text = text_length(root)
    code_text = sum(text_length(node) for node in code_nodes)
    ratio = min(1.0, code_text / total_text) if total_text else 1.0

    highlight = _has_highlight_markers(root)
    api_headings = sum(
        1 for heading in root.find_all(["h1", "h2", "h3", "h4", "h5", "h6"]) if API_HEADING_RE.match(heading.get_text())
    )
    prose = sum(
        1
        for paragraph in root.find_all("p")
        if text_length(paragraph) >= PROSE_PARAGRAPH_MIN_CHARS and not has_ancestor(paragraph, CODE_TAGS)
    )

    score = (
        0.5 * min(1.0, ratio / 0.3)
        + 0.2 * min(1.0, len(code_nodes) / 3)
        + 0.15 * (1.0 if highlight else 0.0)
        + 0.15 * min(1.0, api_headings / 2)
    )
    bypass = score >= BYPASS_THRESHOLD

    return TechnicalSignals(
        code_blocks=len(code_nodes),
        code_text_ratio=round(ratio, 4),
        has_highlight_markers=highlight,
        api_headings=api_headings,
        prose_paragraphs=prose,
        score=round(score, 4),
        bypass=bypass,
    )


def should_bypass_deeper_extraction(root: Tag) -> bool:
    """Check whether prose-oriented extraction should be skipped for this subtree."""
    return analyze_technical_content(root).bypass


# =============================================================================
# Engine
# =============================================================================


@dataclass
class PrecleanOutcome:
    """What the pre-clean pass did to a document.

    Attributes:
        bypass: True when the page looked technical and aggressive rules ran
        signals: Technical-content signals behind the bypass decision
        errors: Rules that failed to evaluate
        hidden_removed: Hidden elements removed
        empty_removed: Empty containers removed
    """

    bypass: bool
    signals: TechnicalSignals
    errors: list[FilterError] = field(default_factory=list)
    hidden_removed: int = 0
    empty_removed: int = 0


class RuleEngine:
    """Applies boilerplate rule sets to document trees.

    Holds the current safe and aggressive snapshots. Readers take a snapshot
    reference; ``add_custom_rule`` publishes a new snapshot under a lock.

    Usage:
        engine = RuleEngine()
        outcome = engine.preclean(body)
    """

    def __init__(
        self,
        safe_rules: RuleSet = SAFE_RULES,
        aggressive_rules: RuleSet = AGGRESSIVE_RULES,
    ) -> None:
        self._lock = threading.Lock()
        self._safe = safe_rules
        self._aggressive = aggressive_rules

    @property
    def safe_rules(self) -> RuleSet:
        with self._lock:
            return self._safe

    @property
    def aggressive_rules(self) -> RuleSet:
        with self._lock:
            return self._aggressive

    def add_custom_rule(self, rule: FilterRule, *, aggressive: bool = False) -> RuleSet:
        """
        Publish a new snapshot containing ``rule``.

        Args:
            rule: Rule to append.
            aggressive: Add to the aggressive set instead of the safe set.

        Returns:
            The newly published snapshot.

        Raises:
            RuleEvaluationError: If the selector does not compile.
            ConfigurationError: If the rule set would exceed MAX_RULES.
        """
        try:
            soupsieve.compile(rule.selector)
        except soupsieve.SelectorSyntaxError as e:
            raise RuleEvaluationError(
                f"Invalid selector for rule '{rule.description}': {e}",
                selector=rule.selector,
            ) from e
        with self._lock:
            if aggressive:
                self._aggressive = self._aggressive.with_rule(rule)
                snapshot = self._aggressive
            else:
                self._safe = self._safe.with_rule(rule)
                snapshot = self._safe
        LOGGER.info(f"Added custom rule '{rule.description}' to {snapshot.name} rules (v{snapshot.version})")
        return snapshot

    def apply_rules(self, root: Tag, rule_set: RuleSet | None = None) -> list[FilterError]:
        """Apply ``rule_set`` (default: current safe snapshot) to ``root``."""
        return apply_rules(root, rule_set if rule_set is not None else self.safe_rules)

    def preclean(self, root: Tag) -> PrecleanOutcome:
        """
        Run the full pre-clean pass in place.

        Safe rules and hidden-element removal always run. The bypass decision
        is taken on the cleaned tree; when it fires, aggressive rules run too.
        Empty containers are purged last.

        Args:
            root: Document body to clean.

        Returns:
            PrecleanOutcome describing what happened.
        """
        safe, aggressive = self.safe_rules, self.aggressive_rules
        errors = apply_rules(root, safe)
        hidden = remove_hidden_elements(root)
        signals = analyze_technical_content(root)
        if signals.bypass:
            LOGGER.debug(f"Technical content detected (score={signals.score}), applying aggressive rules")
            errors.extend(apply_rules(root, aggressive))
        empty = cleanup_empty_elements(root)
        return PrecleanOutcome(
            bypass=signals.bypass,
            signals=signals,
            errors=errors,
            hidden_removed=hidden,
            empty_removed=empty,
        )
