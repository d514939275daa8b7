from __future__ import annotations

from dataclasses import dataclass, field
import logging
import re
from typing import Callable

from lxml.html import HtmlElement

from .composer import SHADOW_REPRESENTABLE, split_frame, split_shadow
from .models import LocatorStatus, Strategy, XPATH_STRATEGIES
from .selector_rules import (
    accessible_name,
    escape_css_string,
    infer_role,
    is_element,
    normalize_space,
    unescape_css_string,
)
from .structure import DomForest, ScopeRoot

logger = logging.getLogger("locatorx.engine")

JSPATH_PATTERN = re.compile(r'^document\.querySelector\("(.*)"\)$', re.DOTALL)
PLAYWRIGHT_PREFIXES = ("text=", "role=", "placeholder=")

_ROLE_PATTERN = re.compile(r"^role=(?P<role>[A-Za-z][\w-]*)(?P<filters>.*)$", re.DOTALL)
_ROLE_FILTER_PATTERN = re.compile(r'\[\s*(?P<key>[a-z-]+)\s*(?:=\s*"(?P<value>(?:[^"\\]|\\.)*)"\s*)?\]')
_ROLE_STATE_FILTERS = ("checked", "disabled", "selected", "expanded", "pressed")
_TEXT_SKIP_TAGS = frozenset({"head", "title", "meta", "link", "script", "style", "noscript", "template"})
_REGEX_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL}


@dataclass(frozen=True, slots=True)
class Resolution:
    nodes: list[HtmlElement] = field(default_factory=list)
    status: LocatorStatus = "ok"

    @property
    def match_count(self) -> int:
        return len(self.nodes)


@dataclass(frozen=True, slots=True)
class LocatorValidation:
    unique: bool
    match_count: int
    status: LocatorStatus
    message: str


def resolve_locator(locator: str, strategy: Strategy, scope: ScopeRoot) -> Resolution:
    """Resolve ``locator`` inside ``scope``, crossing boundary markers when present."""
    text = (locator or "").strip()
    if not text:
        return Resolution([], "empty")

    frame_parts = split_frame(text)
    if frame_parts is not None:
        return _resolve_through_frame(frame_parts, strategy, scope)

    shadow_parts = split_shadow(text)
    if shadow_parts is not None:
        return _resolve_through_shadow(shadow_parts, strategy, scope)

    return _resolve_in_scope(text, strategy, scope)


def evaluate(locator: str, strategy: Strategy, scope: ScopeRoot) -> int:
    try:
        return resolve_locator(locator, strategy, scope).match_count
    except Exception:
        logger.exception("Evaluation of %s locator %r failed unexpectedly", strategy, locator)
        return 0


def validate_locator(locator: str, strategy: Strategy, node: HtmlElement, scope: ScopeRoot) -> LocatorValidation:
    """Identity-verified uniqueness: the single match must be ``node`` itself."""
    try:
        resolution = resolve_locator(locator, strategy, scope)
    except Exception:
        logger.exception("Validation of %s locator %r failed unexpectedly", strategy, locator)
        return LocatorValidation(False, 0, "empty", "Locator could not be evaluated.")

    count = resolution.match_count
    if resolution.status not in ("ok", "empty"):
        return LocatorValidation(False, count, resolution.status, f"Locator not resolvable ({resolution.status}).")
    if count == 0:
        return LocatorValidation(False, 0, resolution.status, "Locator matches nothing.")
    if count > 1:
        return LocatorValidation(False, count, resolution.status, "Locator is not unique in scope.")
    if resolution.nodes[0] is not node:
        return LocatorValidation(False, 1, resolution.status, "Locator matches a different element.")
    return LocatorValidation(True, 1, resolution.status, "Locator is unique.")


def _resolve_through_frame(parts: tuple[str, str], strategy: Strategy, scope: ScopeRoot) -> Resolution:
    frame_selector, inner = parts
    if split_frame(inner) is not None:
        logger.debug("Nested embedding in %r is not supported", inner)
        return Resolution([], "boundary_unsupported")

    forest = scope.forest
    hosts = forest.select(frame_selector, scope) if frame_selector else None
    if hosts is None:
        return Resolution([], "invalid_syntax")
    if not hosts:
        return Resolution([], "empty")

    entry = forest.frame_entry(hosts[0])
    if entry is None or entry.state != "loaded" or entry.scope is None:
        logger.debug("Embedded document behind %r is not available", frame_selector)
        return Resolution([], "unresolved_embedding")
    return resolve_locator(inner, strategy, entry.scope)


def _resolve_through_shadow(parts: list[str], strategy: Strategy, scope: ScopeRoot) -> Resolution:
    if not SHADOW_REPRESENTABLE[strategy]:
        logger.debug("%s locators cannot cross shadow boundaries", strategy)
        return Resolution([], "boundary_unsupported")
    if any(not part for part in parts):
        return Resolution([], "invalid_syntax")

    forest = scope.forest
    current = forest.select(parts[0], scope)
    if current is None:
        return Resolution([], "invalid_syntax")

    sealed = False
    last_index = len(parts) - 1
    for index, part in enumerate(parts[1:], start=1):
        found: list[HtmlElement] = []
        for host in current:
            shadow = forest.shadow_scope(host)
            if shadow is None:
                continue
            if shadow.sealed:
                sealed = True
                continue
            if index == last_index:
                resolution = _resolve_in_scope(part, strategy, shadow)
                if resolution.status == "invalid_syntax":
                    return resolution
                found.extend(resolution.nodes)
            else:
                hosts = forest.select(part, shadow)
                if hosts is None:
                    return Resolution([], "invalid_syntax")
                found.extend(hosts)
        current = found

    if current:
        return Resolution(current, "ok")
    if sealed:
        logger.debug("Sealed shadow root reached while resolving %r", parts)
        return Resolution([], "sealed_scope")
    return Resolution([], "empty")


def _resolve_in_scope(text: str, strategy: Strategy, scope: ScopeRoot) -> Resolution:
    forest = scope.forest

    if strategy == "id":
        return _from_selection(forest.select(f'[id="{escape_css_string(text)}"]', scope))
    if strategy == "name":
        return _from_selection(forest.select(f'[name="{escape_css_string(text)}"]', scope))
    if strategy in ("css", "jquery"):
        return _from_selection(forest.select(text, scope))
    if strategy in XPATH_STRATEGIES:
        if not scope.is_document:
            return Resolution([], "boundary_unsupported")
        result = forest.evaluate_xpath(text, scope)
        if result is None:
            return Resolution([], "invalid_syntax")
        return _from_selection([item for item in result if is_element(item)])
    if strategy == "jspath":
        match = JSPATH_PATTERN.match(text)
        if not match:
            return Resolution([], "invalid_syntax")
        return _from_selection(forest.select(unescape_css_string(match.group(1)), scope))
    if strategy == "playwright":
        return _resolve_playwright(text, scope)
    return Resolution([], "invalid_syntax")


def _from_selection(nodes: list[HtmlElement] | None) -> Resolution:
    if nodes is None:
        return Resolution([], "invalid_syntax")
    return Resolution(list(nodes), "ok" if nodes else "empty")


def _resolve_playwright(text: str, scope: ScopeRoot) -> Resolution:
    if text.startswith("text="):
        predicate = _text_predicate(text[len("text="):])
        if predicate is None:
            return Resolution([], "invalid_syntax")
        return _from_selection(_innermost_matches(scope, predicate))
    if text.startswith("role="):
        return _resolve_role(text, scope)
    if text.startswith("placeholder="):
        predicate = _text_predicate(text[len("placeholder="):])
        if predicate is None:
            return Resolution([], "invalid_syntax")
        return _from_selection(
            [
                node
                for node in scope.forest.iter_elements(scope)
                if node.get("placeholder") is not None and predicate(normalize_space(node.get("placeholder")))
            ]
        )
    return _from_selection(scope.forest.select(text, scope))


def _text_predicate(body: str) -> Callable[[str], bool] | None:
    if len(body) >= 2 and body.startswith('"') and body.endswith('"'):
        expected = normalize_space(unescape_css_string(body[1:-1]))
        return lambda value: value == expected

    regex = re.fullmatch(r"/(.*)/([a-z]*)", body, re.DOTALL)
    if regex:
        flags = 0
        for flag in regex.group(2):
            if flag not in _REGEX_FLAGS:
                return None
            flags |= _REGEX_FLAGS[flag]
        try:
            pattern = re.compile(regex.group(1), flags)
        except re.error:
            return None
        return lambda value: pattern.search(value) is not None

    needle = normalize_space(body).lower()
    if not needle:
        return None
    return lambda value: needle in value.lower()


def _innermost_matches(scope: ScopeRoot, predicate: Callable[[str], bool]) -> list[HtmlElement]:
    candidates = [
        node
        for node in scope.forest.iter_elements(scope)
        if str(node.tag).lower() not in _TEXT_SKIP_TAGS and predicate(normalize_space(node.text_content(), limit=100_000))
    ]
    has_matching_descendant: set[HtmlElement] = set()
    for node in candidates:
        parent = node.getparent()
        while parent is not None:
            has_matching_descendant.add(parent)
            parent = parent.getparent()
    return [node for node in candidates if node not in has_matching_descendant]


def _resolve_role(text: str, scope: ScopeRoot) -> Resolution:
    match = _ROLE_PATTERN.match(text)
    if not match:
        return Resolution([], "invalid_syntax")

    role = match.group("role")
    filters = match.group("filters").strip()
    conditions: list[Callable[[HtmlElement], bool]] = []
    position = 0
    while position < len(filters):
        item = _ROLE_FILTER_PATTERN.match(filters, position)
        if not item:
            return Resolution([], "invalid_syntax")
        condition = _role_condition(item.group("key"), item.group("value"))
        if condition is None:
            return Resolution([], "invalid_syntax")
        conditions.append(condition)
        position = item.end()

    nodes = [
        node
        for node in scope.forest.iter_elements(scope)
        if infer_role(node) == role and all(condition(node) for condition in conditions)
    ]
    return _from_selection(nodes)


def _role_condition(key: str, value: str | None) -> Callable[[HtmlElement], bool] | None:
    if key == "name":
        if value is None:
            return lambda node: bool(accessible_name(node))
        expected = normalize_space(unescape_css_string(value))
        return lambda node: accessible_name(node, limit=100_000) == expected
    if key in _ROLE_STATE_FILTERS and value is None:
        return lambda node: node.get(key) is not None or (node.get(f"aria-{key}") or "").lower() == "true"
    return None


def detect_strategy(locator: str) -> Strategy | None:
    """Syntax a free-form locator is written in; ``None`` for bare words and free text."""
    text = (locator or "").strip()
    if not text:
        return None

    frame_parts = split_frame(text)
    if frame_parts is not None:
        return detect_strategy(frame_parts[1])
    if split_shadow(text) is not None:
        return "css"
    if text.startswith(("/", "(")):
        return "xpath"
    if text.startswith(PLAYWRIGHT_PREFIXES):
        return "playwright"
    if JSPATH_PATTERN.match(text):
        return "jspath"
    if text.startswith(("#", ".")) or "[" in text:
        return "css"
    return None


def find_matches(locator: str, forest: DomForest) -> list[HtmlElement]:
    """Nodes a typed-in locator selects, in document order, across frames and open shadow roots."""
    text = (locator or "").strip()
    if not text or text in (".", "#"):
        return []
    try:
        return _find_in_scope(text, forest.document)
    except Exception:
        logger.exception("Free-form evaluation of %r failed unexpectedly", text)
        return []


def _find_in_scope(text: str, scope: ScopeRoot) -> list[HtmlElement]:
    forest = scope.forest

    frame_parts = split_frame(text)
    if frame_parts is not None:
        frame_selector, inner = frame_parts
        hosts = forest.select(frame_selector, scope) if frame_selector else None
        if not hosts:
            return []
        entry = forest.frame_entry(hosts[0])
        if entry is None or entry.scope is None or split_frame(inner) is not None:
            return []
        return _find_in_scope(inner.strip(), entry.scope)

    if split_shadow(text) is not None:
        return resolve_locator(text, "css", scope).nodes

    strategy = detect_strategy(text)
    if strategy in ("xpath", "playwright", "jspath"):
        return resolve_locator(text, strategy, scope).nodes
    if strategy == "css":
        return _select_with_shadows(text, scope) or []

    if re.fullmatch(r"[A-Za-z]+", text):
        tag_matches = _select_with_shadows(text, scope)
        if tag_matches:
            return tag_matches

    by_id = forest.select(f'[id="{escape_css_string(text)}"]', scope)
    if by_id:
        return by_id[:1]
    by_name = forest.select(f'[name="{escape_css_string(text)}"]', scope)
    if by_name:
        return by_name

    selected = forest.select(text, scope)
    if selected:
        return selected
    needle = text.lower()
    return [node for node in forest.iter_elements(scope) if needle in node.text_content().strip().lower()]


def _select_with_shadows(selector: str, scope: ScopeRoot) -> list[HtmlElement] | None:
    forest = scope.forest
    matches = forest.select(selector, scope)
    if matches is None:
        return None
    for shadow in forest.iter_shadow_scopes(scope):
        matches.extend(forest.query_selector_all(selector, shadow))
    return matches
