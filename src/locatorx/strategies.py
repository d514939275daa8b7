from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from lxml.html import HtmlElement

from .config import DEFAULT_CONFIG, EngineConfig
from .models import Strategy
from .selector_rules import (
    FORM_CONTROL_TAGS,
    LIST_TEXT_TAGS,
    PLACEHOLDER_TAGS,
    ROLE_TEXT_TAGS,
    STABLE_XPATH_ATTRS,
    TEST_ATTR_PRIORITY,
    XPATH_TEXT_TAGS,
    accessible_name,
    class_tokens,
    element_tag,
    escape_css_identifier,
    escape_css_string,
    infer_role,
    is_valid_identifier,
    meaningful_classes,
    normalize_space,
    same_tag_position,
    xpath_literal,
)
from .structure import ScopeRoot

Generator = Callable[["DomAnalyzer"], str]


@dataclass(slots=True)
class DomAnalyzer:
    node: HtmlElement
    scope: ScopeRoot
    config: EngineConfig = DEFAULT_CONFIG
    _css: str | None = field(default=None, repr=False)
    _xpaths: tuple[str, str] | None = field(default=None, repr=False)

    @property
    def tag(self) -> str:
        return element_tag(self.node)

    def attr(self, key: str) -> str | None:
        raw = self.node.get(key)
        if raw is None:
            return None
        value = str(raw).strip()
        return value or None

    def text(self) -> str:
        return normalize_space(self.node.text_content())

    def selects_only_node(self, selector: str) -> bool:
        matches = self.scope.forest.select(selector, self.scope)
        return bool(matches) and len(matches) == 1 and matches[0] is self.node

    def xpath_selects_only_node(self, expression: str) -> bool:
        matches = self.scope.forest.evaluate_xpath(expression, self.scope)
        return bool(matches) and len(matches) == 1 and matches[0] is self.node

    def count(self, selector: str) -> int:
        return len(self.scope.forest.query_selector_all(selector, self.scope))

    def css_selector(self) -> str:
        if self._css is None:
            self._css = self._build_css_selector()
        return self._css

    def xpaths(self) -> tuple[str, str]:
        """Return (relative, absolute); both empty outside a document scope."""
        if self._xpaths is None:
            if self.scope.is_document:
                absolute = absolute_xpath(self.node)
                self._xpaths = (self._relative_xpath(absolute), absolute)
            else:
                self._xpaths = ("", "")
        return self._xpaths

    def _build_css_selector(self) -> str:
        raw_id = self.node.get("id")
        if is_valid_identifier(raw_id):
            selector = f"#{escape_css_identifier(raw_id)}"
            if self.selects_only_node(selector):
                return selector

        classes = meaningful_classes(class_tokens(self.node), self.config.internal_class_prefixes)
        for token in classes[: self.config.max_class_tokens]:
            selector = f".{escape_css_identifier(token)}"
            if self.selects_only_node(selector):
                return selector

        return shortest_css_path(self.node, self.scope)

    def _relative_xpath(self, absolute: str) -> str:
        raw_id = self.node.get("id")
        if is_valid_identifier(raw_id):
            expression = f"//*[@id={xpath_literal(raw_id)}]"
            if self.xpath_selects_only_node(expression):
                return expression

        for attr in STABLE_XPATH_ATTRS:
            value = self.node.get(attr)
            if not value or not value.strip():
                continue
            expression = f"//*[@{attr}={xpath_literal(value)}]"
            if self.xpath_selects_only_node(expression):
                return expression

        if self.tag in XPATH_TEXT_TAGS:
            text = self.text()
            if 0 < len(text) < self.config.name_limit:
                expression = f"//{self.tag}[normalize-space(text())={xpath_literal(text)}]"
                if self.xpath_selects_only_node(expression):
                    return expression

        return self._shortest_xpath() or absolute

    def _shortest_xpath(self) -> str | None:
        segments: list[str] = []
        current: HtmlElement | None = self.node
        while current is not None and isinstance(current.tag, str):
            segments.insert(0, _xpath_segment(current))
            expression = "//" + "/".join(segments)
            if self.xpath_selects_only_node(expression):
                return expression
            current = current.getparent()
        return None


def shortest_css_path(node: HtmlElement, scope: ScopeRoot) -> str:
    """Shortest ``a > b > c`` chain that selects only ``node`` inside ``scope``.

    Chains that reach the scope top are anchored there (``:root >`` in a
    document, a leading ``>`` in a shadow root). Empty when nothing is unique.
    """
    forest = scope.forest

    def selects_only(selector: str, target: HtmlElement) -> bool:
        matches = forest.select(selector, scope)
        return bool(matches) and len(matches) == 1 and matches[0] is target

    if node is scope.root:
        return element_tag(node)

    path: list[str] = []
    current: HtmlElement | None = node
    while current is not None and current is not scope.root:
        raw_id = current.get("id")
        if is_valid_identifier(raw_id):
            id_segment = f"#{escape_css_identifier(raw_id)}"
            if selects_only(id_segment, current):
                path.insert(0, id_segment)
                break

        index, total = same_tag_position(current)
        segment = element_tag(current)
        if total > 1:
            segment += f":nth-of-type({index})"
        path.insert(0, segment)

        candidate = " > ".join(path)
        if selects_only(candidate, node):
            return candidate
        current = current.getparent()

    full_path = " > ".join(path)
    if selects_only(full_path, node):
        return full_path
    if not path[0].startswith("#"):
        anchored = f":root > {full_path}" if scope.is_document else f"> {full_path}"
        if selects_only(anchored, node):
            return anchored
    return ""


def absolute_xpath(node: HtmlElement) -> str:
    segments: list[str] = []
    current: HtmlElement | None = node
    while current is not None and isinstance(current.tag, str):
        segments.insert(0, _xpath_segment(current))
        current = current.getparent()
    return "/" + "/".join(segments) if segments else ""


def _xpath_segment(node: HtmlElement) -> str:
    index, total = same_tag_position(node)
    tag = element_tag(node)
    return f"{tag}[{index}]" if total > 1 else tag


# -- generators ---------------------------------------------------------------


def generate_id(analyzer: DomAnalyzer) -> str:
    raw_id = analyzer.node.get("id")
    if not is_valid_identifier(raw_id):
        return ""
    if analyzer.count(f"#{escape_css_identifier(raw_id)}") == 1:
        return raw_id
    return ""


def generate_name(analyzer: DomAnalyzer) -> str:
    if analyzer.tag not in FORM_CONTROL_TAGS:
        return ""
    name = analyzer.node.get("name")
    if not name or not name.strip():
        return ""
    if analyzer.count(f'[name="{escape_css_string(name)}"]') == 1:
        return name
    return ""


def generate_css(analyzer: DomAnalyzer) -> str:
    return analyzer.css_selector()


def generate_xpath(analyzer: DomAnalyzer) -> str:
    return analyzer.xpaths()[0]


def generate_absolute_xpath(analyzer: DomAnalyzer) -> str:
    return analyzer.xpaths()[1]


def generate_playwright(analyzer: DomAnalyzer) -> str:
    for attr in TEST_ATTR_PRIORITY:
        value = analyzer.node.get(attr)
        if value:
            return f'[{attr}="{escape_css_string(value)}"]'

    role = infer_role(analyzer.node)
    if role:
        name = accessible_name(analyzer.node)
        if name and len(name) < analyzer.config.name_limit:
            return f'role={role}[name="{escape_css_string(name)}"]'
        return f"role={role}"

    if analyzer.tag in ROLE_TEXT_TAGS:
        text = analyzer.text()
        if 0 < len(text) < analyzer.config.name_limit:
            return f'text="{escape_css_string(text)}"'

    if analyzer.tag in PLACEHOLDER_TAGS:
        placeholder = analyzer.attr("placeholder")
        if placeholder:
            return f'placeholder="{escape_css_string(placeholder)}"'

    return analyzer.css_selector()


def generate_jspath(analyzer: DomAnalyzer) -> str:
    css = analyzer.css_selector()
    if not css:
        return ""
    return f'document.querySelector("{escape_css_string(css)}")'


def generate_jquery(analyzer: DomAnalyzer) -> str:
    css = analyzer.css_selector()
    if css:
        return css
    if analyzer.tag in LIST_TEXT_TAGS:
        text = analyzer.text()
        if 0 < len(text) < analyzer.config.list_text_limit:
            return f'{analyzer.tag}:contains("{escape_css_string(text)}")'
    return ""


GENERATORS: dict[Strategy, Generator] = {
    "id": generate_id,
    "name": generate_name,
    "css": generate_css,
    "xpath": generate_xpath,
    "absolute_xpath": generate_absolute_xpath,
    "playwright": generate_playwright,
    "jspath": generate_jspath,
    "jquery": generate_jquery,
}
