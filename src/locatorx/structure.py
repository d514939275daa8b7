"""Live document forest: the primary document, its shadow roots and frames.

Every scope is an lxml tree. Shadow roots live in a synthetic ``shadow-root``
container element so that each one can be queried on its own; the container
never appears in query results or generated locators.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
import logging
from typing import Iterator, Mapping

from cssselect import HTMLTranslator, SelectorError
from lxml import etree
import lxml.html
from lxml.html import HtmlElement

from .models import AccessMode, FrameState, ScopeKind
from .selector_rules import EMBEDDING_TAGS, element_children, element_tag, is_element

logger = logging.getLogger("locatorx.engine")

SHADOW_CONTAINER_TAG = "shadow-root"
_SHADOW_TEMPLATE_ATTRS = ("shadowrootmode", "shadowroot")
_BLANK_DOCUMENT = "<html><head></head><body></body></html>"
_TRANSLATOR = HTMLTranslator()


@dataclass(eq=False, slots=True)
class ScopeRoot:
    kind: ScopeKind
    root: HtmlElement
    forest: DomForest = field(repr=False)
    host: HtmlElement | None = None
    mode: AccessMode = "open"
    parent: ScopeRoot | None = field(default=None, repr=False)

    @property
    def sealed(self) -> bool:
        return self.kind == "shadow" and self.mode == "closed"

    @property
    def is_document(self) -> bool:
        return self.kind in ("document", "embedded")


@dataclass(eq=False, slots=True)
class FrameEntry:
    element: HtmlElement
    state: FrameState
    scope: ScopeRoot | None = None


class DomForest:
    def __init__(self, document_root: HtmlElement) -> None:
        self._scopes: dict[HtmlElement, ScopeRoot] = {}
        self._shadow_by_host: dict[HtmlElement, ScopeRoot] = {}
        self._frames: dict[HtmlElement, FrameEntry] = {}
        self.document = self._register(ScopeRoot(kind="document", root=document_root, forest=self))

    @classmethod
    def from_html(cls, html: str, frames: Mapping[str, str] | None = None) -> DomForest:
        forest = cls(_parse_document(html))
        forest._extract_shadow_roots(forest.document)
        frame_sources = dict(frames or {})
        for iframe in [node for node in forest.document.root.iter() if _is_embedding(node)]:
            srcdoc = iframe.get("srcdoc")
            src = (iframe.get("src") or "").strip()
            if srcdoc is not None:
                forest.attach_frame(iframe, srcdoc)
            elif src and src in frame_sources:
                forest.attach_frame(iframe, frame_sources[src])
            else:
                forest.attach_frame(iframe, None)
        return forest

    # -- registry -----------------------------------------------------------

    def scope_of(self, node: HtmlElement) -> ScopeRoot:
        scope = self._scopes.get(node.getroottree().getroot())
        if scope is None:
            raise ValueError("Node does not belong to this forest.")
        return scope

    def owns(self, node: HtmlElement) -> bool:
        return node.getroottree().getroot() in self._scopes

    def shadow_scope(self, host: HtmlElement) -> ScopeRoot | None:
        return self._shadow_by_host.get(host)

    def frame_entry(self, element: HtmlElement) -> FrameEntry | None:
        entry = self._frames.get(element)
        if entry is None or not self._is_live(element):
            return None
        return entry

    def frame_scope(self, element: HtmlElement) -> ScopeRoot | None:
        entry = self.frame_entry(element)
        return entry.scope if entry else None

    def frames(self) -> list[FrameEntry]:
        return [entry for element, entry in self._frames.items() if self._is_live(element)]

    def scopes(self) -> list[ScopeRoot]:
        return list(self._scopes.values())

    def attach_shadow(self, host: HtmlElement, html: str = "", mode: AccessMode = "open") -> ScopeRoot:
        if not is_element(host) or not self.owns(host):
            raise ValueError("Shadow host must be an element of this forest.")
        if host in self._shadow_by_host:
            raise ValueError("Host already has a shadow root.")
        if self.scope_of(host).kind == "shadow" and host is self.scope_of(host).root:
            raise ValueError("A shadow root container cannot host a shadow root.")

        container = lxml.html.Element(SHADOW_CONTAINER_TAG)
        if html.strip():
            fragments = lxml.html.fragments_fromstring(html)
            for fragment in fragments:
                if isinstance(fragment, str):
                    container.text = (container.text or "") + fragment
                else:
                    container.append(fragment)
        scope = self._register_shadow(host, container, mode)
        self._extract_shadow_roots(scope)
        return scope

    def attach_frame(
        self,
        element: HtmlElement,
        html: str | None,
        *,
        cross_origin: bool = False,
    ) -> FrameEntry:
        if not _is_embedding(element):
            raise ValueError(f"Cannot embed a document into <{element.tag}>.")
        if not self.owns(element) or self.scope_of(element) is not self.document:
            raise ValueError("Only embedding elements of the primary document can be registered.")

        previous = self._frames.get(element)
        if previous is not None and previous.scope is not None:
            self._unregister_tree(previous.scope)

        if cross_origin:
            entry = FrameEntry(element=element, state="cross_origin")
        elif html is None:
            entry = FrameEntry(element=element, state="pending")
        else:
            scope = self._register(
                ScopeRoot(kind="embedded", root=_parse_document(html), forest=self, host=element, parent=self.document)
            )
            self._extract_shadow_roots(scope)
            entry = FrameEntry(element=element, state="loaded", scope=scope)
        self._frames[element] = entry
        return entry

    # -- traversal ----------------------------------------------------------

    def iter_elements(self, scope: ScopeRoot) -> Iterator[HtmlElement]:
        for node in scope.root.iter():
            if not isinstance(node.tag, str):
                continue
            if scope.kind == "shadow" and node is scope.root:
                continue
            yield node

    def iter_shadow_scopes(self, scope: ScopeRoot) -> Iterator[ScopeRoot]:
        """Open shadow roots reachable from ``scope``, nested ones after their host's."""
        for node in self.iter_elements(scope):
            shadow = self._shadow_by_host.get(node)
            if shadow is None or shadow.sealed:
                continue
            yield shadow
            yield from self.iter_shadow_scopes(shadow)

    def children(self, node: HtmlElement) -> list[HtmlElement]:
        return element_children(node)

    def text_content(self, node: HtmlElement) -> str:
        return str(node.text_content())

    # -- query primitives ---------------------------------------------------

    def select(self, selector: str, scope: ScopeRoot) -> list[HtmlElement] | None:
        """CSS query within ``scope``; ``None`` when the selector is invalid.

        Inside a shadow scope a leading ``>`` anchors the selector at the
        shadow root, so ``> div`` matches only its top-level ``div`` children.
        """
        source = selector.strip()
        if scope.kind == "shadow" and source.startswith(">"):
            source = f"{SHADOW_CONTAINER_TAG} {source}"
        try:
            expression = _css_to_xpath(source)
            matches = scope.root.xpath(expression)
        except (SelectorError, etree.XPathError) as exc:
            logger.debug("Invalid selector %r: %s", selector, exc)
            return None
        return [
            node
            for node in matches
            if is_element(node) and not (scope.kind == "shadow" and node is scope.root)
        ]

    def query_selector_all(self, selector: str, scope: ScopeRoot) -> list[HtmlElement]:
        return self.select(selector, scope) or []

    def evaluate_xpath(self, expression: str, scope: ScopeRoot) -> list | None:
        """Ordered snapshot of ``expression``; ``None`` for invalid or non node-set results."""
        if not scope.is_document:
            return None
        try:
            result = scope.root.getroottree().xpath(expression)
        except etree.XPathError as exc:
            logger.debug("Invalid XPath %r: %s", expression, exc)
            return None
        if not isinstance(result, list):
            return None
        return result

    # -- internals ----------------------------------------------------------

    def _register(self, scope: ScopeRoot) -> ScopeRoot:
        self._scopes[scope.root] = scope
        return scope

    def _register_shadow(self, host: HtmlElement, container: HtmlElement, mode: str) -> ScopeRoot:
        normalized: AccessMode = "closed" if mode.strip().lower() == "closed" else "open"
        scope = self._register(
            ScopeRoot(
                kind="shadow",
                root=container,
                forest=self,
                host=host,
                mode=normalized,
                parent=self.scope_of(host),
            )
        )
        self._shadow_by_host[host] = scope
        return scope

    def _extract_shadow_roots(self, scope: ScopeRoot) -> None:
        for template in list(scope.root.iter("template")):
            mode = next((template.get(attr) for attr in _SHADOW_TEMPLATE_ATTRS if template.get(attr)), None)
            if mode is None:
                continue
            if template.getroottree().getroot() is not scope.root:
                continue
            host = template.getparent()
            if host is None or host is scope.root or host in self._shadow_by_host:
                continue

            container = lxml.html.Element(SHADOW_CONTAINER_TAG)
            container.text = template.text
            for child in list(template):
                container.append(child)
            _detach(template)
            nested = self._register_shadow(host, container, mode)
            self._extract_shadow_roots(nested)

    def _unregister_tree(self, top: ScopeRoot) -> None:
        for root, scope in list(self._scopes.items()):
            current: ScopeRoot | None = scope
            while current is not None and current is not top:
                current = current.parent
            if current is None:
                continue
            del self._scopes[root]
            if scope.host is not None and self._shadow_by_host.get(scope.host) is scope:
                del self._shadow_by_host[scope.host]

    def _is_live(self, element: HtmlElement) -> bool:
        return element.getroottree().getroot() is self.document.root


@lru_cache(maxsize=512)
def _css_to_xpath(selector: str) -> str:
    return _TRANSLATOR.css_to_xpath(selector)


def _parse_document(html: str) -> HtmlElement:
    source = html if html and html.strip() else _BLANK_DOCUMENT
    try:
        return lxml.html.document_fromstring(source)
    except etree.ParserError:
        return lxml.html.document_fromstring(_BLANK_DOCUMENT)


def _is_embedding(node: object) -> bool:
    return is_element(node) and element_tag(node) in EMBEDDING_TAGS  # type: ignore[arg-type]


def _detach(node: HtmlElement) -> None:
    parent = node.getparent()
    if parent is None:
        return
    if node.tail:
        previous = node.getprevious()
        if previous is not None:
            previous.tail = (previous.tail or "") + node.tail
        else:
            parent.text = (parent.text or "") + node.tail
    parent.remove(node)
