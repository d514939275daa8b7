from __future__ import annotations

from dataclasses import dataclass, field

from lxml.html import HtmlElement

from .boundaries import resolve_boundaries
from .models import AccessMode, BoundaryHop
from .selector_rules import element_children, element_tag
from .structure import DomForest

ATTRIBUTE_PREVIEW_LIMIT = 50
TEXT_PREVIEW_LIMIT = 30
SIBLING_PREVIEW_COUNT = 3
SIBLING_ATTRIBUTE_COUNT = 2
SIBLING_PREVIEW_LIMIT = 20


@dataclass(frozen=True, slots=True)
class ShadowRootInfo:
    mode: AccessMode
    accessible: bool
    child_element_count: int


@dataclass(frozen=True, slots=True)
class ShadowInfo:
    in_shadow: bool
    depth: int
    mode: AccessMode | None
    path: tuple[BoundaryHop, ...]
    is_host: bool
    root_info: ShadowRootInfo | None


@dataclass(slots=True)
class HierarchyLevel:
    tag: str
    attributes: list[tuple[str, str]]
    text: str | None
    children: list[HierarchyLevel] = field(default_factory=list)
    is_shadow_host: bool = False
    is_shadow_child: bool = False
    shadow_depth: int = 0
    shadow_mode: AccessMode | None = None
    shadow_root: ShadowRootInfo | None = None


@dataclass(frozen=True, slots=True)
class ElementHierarchy:
    root: HierarchyLevel | None
    target_index: int


def shadow_root_info(node: HtmlElement, forest: DomForest) -> ShadowRootInfo | None:
    shadow = forest.shadow_scope(node)
    if shadow is None or shadow.sealed:
        return None
    return ShadowRootInfo(
        mode=shadow.mode,
        accessible=True,
        child_element_count=len(element_children(shadow.root)),
    )


def shadow_info(node: HtmlElement, forest: DomForest) -> ShadowInfo:
    chain = resolve_boundaries(node, forest)
    scope = chain.scope
    root_info = shadow_root_info(node, forest)
    return ShadowInfo(
        in_shadow=chain.in_shadow,
        depth=chain.depth,
        mode=scope.mode if scope.kind == "shadow" else None,
        path=chain.hops,
        is_host=root_info is not None,
        root_info=root_info,
    )


def build_element_hierarchy(node: HtmlElement, forest: DomForest) -> ElementHierarchy:
    """Ancestor chain down to ``node``, crossing shadow hosts, with sibling previews per level."""
    previous: HierarchyLevel | None = None
    levels = 0
    current: HtmlElement | None = node
    while current is not None:
        scope = forest.scope_of(current)
        if scope.is_document and current is scope.root:
            break

        info = shadow_info(current, forest)
        level = HierarchyLevel(
            tag=element_tag(current),
            attributes=_attribute_preview(current, len(current.attrib), ATTRIBUTE_PREVIEW_LIMIT),
            text=_direct_text(current, TEXT_PREVIEW_LIMIT),
            is_shadow_host=info.is_host,
            is_shadow_child=info.in_shadow,
            shadow_depth=info.depth,
            shadow_mode=info.mode,
            shadow_root=info.root_info,
        )

        parent = current.getparent()
        if parent is not None:
            level.children.extend(
                _sibling_preview(sibling)
                for sibling in [item for item in element_children(parent) if item is not current][:SIBLING_PREVIEW_COUNT]
            )
        if previous is not None:
            level.children.append(previous)

        previous = level
        levels += 1
        if scope.kind == "shadow" and parent is scope.root:
            current = scope.host
        else:
            current = parent

    return ElementHierarchy(root=previous, target_index=max(levels - 1, 0))


def _sibling_preview(sibling: HtmlElement) -> HierarchyLevel:
    return HierarchyLevel(
        tag=element_tag(sibling),
        attributes=_attribute_preview(sibling, SIBLING_ATTRIBUTE_COUNT, SIBLING_PREVIEW_LIMIT),
        text=_direct_text(sibling, SIBLING_PREVIEW_LIMIT),
    )


def _attribute_preview(node: HtmlElement, count: int, limit: int) -> list[tuple[str, str]]:
    preview: list[tuple[str, str]] = []
    for name, value in list(node.attrib.items())[:count]:
        text = str(value)
        preview.append((str(name), text[:limit] + "..." if len(text) > limit else text))
    return preview


def _direct_text(node: HtmlElement, limit: int) -> str | None:
    if len(node) or not node.text:
        return None
    return node.text.strip()[:limit]
