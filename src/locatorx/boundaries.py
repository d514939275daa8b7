from __future__ import annotations

from lxml.html import HtmlElement

from .config import DEFAULT_CONFIG, EngineConfig
from .models import BoundaryChain, BoundaryHop, FrameBoundary
from .selector_rules import (
    EMBEDDING_TAGS,
    element_tag,
    escape_css_identifier,
    escape_css_string,
    is_valid_identifier,
    same_tag_position,
    source_filename,
)
from .strategies import shortest_css_path
from .structure import DomForest, ScopeRoot


def resolve_boundaries(
    node: HtmlElement,
    forest: DomForest,
    config: EngineConfig | None = None,
) -> BoundaryChain:
    active_config = config or DEFAULT_CONFIG
    scope = forest.scope_of(node)

    shadows: list[ScopeRoot] = []
    current = scope
    while current.kind == "shadow" and current.host is not None:
        shadows.append(current)
        current = forest.scope_of(current.host)

    hops: list[BoundaryHop] = []
    for depth, shadow in enumerate(reversed(shadows), start=1):
        host = shadow.host
        assert host is not None
        hops.append(
            BoundaryHop(
                host=host,
                mode=shadow.mode,
                depth=depth,
                selector=stable_host_selector(host, forest.scope_of(host), active_config),
            )
        )

    frame: FrameBoundary | None = None
    if current.kind == "embedded":
        frame = _frame_boundary(current, forest, active_config)

    return BoundaryChain(scope=scope, hops=tuple(hops), frame=frame)


def stable_host_selector(host: HtmlElement, scope: ScopeRoot, config: EngineConfig | None = None) -> str:
    """Selector that resolves to exactly ``host`` inside ``scope``.

    Candidates in priority order: identifier, name-like attribute, a filename
    fragment of the source reference, the bare tag, the same-tag position and
    finally the structural path. Embedding elements are always tag-qualified.
    """
    active_config = config or DEFAULT_CONFIG
    forest = scope.forest
    for candidate in _host_selector_candidates(host, active_config):
        matches = forest.select(candidate, scope)
        if matches and len(matches) == 1 and matches[0] is host:
            return candidate
    return shortest_css_path(host, scope)


def _host_selector_candidates(host: HtmlElement, config: EngineConfig) -> list[str]:
    tag = element_tag(host)
    embedding = tag in EMBEDDING_TAGS
    limit = config.host_attribute_limit
    candidates: list[str] = []

    raw_id = host.get("id")
    if is_valid_identifier(raw_id):
        id_selector = f"#{escape_css_identifier(raw_id)}"
        candidates.append(f"{tag}{id_selector}" if embedding else id_selector)

    name = (host.get("name") or "").strip()
    if name and len(name) <= limit:
        candidates.append(f'{tag}[name="{escape_css_string(name)}"]')

    filename = source_filename(host.get("src"))
    if filename and len(filename) <= limit:
        candidates.append(f'{tag}[src*="{escape_css_string(filename)}"]')

    if not embedding:
        candidates.append(tag)
    index, _total = same_tag_position(host)
    candidates.append(f"{tag}:nth-of-type({index})")
    return candidates


def _frame_boundary(embedded: ScopeRoot, forest: DomForest, config: EngineConfig) -> FrameBoundary:
    for entry in forest.frames():
        if entry.scope is embedded:
            return FrameBoundary(
                element=entry.element,
                selector=stable_host_selector(entry.element, forest.document, config),
                state=entry.state,
            )
    # The embedding element was replaced or removed since this tree was attached.
    assert embedded.host is not None
    return FrameBoundary(element=embedded.host, selector="", state="pending")
