from __future__ import annotations

import logging

from lxml.html import HtmlElement

from .boundaries import resolve_boundaries
from .composer import ComposedLocator, boundary_aware
from .config import DEFAULT_CONFIG, EngineConfig
from .models import STRATEGIES, BoundaryChain, Locator, LocatorSet, Strategy
from .selector_rules import is_element
from .strategies import GENERATORS, DomAnalyzer
from .structure import DomForest
from .validation import resolve_locator

logger = logging.getLogger("locatorx.engine")


def generate_locator_set(
    node: HtmlElement,
    forest: DomForest,
    config: EngineConfig | None = None,
) -> LocatorSet:
    if not is_element(node):
        raise ValueError("Locators can only be generated for elements.")
    forest.scope_of(node)

    active_config = config or DEFAULT_CONFIG
    try:
        chain = resolve_boundaries(node, forest, active_config)
        return _build_locator_set(node, chain, forest, active_config)
    except Exception:
        logger.exception("Locator generation failed for <%s>", node.tag)
        return LocatorSet(tuple(Locator(strategy, "", None, False, "empty") for strategy in STRATEGIES))


def _build_locator_set(
    node: HtmlElement,
    chain: BoundaryChain,
    forest: DomForest,
    config: EngineConfig,
) -> LocatorSet:
    analyzer = DomAnalyzer(node=node, scope=chain.scope, config=config)
    locators: list[Locator] = []
    for strategy in STRATEGIES:
        composed = boundary_aware(strategy)(GENERATORS[strategy])(analyzer, chain)
        locators.append(_annotate(strategy, composed, forest))
    return LocatorSet(tuple(locators))


def _annotate(strategy: Strategy, composed: ComposedLocator, forest: DomForest) -> Locator:
    if composed.status == "boundary_unsupported":
        return Locator(strategy, "", 0, composed.crosses_boundary, "boundary_unsupported")
    if composed.status != "ok":
        return Locator(strategy, "", None, composed.crosses_boundary, composed.status)

    resolution = resolve_locator(composed.value, strategy, forest.document)
    status = "ok" if resolution.status in ("ok", "empty") else resolution.status
    if status != "ok":
        logger.debug("Generated %s locator %r resolved with status %s", strategy, composed.value, status)
    return Locator(strategy, composed.value, resolution.match_count, composed.crosses_boundary, status)
