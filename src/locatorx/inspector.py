from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Callable

from lxml.html import HtmlElement

from .config import DEFAULT_CONFIG, EngineConfig
from .hierarchy import ElementHierarchy, ShadowInfo, build_element_hierarchy, shadow_info
from .locator_generator import generate_locator_set
from .models import LocatorSet
from .selector_rules import class_tokens, element_tag
from .session import CaptureSession
from .structure import DomForest

logger = logging.getLogger("locatorx.capture")

HitTest = Callable[[HtmlElement], HtmlElement | None]

SEALED_NOTICE = "Closed Shadow DOM - internal elements cannot be accessed"


@dataclass(frozen=True, slots=True)
class BlockerInfo:
    blocker: HtmlElement
    relative_xpath: str
    absolute_xpath: str


@dataclass(frozen=True, slots=True)
class CaptureReport:
    node: HtmlElement
    locators: LocatorSet
    hierarchy: ElementHierarchy | None
    shadow: ShadowInfo
    blocker: BlockerInfo | None
    notice: str | None
    permanent: bool
    status_text: str


def find_blocker(
    node: HtmlElement,
    forest: DomForest,
    hit_test: HitTest | None,
    config: EngineConfig | None = None,
) -> BlockerInfo | None:
    """Topmost node covering ``node`` according to ``hit_test``, when it is not ``node`` itself."""
    if hit_test is None:
        return None
    topmost = hit_test(node)
    if topmost is None or topmost is node:
        return None
    if not forest.owns(topmost):
        return BlockerInfo(blocker=topmost, relative_xpath="", absolute_xpath="")
    locators = generate_locator_set(topmost, forest, config)
    return BlockerInfo(
        blocker=topmost,
        relative_xpath=locators["xpath"].value,
        absolute_xpath=locators["absolute_xpath"].value,
    )


def capture(
    session: CaptureSession,
    node: HtmlElement,
    forest: DomForest,
    *,
    hit_test: HitTest | None = None,
    config: EngineConfig | None = None,
) -> CaptureReport | None:
    if not session.capture_enabled:
        return None
    if not session.begin():
        logger.info("Capture skipped because busy.")
        return None

    def _run() -> CaptureReport:
        logger.info("Capture started for <%s>.", element_tag(node))
        report = _build_report(node, forest, hit_test, config, hovering=False)
        session.mark_captured(node)
        logger.info("Capture ended.")
        return report

    return session.run_and_finish(_run)


def hover(
    session: CaptureSession,
    node: HtmlElement,
    forest: DomForest,
    *,
    hit_test: HitTest | None = None,
    config: EngineConfig | None = None,
) -> CaptureReport | None:
    if not session.accepts_hover():
        return None
    return _build_report(node, forest, hit_test, config, hovering=True)


def _build_report(
    node: HtmlElement,
    forest: DomForest,
    hit_test: HitTest | None,
    config: EngineConfig | None,
    *,
    hovering: bool,
) -> CaptureReport:
    locators = generate_locator_set(node, forest, config)
    info = shadow_info(node, forest)
    shadow = forest.shadow_scope(node)
    sealed_host = shadow is not None and shadow.sealed

    hierarchy = None
    if not hovering or info.in_shadow:
        hierarchy = build_element_hierarchy(node, forest)

    prefixes = (config or DEFAULT_CONFIG).internal_class_prefixes
    label = _element_label(node, prefixes, with_class=not sealed_host or hovering)
    if hovering:
        status_text = f"Hovering: {label}"
    elif sealed_host:
        status_text = f"Captured: {label} (Closed Shadow DOM - internal elements not accessible)"
    else:
        status_text = f"Captured: {label}"

    return CaptureReport(
        node=node,
        locators=locators,
        hierarchy=hierarchy,
        shadow=info,
        blocker=find_blocker(node, forest, hit_test, config),
        notice=SEALED_NOTICE if sealed_host and not hovering else None,
        permanent=not hovering or info.in_shadow,
        status_text=status_text,
    )


def _element_label(node: HtmlElement, internal_prefixes: tuple[str, ...], *, with_class: bool) -> str:
    label = element_tag(node)
    node_id = node.get("id")
    if node_id:
        label += f" #{node_id}"
    tokens = class_tokens(node)
    if with_class and tokens and not any(token.startswith(internal_prefixes) for token in tokens):
        label += f" .{tokens[0]}"
    return label
