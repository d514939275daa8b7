from __future__ import annotations

from dataclasses import dataclass
from functools import wraps
from typing import Callable

from .models import BoundaryChain, LocatorStatus, Strategy
from .strategies import DomAnalyzer, Generator

SHADOW_MARKER = "::shadow"
SHADOW_JOIN = "::shadow "
FRAME_JOIN = " >>> "

# Whether a strategy can express a path through shadow hosts. Every strategy
# can be prefixed with an embedding-element selector.
SHADOW_REPRESENTABLE: dict[Strategy, bool] = {
    "id": True,
    "name": True,
    "css": True,
    "xpath": False,
    "absolute_xpath": False,
    "playwright": True,
    "jspath": False,
    "jquery": True,
}


@dataclass(frozen=True, slots=True)
class ComposedLocator:
    value: str
    status: LocatorStatus
    crosses_boundary: bool


ComposedGenerator = Callable[[DomAnalyzer, BoundaryChain], ComposedLocator]


def boundary_aware(strategy: Strategy) -> Callable[[Generator], ComposedGenerator]:
    def decorate(generator: Generator) -> ComposedGenerator:
        @wraps(generator)
        def composed(analyzer: DomAnalyzer, chain: BoundaryChain) -> ComposedLocator:
            crosses = chain.crosses_boundary
            if chain.sealed:
                return ComposedLocator("", "sealed_scope", crosses)
            if chain.in_shadow and not SHADOW_REPRESENTABLE[strategy]:
                return ComposedLocator("", "boundary_unsupported", crosses)

            raw = generator(analyzer)
            if not raw:
                return ComposedLocator("", "empty", crosses)
            return ComposedLocator(compose_boundaries(raw, chain), "ok", crosses)

        return composed

    return decorate


def compose_boundaries(value: str, chain: BoundaryChain) -> str:
    composed = "".join(f"{hop.selector}{SHADOW_JOIN}" for hop in chain.hops) + value
    if chain.frame is not None and chain.frame.selector:
        composed = f"{chain.frame.selector}{FRAME_JOIN}{composed}"
    return composed


def split_frame(locator: str) -> tuple[str, str] | None:
    positions = _marker_positions(locator, FRAME_JOIN)
    if not positions:
        return None
    first = positions[0]
    return locator[:first].strip(), locator[first + len(FRAME_JOIN):]


def split_shadow(locator: str) -> list[str] | None:
    positions = _marker_positions(locator, SHADOW_MARKER)
    if not positions:
        return None
    starts = [0] + [position + len(SHADOW_MARKER) for position in positions]
    ends = positions + [len(locator)]
    return [locator[start:end].strip() for start, end in zip(starts, ends)]


def _marker_positions(locator: str, marker: str) -> list[int]:
    """Offsets of ``marker`` outside double-quoted spans."""
    positions: list[int] = []
    quoted = False
    index = 0
    while index < len(locator):
        char = locator[index]
        if quoted and char == "\\":
            index += 2
            continue
        if char == '"':
            quoted = not quoted
        elif not quoted and locator.startswith(marker, index):
            positions.append(index)
            index += len(marker)
            continue
        index += 1
    return positions
