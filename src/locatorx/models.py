from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator, Literal

from lxml.html import HtmlElement

if TYPE_CHECKING:
    from .structure import ScopeRoot

Strategy = Literal["id", "name", "css", "xpath", "absolute_xpath", "playwright", "jspath", "jquery"]
ScopeKind = Literal["document", "shadow", "embedded"]
AccessMode = Literal["open", "closed"]
FrameState = Literal["loaded", "pending", "cross_origin"]
LocatorStatus = Literal[
    "ok",
    "empty",
    "invalid_syntax",
    "boundary_unsupported",
    "sealed_scope",
    "unresolved_embedding",
]

STRATEGIES: tuple[Strategy, ...] = (
    "id",
    "name",
    "css",
    "xpath",
    "absolute_xpath",
    "playwright",
    "jspath",
    "jquery",
)

XPATH_STRATEGIES: frozenset[Strategy] = frozenset({"xpath", "absolute_xpath"})


@dataclass(frozen=True, slots=True)
class BoundaryHop:
    host: HtmlElement
    mode: AccessMode
    depth: int
    selector: str


@dataclass(frozen=True, slots=True)
class FrameBoundary:
    element: HtmlElement
    selector: str
    state: FrameState


@dataclass(frozen=True, slots=True)
class BoundaryChain:
    scope: ScopeRoot
    hops: tuple[BoundaryHop, ...] = ()
    frame: FrameBoundary | None = None

    @property
    def depth(self) -> int:
        return len(self.hops)

    @property
    def in_shadow(self) -> bool:
        return bool(self.hops)

    @property
    def in_frame(self) -> bool:
        return self.frame is not None

    @property
    def sealed(self) -> bool:
        return any(hop.mode == "closed" for hop in self.hops)

    @property
    def crosses_boundary(self) -> bool:
        return self.in_shadow or self.in_frame


@dataclass(frozen=True, slots=True)
class Locator:
    strategy: Strategy
    value: str
    match_count: int | None
    crosses_boundary: bool = False
    status: LocatorStatus = "ok"

    @property
    def is_unique(self) -> bool:
        return self.match_count == 1

    @property
    def applicable(self) -> bool:
        return self.match_count is not None


@dataclass(frozen=True, slots=True)
class LocatorSet:
    locators: tuple[Locator, ...]

    def __getitem__(self, strategy: Strategy) -> Locator:
        for locator in self.locators:
            if locator.strategy == strategy:
                return locator
        raise KeyError(strategy)

    def __iter__(self) -> Iterator[Locator]:
        return iter(self.locators)

    def __len__(self) -> int:
        return len(self.locators)

    def get(self, strategy: Strategy) -> Locator | None:
        for locator in self.locators:
            if locator.strategy == strategy:
                return locator
        return None

    def values(self) -> dict[Strategy, str]:
        return {locator.strategy: locator.value for locator in self.locators}


@dataclass(slots=True)
class SuggestionCandidate:
    value: str
    score: int
