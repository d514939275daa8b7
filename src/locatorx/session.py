from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, TypeVar

from lxml.html import HtmlElement

T = TypeVar("T")


@dataclass(slots=True)
class CaptureSession:
    capture_enabled: bool = False
    element_captured: bool = False
    busy: bool = False
    last_captured: HtmlElement | None = None

    def set_capture_mode(self, enabled: bool) -> None:
        self.capture_enabled = enabled
        self.element_captured = False

    def toggle(self) -> bool:
        self.set_capture_mode(not self.capture_enabled)
        return self.capture_enabled

    def accepts_hover(self) -> bool:
        return self.capture_enabled and not self.element_captured

    def begin(self) -> bool:
        if self.busy:
            return False
        self.busy = True
        return True

    def run_and_finish(self, callback: Callable[[], T]) -> T:
        try:
            return callback()
        finally:
            self.busy = False

    def mark_captured(self, node: HtmlElement) -> None:
        self.last_captured = node
        self.element_captured = True
        self.capture_enabled = False
