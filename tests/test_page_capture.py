import logging

import pytest
from playwright.sync_api import Error as PlaywrightError

from locatorx.page_capture import ELEMENT_PATH_SCRIPT, SERIALIZE_DOCUMENT_SCRIPT, capture_page, element_at_path
from locatorx.structure import DomForest


MAIN_HTML = (
    "<html><head></head><body>"
    "<iframe id='a'></iframe>"
    "<div><iframe id='b'></iframe></div>"
    "<x-card id='card'><template shadowrootmode='open'><button>Go</button></template></x-card>"
    "</body></html>"
)


class FakeHandle:
    def __init__(self, path=None, error: Exception | None = None) -> None:
        self._path = path
        self._error = error

    def evaluate(self, script: str):
        assert script == ELEMENT_PATH_SCRIPT
        if self._error is not None:
            raise self._error
        return self._path


class FakeFrame:
    def __init__(self, url: str, html: str | None = None, handle: FakeHandle | None = None, error: Exception | None = None) -> None:
        self.url = url
        self.child_frames: list["FakeFrame"] = []
        self._html = html
        self._handle = handle
        self._error = error

    def evaluate(self, script: str):
        assert script == SERIALIZE_DOCUMENT_SCRIPT
        if self._error is not None:
            raise self._error
        return self._html

    def frame_element(self) -> FakeHandle:
        assert self._handle is not None
        return self._handle


class FakePage:
    def __init__(self, main_frame: FakeFrame) -> None:
        self.main_frame = main_frame


def _page(*children: FakeFrame) -> FakePage:
    main = FakeFrame("https://app.example.org/", MAIN_HTML)
    main.child_frames = list(children)
    return FakePage(main)


def test_capture_page_snapshots_main_document_and_shadow_roots() -> None:
    forest = capture_page(_page())

    card = forest.query_selector_all("#card", forest.document)[0]
    shadow = forest.shadow_scope(card)
    assert shadow is not None
    assert len(forest.query_selector_all("button", shadow)) == 1
    assert {entry.state for entry in forest.frames()} == {"pending"}


def test_readable_child_frames_are_loaded() -> None:
    frame = FakeFrame("https://app.example.org/a.html", "<p id='inside'>hi</p>", FakeHandle([1, 0]))

    forest = capture_page(_page(frame))

    iframe = forest.query_selector_all("#a", forest.document)[0]
    scope = forest.frame_scope(iframe)
    assert scope is not None
    assert len(forest.query_selector_all("#inside", scope)) == 1


def test_unreadable_child_frames_are_marked_cross_origin(caplog: pytest.LogCaptureFixture) -> None:
    frame = FakeFrame("https://ads.example.net/", handle=FakeHandle([1, 1, 0]), error=PlaywrightError("blocked"))

    with caplog.at_level(logging.INFO, logger="locatorx.capture"):
        forest = capture_page(_page(frame))

    iframe = forest.query_selector_all("#b", forest.document)[0]
    entry = forest.frame_entry(iframe)
    assert entry is not None
    assert entry.state == "cross_origin"
    assert "cross-origin" in caplog.text


def test_frames_without_usable_embedding_element_are_skipped(caplog: pytest.LogCaptureFixture) -> None:
    detached = FakeFrame("https://x.example/1", "<p>x</p>", FakeHandle(error=PlaywrightError("detached")))
    in_shadow = FakeFrame("https://x.example/2", "<p>x</p>", FakeHandle(None))
    wrong_target = FakeFrame("https://x.example/3", "<p>x</p>", FakeHandle([1, 1]))

    with caplog.at_level(logging.WARNING, logger="locatorx.capture"):
        forest = capture_page(_page(detached, in_shadow, wrong_target))

    assert {entry.state for entry in forest.frames()} == {"pending"}
    assert caplog.text.count("Skipping frame") == 3


def test_element_at_path_rejects_bad_indexes() -> None:
    forest = DomForest.from_html(MAIN_HTML)
    root = forest.document.root

    assert element_at_path(root, []) is root
    assert element_at_path(root, [1, 0]).get("id") == "a"
    assert element_at_path(root, [1, 9]) is None
    assert element_at_path(root, [True]) is None
    assert element_at_path(root, ["1"]) is None
