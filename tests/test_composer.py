from locatorx.composer import split_frame, split_shadow
from locatorx.structure import DomForest
from locatorx.validation import detect_strategy, resolve_locator


def test_split_shadow_breaks_on_every_marker() -> None:
    assert split_shadow("#outer::shadow x-inner::shadow .leaf") == ["#outer", "x-inner", ".leaf"]
    assert split_shadow("#h::shadow > div") == ["#h", "> div"]
    assert split_shadow(".plain") is None


def test_markers_inside_quoted_text_are_not_boundaries() -> None:
    assert split_shadow('text="a::shadow b"') is None
    assert split_shadow('#panel::shadow text="a::shadow b"') == ["#panel", 'text="a::shadow b"']
    assert split_shadow('[title="say \\"hi::shadow\\""]') is None
    assert split_frame('text="x >>> y"') is None
    assert split_frame('iframe#f >>> text="x >>> y"') == ("iframe#f", 'text="x >>> y"')


def test_quoted_marker_text_resolves_as_plain_text() -> None:
    forest = DomForest.from_html("<p>a::shadow b</p><p>x >>> y</p>")

    assert detect_strategy('text="a::shadow b"') == "playwright"
    assert [node.text for node in resolve_locator('text="a::shadow b"', "playwright", forest.document).nodes] == ["a::shadow b"]
    assert [node.text for node in resolve_locator('text="x >>> y"', "playwright", forest.document).nodes] == ["x >>> y"]
