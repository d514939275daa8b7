import logging

import lxml.html
import pytest

from locatorx.config import EngineConfig
from locatorx.locator_generator import generate_locator_set
from locatorx.models import STRATEGIES
from locatorx.strategies import GENERATORS
from locatorx.structure import DomForest
from locatorx.validation import resolve_locator


def _first(forest: DomForest, selector: str, scope=None):
    return forest.query_selector_all(selector, scope or forest.document)[0]


LOGIN_HTML = """
<html><body>
  <form id="login">
    <input id="user" name="username" placeholder="User name">
    <input type="password" name="password" placeholder="Password">
    <button type="submit" data-testid="submit-btn">Sign in</button>
  </form>
  <div id="a"><span class="x"></span><span class="x"></span></div>
  <a href="/help">Help</a>
  <ul><li class="item">one</li><li class="item">two</li></ul>
</body></html>
"""

SHADOW_HTML = """
<html><body>
  <div id="app">
    <x-panel id="panel"><template shadowrootmode="open">
      <button class="save">Save</button><span>note</span>
    </template></x-panel>
    <x-lock id="lock"><template shadowrootmode="closed"><input name="secret" id="secret"></template></x-lock>
  </div>
</body></html>
"""

FRAME_HTML = """
<html><body>
  <iframe id="checkout" srcdoc="<button id='pay'>Pay</button><p>total</p>"></iframe>
</body></html>
"""


def test_locator_set_contains_every_strategy_in_order() -> None:
    forest = DomForest.from_html(LOGIN_HTML)
    locators = generate_locator_set(_first(forest, "#user"), forest)

    assert [locator.strategy for locator in locators] == list(STRATEGIES)
    assert len(locators) == 8


def test_unique_identifier_round_trips_for_id_css_and_xpath() -> None:
    forest = DomForest.from_html(LOGIN_HTML)
    node = _first(forest, "#user")
    locators = generate_locator_set(node, forest)

    assert locators["id"].value == "user"
    assert locators["css"].value == "#user"
    assert locators["xpath"].value == "//*[@id='user']"
    for strategy in ("id", "css", "xpath"):
        locator = locators[strategy]
        assert locator.match_count == 1
        assert locator.is_unique is True
        assert resolve_locator(locator.value, strategy, forest.document).nodes == [node]


def test_structural_path_round_trips_for_every_element() -> None:
    forest = DomForest.from_html(LOGIN_HTML)

    for node in forest.iter_elements(forest.document):
        css = generate_locator_set(node, forest)["css"]
        assert css.status == "ok"
        assert resolve_locator(css.value, "css", forest.document).nodes == [node], css.value


NESTED_SHADOW_HTML = """
<html><body>
  <x-host id="h"><template shadowrootmode="open">
    <div><div>in</div></div><section><p>a</p><div><p>b</p></div></section>
  </template></x-host>
</body></html>
"""


def test_structural_path_round_trips_for_every_shadow_element() -> None:
    forest = DomForest.from_html(NESTED_SHADOW_HTML)
    shadow = forest.shadow_scope(_first(forest, "#h"))

    for node in forest.iter_elements(shadow):
        locators = generate_locator_set(node, forest)
        for strategy in ("css", "playwright", "jquery"):
            locator = locators[strategy]
            assert locator.status == "ok"
            assert resolve_locator(locator.value, strategy, forest.document).nodes == [node], locator.value


def test_top_level_shadow_child_is_anchored_at_shadow_root() -> None:
    forest = DomForest.from_html(NESTED_SHADOW_HTML)
    shadow = forest.shadow_scope(_first(forest, "#h"))
    outer = forest.query_selector_all("div", shadow)[0]

    locators = generate_locator_set(outer, forest)

    assert locators["css"].value == "#h::shadow > div"
    assert locators["css"].match_count == 1
    assert locators["jquery"].value == "#h::shadow > div"
    assert locators["playwright"].value == "#h::shadow > div"


def test_same_tag_siblings_get_positional_disambiguation() -> None:
    forest = DomForest.from_html(LOGIN_HTML)
    first, second = forest.query_selector_all("#a > span", forest.document)

    first_set = generate_locator_set(first, forest)
    second_set = generate_locator_set(second, forest)

    assert first_set["css"].value == "span:nth-of-type(1)"
    assert second_set["css"].value == "span:nth-of-type(2)"
    assert first_set["xpath"].value == "//span[1]"
    assert second_set["xpath"].value == "//span[2]"
    for locators in (first_set, second_set):
        assert locators["css"].match_count == 1
        assert locators["xpath"].match_count == 1
    assert first_set["css"].value != second_set["css"].value
    assert first_set["xpath"].value != second_set["xpath"].value


def test_absolute_xpath_indexes_only_repeated_tags() -> None:
    forest = DomForest.from_html(LOGIN_HTML)
    second_item = forest.query_selector_all("li", forest.document)[1]

    locators = generate_locator_set(second_item, forest)

    assert locators["absolute_xpath"].value == "/html/body/ul/li[2]"
    assert locators["absolute_xpath"].match_count == 1


def test_name_locator_only_for_form_controls() -> None:
    forest = DomForest.from_html(LOGIN_HTML + "<div name='decor'></div>")

    password = generate_locator_set(_first(forest, "input[type=password]"), forest)
    decor = generate_locator_set(_first(forest, "div[name]"), forest)

    assert password["name"].value == "password"
    assert password["name"].match_count == 1
    assert decor["name"].value == ""
    assert decor["name"].status == "empty"
    assert decor["name"].match_count is None


def test_playwright_prefers_test_attributes_then_role() -> None:
    forest = DomForest.from_html(LOGIN_HTML)

    submit = generate_locator_set(_first(forest, "button"), forest)["playwright"]
    link = generate_locator_set(_first(forest, "a"), forest)["playwright"]
    user = generate_locator_set(_first(forest, "#user"), forest)["playwright"]

    assert submit.value == '[data-testid="submit-btn"]'
    assert submit.match_count == 1
    assert link.value == 'role=link[name="Help"]'
    assert link.match_count == 1
    assert user.value == "role=textbox"
    assert user.match_count == 2


def test_playwright_role_name_respects_configured_limit() -> None:
    forest = DomForest.from_html(LOGIN_HTML)

    link = generate_locator_set(_first(forest, "a"), forest, EngineConfig(name_limit=3))["playwright"]

    assert link.value == "role=link"


def test_jspath_and_jquery_wrap_structural_path() -> None:
    forest = DomForest.from_html(LOGIN_HTML)
    locators = generate_locator_set(_first(forest, "#user"), forest)

    assert locators["jspath"].value == 'document.querySelector("#user")'
    assert locators["jspath"].match_count == 1
    assert locators["jquery"].value == "#user"


def test_generation_is_idempotent() -> None:
    forest = DomForest.from_html(SHADOW_HTML)
    panel = forest.shadow_scope(_first(forest, "#panel"))
    node = _first(forest, "button", panel)

    assert generate_locator_set(node, forest) == generate_locator_set(node, forest)


def test_open_shadow_node_round_trips_for_css_and_playwright() -> None:
    forest = DomForest.from_html(SHADOW_HTML)
    panel = forest.shadow_scope(_first(forest, "#panel"))
    button = _first(forest, "button", panel)

    locators = generate_locator_set(button, forest)

    assert locators["css"].value == "#panel::shadow .save"
    assert locators["playwright"].value == '#panel::shadow role=button[name="Save"]'
    assert locators["jquery"].value == "#panel::shadow .save"
    for strategy in ("css", "playwright", "jquery"):
        locator = locators[strategy]
        assert locator.crosses_boundary is True
        assert locator.match_count == 1
        assert resolve_locator(locator.value, strategy, forest.document).nodes == [button]


def test_open_shadow_node_reports_unsupported_xpath_and_jspath() -> None:
    forest = DomForest.from_html(SHADOW_HTML)
    panel = forest.shadow_scope(_first(forest, "#panel"))
    button = _first(forest, "button", panel)

    locators = generate_locator_set(button, forest)

    for strategy in ("xpath", "absolute_xpath", "jspath"):
        locator = locators[strategy]
        assert locator.status == "boundary_unsupported"
        assert locator.value == ""
        assert locator.match_count == 0
        assert locator.is_unique is False


def test_sealed_shadow_node_reports_every_strategy_inaccessible() -> None:
    forest = DomForest.from_html(SHADOW_HTML)
    lock = forest.shadow_scope(_first(forest, "#lock"))
    secret = _first(forest, "input", lock)

    locators = generate_locator_set(secret, forest)

    for locator in locators:
        assert locator.status == "sealed_scope"
        assert locator.value == ""
        assert locator.match_count is None


def test_frame_node_gets_prefix_for_every_strategy() -> None:
    forest = DomForest.from_html(FRAME_HTML)
    frame_scope = forest.frame_scope(_first(forest, "#checkout"))
    pay = _first(forest, "#pay", frame_scope)

    locators = generate_locator_set(pay, forest)

    assert locators["id"].value == "iframe#checkout >>> pay"
    assert locators["css"].value == "iframe#checkout >>> #pay"
    assert locators["xpath"].value == "iframe#checkout >>> //*[@id='pay']"
    assert locators["absolute_xpath"].value == "iframe#checkout >>> /html/body/button"
    assert locators["jspath"].value == 'iframe#checkout >>> document.querySelector("#pay")'
    assert locators["name"].status == "empty"
    for locator in locators:
        assert locator.crosses_boundary is True
        if locator.strategy != "name":
            assert locator.status == "ok"
            assert locator.match_count == 1


def test_unexpected_failure_returns_whole_empty_set(monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture) -> None:
    forest = DomForest.from_html(LOGIN_HTML)

    def _boom(_analyzer) -> str:
        raise RuntimeError("structure exploded")

    monkeypatch.setitem(GENERATORS, "css", _boom)
    with caplog.at_level(logging.ERROR, logger="locatorx.engine"):
        locators = generate_locator_set(_first(forest, "#user"), forest)

    assert len(locators) == len(STRATEGIES)
    assert all(locator.status == "empty" and locator.match_count is None for locator in locators)
    assert "Locator generation failed" in caplog.text


def test_foreign_nodes_are_rejected() -> None:
    forest = DomForest.from_html(LOGIN_HTML)
    stranger = lxml.html.fromstring("<p>not here</p>")

    with pytest.raises(ValueError):
        generate_locator_set(stranger, forest)
