from locatorx.hierarchy import build_element_hierarchy, shadow_info, shadow_root_info
from locatorx.structure import DomForest


PAGE_HTML = """
<html><body>
  <section id="main" title="{title}">
    <p>first</p><p>second</p><p>third</p><p>fourth</p>
    <div class="wrap"><span class="leaf">  leaf text that runs on for quite a while  </span></div>
  </section>
  <x-panel id="panel"><template shadowrootmode="open"><div class="inner"><button>Save</button></div><i>x</i></template></x-panel>
  <x-lock id="lock"><template shadowrootmode="closed"><b>hidden</b></template></x-lock>
</body></html>
""".replace("{title}", "t" * 60)


def _first(forest: DomForest, selector: str, scope=None):
    return forest.query_selector_all(selector, scope or forest.document)[0]


def _chain(hierarchy, depth: int) -> list:
    levels = [hierarchy.root]
    for _ in range(depth):
        levels.append(levels[-1].children[-1])
    return levels


def test_document_hierarchy_stops_below_root_element() -> None:
    forest = DomForest.from_html(PAGE_HTML)
    leaf = _first(forest, ".leaf")

    hierarchy = build_element_hierarchy(leaf, forest)
    levels = _chain(hierarchy, 3)

    assert hierarchy.target_index == 3
    assert [level.tag for level in levels] == ["body", "section", "div", "span"]
    assert levels[-1].text == "leaf text that runs on for qui"
    assert levels[-1].children == []


def test_levels_carry_truncated_attributes_and_sibling_previews() -> None:
    forest = DomForest.from_html(PAGE_HTML)
    hierarchy = build_element_hierarchy(_first(forest, ".leaf"), forest)
    body, section, wrap, _leaf = _chain(hierarchy, 3)

    assert section.attributes[0] == ("id", "main")
    assert section.attributes[1] == ("title", "t" * 50 + "...")
    assert [child.tag for child in section.children] == ["x-panel", "x-lock", "div"]
    assert [child.tag for child in wrap.children] == ["p", "p", "p", "span"]
    assert [child.text for child in wrap.children[:3]] == ["first", "second", "third"]
    assert wrap.children[0].children == []
    assert body.children[-1] is section


def test_shadow_hierarchy_jumps_from_shadow_root_to_host() -> None:
    forest = DomForest.from_html(PAGE_HTML)
    panel = _first(forest, "#panel")
    button = _first(forest, "button", forest.shadow_scope(panel))

    hierarchy = build_element_hierarchy(button, forest)
    body, host, inner, target = _chain(hierarchy, 3)

    assert hierarchy.target_index == 3
    assert host.tag == "x-panel"
    assert host.is_shadow_host is True
    assert host.shadow_root is not None
    assert host.shadow_root.child_element_count == 2
    assert [child.tag for child in inner.children] == ["i", "button"]
    assert inner.is_shadow_child is True
    assert inner.shadow_depth == 1
    assert inner.shadow_mode == "open"
    assert target.tag == "button"
    assert target.text == "Save"


def test_shadow_info_for_host_child_and_sealed_host() -> None:
    forest = DomForest.from_html(PAGE_HTML)
    panel = _first(forest, "#panel")
    lock = _first(forest, "#lock")
    button = _first(forest, "button", forest.shadow_scope(panel))

    host_info = shadow_info(panel, forest)
    child_info = shadow_info(button, forest)
    lock_info = shadow_info(lock, forest)

    assert host_info.is_host is True
    assert host_info.in_shadow is False
    assert host_info.root_info is not None
    assert host_info.root_info.accessible is True
    assert child_info.in_shadow is True
    assert child_info.depth == 1
    assert child_info.mode == "open"
    assert [hop.selector for hop in child_info.path] == ["#panel"]
    assert lock_info.is_host is False
    assert shadow_root_info(lock, forest) is None
