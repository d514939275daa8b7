from __future__ import annotations

import re
from typing import Iterable, Sequence

from lxml.html import HtmlElement

TEST_ATTR_PRIORITY = ("data-testid", "data-test", "data-cy")
STABLE_XPATH_ATTRS = ("data-testid", "data-test", "data-cy", "name")

FORM_CONTROL_TAGS = frozenset({"input", "select", "textarea", "button"})
XPATH_TEXT_TAGS = frozenset({"button", "a", "span", "label"})
ROLE_TEXT_TAGS = frozenset({"button", "a", "label"})
LIST_TEXT_TAGS = frozenset({"button", "a", "span", "div"})
PLACEHOLDER_TAGS = frozenset({"input", "textarea"})
EMBEDDING_TAGS = frozenset({"iframe", "frame"})

_IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z][\w-]*$", re.ASCII)

_INPUT_TYPE_ROLES = {
    "button": "button",
    "submit": "button",
    "reset": "button",
    "image": "button",
    "checkbox": "checkbox",
    "radio": "radio",
    "range": "slider",
    "number": "spinbutton",
    "search": "searchbox",
    "text": "textbox",
    "email": "textbox",
    "password": "textbox",
    "url": "textbox",
    "tel": "textbox",
}

_TAG_ROLES = {
    "button": "button",
    "select": "combobox",
    "textarea": "textbox",
}


def normalize_space(value: str | None, limit: int = 200) -> str:
    if not value:
        return ""
    compact = re.sub(r"\s+", " ", str(value)).strip()
    return compact[:limit] if compact else ""


def is_valid_identifier(value: str | None) -> bool:
    if not value:
        return False
    return bool(_IDENTIFIER_PATTERN.match(value))


def element_tag(node: HtmlElement) -> str:
    return str(node.tag).lower()


def is_element(node: object) -> bool:
    return isinstance(node, HtmlElement) and isinstance(node.tag, str)


def element_children(node: HtmlElement) -> list[HtmlElement]:
    return [child for child in node if isinstance(child.tag, str)]


def same_tag_position(node: HtmlElement) -> tuple[int, int]:
    """Return (1-based index, count) of ``node`` among same-tag siblings."""
    parent = node.getparent()
    if parent is None:
        return 1, 1
    same = [sibling for sibling in element_children(parent) if sibling.tag == node.tag]
    return same.index(node) + 1, len(same)


def class_tokens(node: HtmlElement) -> list[str]:
    raw = node.get("class") or ""
    seen: set[str] = set()
    tokens: list[str] = []
    for item in raw.split():
        if item in seen:
            continue
        seen.add(item)
        tokens.append(item)
    return tokens


def meaningful_classes(tokens: Iterable[str], internal_prefixes: Sequence[str]) -> list[str]:
    return [token for token in tokens if not any(token.startswith(prefix) for prefix in internal_prefixes)]


def infer_role(node: HtmlElement) -> str | None:
    explicit = normalize_space(node.get("role"))
    if explicit:
        return explicit.split(" ")[0]

    tag = element_tag(node)
    if tag == "a":
        return "link" if node.get("href") is not None else None
    if tag == "input":
        input_type = normalize_space(node.get("type")).lower() or "text"
        return _INPUT_TYPE_ROLES.get(input_type)
    return _TAG_ROLES.get(tag)


def escape_css_string(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def unescape_css_string(value: str) -> str:
    return re.sub(r"\\(.)", r"\1", value)


def escape_css_identifier(value: str) -> str:
    escaped: list[str] = []
    for index, char in enumerate(value):
        if char.isascii() and (char.isalpha() or char in ("-", "_")):
            escaped.append(char)
        elif char.isascii() and char.isdigit():
            leading = index == 0 or (index == 1 and value[0] == "-")
            escaped.append(f"\\{ord(char):x} " if leading else char)
        elif not char.isascii() and char.isprintable() and not char.isspace():
            escaped.append(char)
        else:
            escaped.append(f"\\{ord(char):x} ")
    return "".join(escaped)


def xpath_literal(value: str) -> str:
    if "'" not in value:
        return f"'{value}'"
    if '"' not in value:
        return f'"{value}"'
    pieces = value.split("'")
    quoted = [f"'{piece}'" for piece in pieces]
    return "concat(" + ", \"'\", ".join(quoted) + ")"


def source_filename(src: str | None) -> str:
    if not src:
        return ""
    return src.split("/")[-1].strip()


def accessible_name(node: HtmlElement, limit: int = 200) -> str:
    return normalize_space(node.get("aria-label"), limit) or normalize_space(node.text_content(), limit)
