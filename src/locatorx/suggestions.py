from __future__ import annotations

import logging
from typing import Literal

from .config import DEFAULT_CONFIG, EngineConfig
from .locator_generator import generate_locator_set
from .models import SuggestionCandidate
from .scoring import fuzzy_match, score_locator
from .selector_rules import escape_css_string, normalize_space
from .structure import ScopeRoot

logger = logging.getLogger("locatorx.engine")

QueryShape = Literal["xpath", "css", "playwright", "ambiguous"]

_KEYWORD_TEMPLATES: tuple[tuple[tuple[str, ...], tuple[tuple[str, int], ...]], ...] = (
    (("btn", "button"), (("button", 6), ("role=button", 6), ("//button", 5))),
    (("input", "field"), (("input", 6), ("role=textbox", 6), ("//input", 5))),
    (("link",), (("a", 6), ("role=link", 6), ("//a", 5))),
)

_ADVANCED_TEMPLATES: tuple[tuple[tuple[str, ...], tuple[tuple[str, int], ...]], ...] = (
    (("shadow",), (("#host::shadow element", 6), ("#host::shadow role=button", 6))),
    (("iframe", "frame"), (("iframe#frameId >>> element", 6), ('iframe[name="frameName"] >>> element', 5))),
    (("test",), (('[data-testid*="test"]', 7), ('[data-test*="test"]', 6), ('[data-cy*="test"]', 6))),
)


class SuggestionPool:
    """Candidates keyed by string; re-registering keeps the highest score and the first position."""

    def __init__(self) -> None:
        self._scores: dict[str, int] = {}

    def add(self, value: str, score: int) -> None:
        if not value:
            return
        current = self._scores.get(value)
        if current is None or score > current:
            self._scores[value] = score

    def __contains__(self, value: object) -> bool:
        return value in self._scores

    def __len__(self) -> int:
        return len(self._scores)

    def score_of(self, value: str) -> int | None:
        return self._scores.get(value)

    def ranked(self, limit: int) -> list[SuggestionCandidate]:
        ordered = sorted(self._scores.items(), key=lambda item: item[1], reverse=True)
        return [SuggestionCandidate(value, score) for value, score in ordered[:limit]]


def classify_query(query: str) -> QueryShape:
    if query.startswith(("/", "(")):
        return "xpath"
    if query.startswith(("#", ".")) or "[" in query:
        return "css"
    if query.startswith(("text=", "role=")):
        return "playwright"
    return "ambiguous"


def seed_templates(query: str, pool: SuggestionPool) -> None:
    shape = classify_query(query)
    if shape == "xpath":
        for suffix in (
            "[@id]",
            "[@class]",
            "[text()]",
            '[contains(@class, "")]',
            '[contains(text(), "")]',
            "[1]",
            "/following-sibling::*",
            "/parent::*",
        ):
            pool.add(query + suffix, 8)
    elif shape == "css":
        for suffix in (
            ":first-child",
            ":last-child",
            ":nth-child(1)",
            " > *",
            " + *",
            ":hover",
            ":focus",
            "[data-testid]",
        ):
            pool.add(query + suffix, 7)
    elif shape == "playwright":
        if query.startswith("text="):
            text = query[len("text="):]
            pool.add(f'text="{text}"', 9)
            pool.add(f"text=/{text}/i", 8)
        else:
            role = query[len("role="):]
            pool.add(f"role={role}[name]", 8)
            pool.add(f"role={role}[checked]", 7)
    else:
        _seed_ambiguous(query, pool)


def _seed_ambiguous(query: str, pool: SuggestionPool) -> None:
    pool.add(f"#{query}", 10)
    pool.add(f".{query}", 9)
    pool.add(f'[name="{query}"]', 9)
    pool.add(f'[data-testid="{query}"]', 9)

    pool.add(f'//*[@id="{query}"]', 8)
    pool.add(f'//button[text()="{query}"]', 8)
    pool.add(f'//*[contains(@class, "{query}")]', 7)
    pool.add(f'//*[contains(text(), "{query}")]', 7)

    pool.add(f'text="{query}"', 8)
    pool.add(f'placeholder="{query}"', 7)

    _add_keyword_templates(query.lower(), _KEYWORD_TEMPLATES, pool)


def _add_keyword_templates(
    lower_query: str,
    table: tuple[tuple[tuple[str, ...], tuple[tuple[str, int], ...]], ...],
    pool: SuggestionPool,
) -> None:
    for keywords, templates in table:
        if any(keyword in lower_query for keyword in keywords):
            for value, score in templates:
                pool.add(value, score)


def scan_scope(query: str, scope: ScopeRoot, pool: SuggestionPool, config: EngineConfig) -> None:
    forest = scope.forest
    lower_query = query.lower()
    for node in list(forest.iter_elements(scope)):
        best = 0
        for locator in generate_locator_set(node, forest, config):
            if not locator.value:
                continue
            score = score_locator(locator, node, lower_query)
            if score > best:
                best = score
                if score > config.suggestion_threshold:
                    pool.add(locator.value, score)

        text = normalize_space(forest.text_content(node), limit=config.name_limit)
        if not text or len(text) >= config.name_limit:
            continue
        text_score = fuzzy_match(text, lower_query)
        if text_score > config.text_match_threshold:
            pool.add(f'text="{escape_css_string(text)}"', text_score + 2)
            pool.add(f"//*[text()={_xpath_text_literal(text)}]", text_score + 1)


def _xpath_text_literal(text: str) -> str:
    if '"' not in text:
        return f'"{text}"'
    if "'" not in text:
        return f"'{text}'"
    return "concat(" + ", '\"', ".join(f'"{piece}"' if piece else '""' for piece in text.split('"')) + ")"


def rank_suggestions(
    query: str,
    scope: ScopeRoot,
    config: EngineConfig | None = None,
) -> list[SuggestionCandidate]:
    active_config = config or DEFAULT_CONFIG
    text = (query or "").strip()
    if not text:
        return []

    pool = SuggestionPool()
    seed_templates(text, pool)
    try:
        scan_scope(text, scope, pool, active_config)
    except Exception:
        logger.exception("Ranking scan failed for query %r", text)
    _add_keyword_templates(text.lower(), _ADVANCED_TEMPLATES, pool)
    return pool.ranked(active_config.suggestion_limit)


def rank(query: str, scope: ScopeRoot, config: EngineConfig | None = None) -> list[str]:
    return [candidate.value for candidate in rank_suggestions(query, scope, config)]
