from __future__ import annotations

from lxml.html import HtmlElement

from .models import Locator
from .selector_rules import element_tag

EXACT_MATCH_BONUS = 15
SUBSTRING_SCORE = 10
UNIQUE_BONUS = 5
LIVE_ID_BONUS = 3
LIVE_NAME_BONUS = 3
SHORT_CSS_BONUS = 2
SHORT_CSS_LENGTH = 30
TAG_CONTEXT_BONUS = 2


def fuzzy_match(value: str, pattern: str) -> int:
    """10 for a substring hit, else the in-order character count if every pattern character matched."""
    haystack = value.lower()
    needle = pattern.lower()
    if needle in haystack:
        return SUBSTRING_SCORE

    matched = 0
    for char in haystack:
        if matched == len(needle):
            break
        if char == needle[matched]:
            matched += 1
    return matched if matched == len(needle) else 0


def score_locator(locator: Locator, node: HtmlElement, query: str) -> int:
    value = locator.value.lower()
    lower_query = query.lower()
    score = 0

    if value == lower_query:
        score += EXACT_MATCH_BONUS
    score += fuzzy_match(value, lower_query)
    if locator.is_unique:
        score += UNIQUE_BONUS

    if locator.strategy == "id" and node.get("id"):
        score += LIVE_ID_BONUS
    if locator.strategy == "css" and len(value) < SHORT_CSS_LENGTH:
        score += SHORT_CSS_BONUS
    if locator.strategy == "name" and node.get("name"):
        score += LIVE_NAME_BONUS

    if element_tag(node) in lower_query:
        score += TAG_CONTEXT_BONUS
    return score
