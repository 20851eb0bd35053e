"""Popularity scoring: weighted sum over available signal fields."""
from __future__ import annotations

from typing import Any, Dict, Iterable, Sequence

from . import config
from .models import RawResult


def _tag_matches(tags: Dict[str, str], keys: Any, values: Sequence[str]) -> bool:
    if isinstance(keys, str):
        keys = (keys,)
    for key in keys:
        value = tags.get(key)
        if not value:
            continue
        if "*" in values or value in values:
            return True
    return False


def _any_keyword(texts: Iterable[str], keywords: Iterable[str]) -> bool:
    lowered = [t.lower() for t in texts if t]
    for keyword in keywords:
        for text in lowered:
            if keyword and keyword in text:
                return True
    return False


def tag_score(tags: Dict[str, str]) -> float:
    score = 0.0
    for keys, values, weight in config.SCORE_TAG_WEIGHTS:
        if _tag_matches(tags, keys, values):
            score += float(weight)
    return score


def score_result(raw: RawResult) -> float:
    """Non-negative; more verified/richer records score strictly higher."""
    score = tag_score(raw.tags)
    if raw.categories and _any_keyword(raw.categories, config.SCORE_HERITAGE_CATEGORY_KEYWORDS):
        score += config.SCORE_HERITAGE_CATEGORY_BONUS
    if raw.thumbnail:
        score += config.SCORE_THUMBNAIL_BONUS
    if raw.description:
        score += config.SCORE_DESCRIPTION_BONUS
    return max(0.0, score)
