"""Category classification from an ordered rule table.

Rules come from config.CATEGORY_RULES and are evaluated in order; the first
rule with a matching signal decides the category. Administrative and list
pages are excluded before any rule runs. Keyword lists are tuned for Polish
backend text.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from . import config
from .models import RawResult

CATEGORY_PREFIXES = ("kategoria:", "category:")


@dataclass(frozen=True)
class CategoryRule:
    category: str
    tags: Tuple[Tuple[str, Tuple[str, ...]], ...] = ()
    title_prefixes: Tuple[str, ...] = ()
    category_keywords: Tuple[str, ...] = ()

    def matches(self, tags: Dict[str, str], title: str, categories: List[str]) -> bool:
        for key, values in self.tags:
            value = tags.get(key)
            if value and ("*" in values or value in values):
                return True
        if title and any(title.startswith(p) for p in self.title_prefixes):
            return True
        for text in categories:
            if any(k in text for k in self.category_keywords):
                return True
        return False


def build_rules(table: Optional[List[Dict[str, Any]]] = None) -> List[CategoryRule]:
    rules: List[CategoryRule] = []
    for entry in config.CATEGORY_RULES if table is None else table:
        category = entry.get("category")
        if category not in config.CATEGORIES:
            raise ValueError(f"Unknown category in rule table: {category}")
        tag_items = tuple(
            (str(key), tuple(str(v) for v in values))
            for key, values in (entry.get("tags") or {}).items()
        )
        rules.append(
            CategoryRule(
                category=category,
                tags=tag_items,
                title_prefixes=tuple(p.lower() for p in entry.get("title_prefixes") or []),
                category_keywords=tuple(k.lower() for k in entry.get("category_keywords") or []),
            )
        )
    return rules


def _normalize_categories(categories: Tuple[str, ...]) -> List[str]:
    out: List[str] = []
    for cat in categories:
        text = (cat or "").strip().lower()
        for prefix in CATEGORY_PREFIXES:
            if text.startswith(prefix):
                text = text[len(prefix):]
                break
        if text:
            out.append(text)
    return out


def is_administrative(title: str, categories: List[str]) -> bool:
    if title and any(title.startswith(p) for p in config.ADMIN_TITLE_PREFIXES):
        return True
    for text in categories:
        if any(p in text for p in config.ADMIN_CATEGORY_PATTERNS):
            return True
    return False


def classify(raw: RawResult, rules: Optional[List[CategoryRule]] = None) -> Optional[str]:
    """Category for a record, or None when it must be dropped."""
    title = (raw.title or "").strip().lower()
    categories = _normalize_categories(raw.categories)
    if is_administrative(title, categories):
        return None
    for rule in rules if rules is not None else build_rules():
        if rule.matches(raw.tags, title, categories):
            return rule.category
    return None
