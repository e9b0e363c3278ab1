"""Free-text and tag-name helpers for recipe search."""

from __future__ import annotations

from typing import Iterable, List, Optional

from .models import Recipe


def normalize_tag_names(raw: Optional[Iterable[str]]) -> List[str]:
    """Strip names, drop blanks and duplicates while keeping the input order."""

    if not raw:
        return []
    seen = set()
    normalized: List[str] = []
    for name in raw:
        cleaned = name.strip()
        if not cleaned or cleaned in seen:
            continue
        seen.add(cleaned)
        normalized.append(cleaned)
    return normalized


def parse_tag_list(raw: Optional[str]) -> List[str]:
    """Split a comma separated ``tags`` query parameter."""

    if not raw:
        return []
    return normalize_tag_names(raw.split(","))


def recipe_matches_text(recipe: Recipe, query: str) -> bool:
    if not query.strip():
        return True
    search = query.lower()
    searchable_chunks = [
        recipe.title,
        recipe.description or "",
        recipe.ingredients,
        recipe.instructions,
    ]
    return any(chunk and search in chunk.lower() for chunk in searchable_chunks)


def filter_recipes(recipes: List[Recipe], query: Optional[str]) -> List[Recipe]:
    """Keep recipes whose text fields contain ``query``, ignoring case."""

    if not query or not query.strip():
        return recipes
    return [recipe for recipe in recipes if recipe_matches_text(recipe, query)]
