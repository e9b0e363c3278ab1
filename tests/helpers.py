"""Small query helpers used across the storage tests."""

from __future__ import annotations

from typing import Optional

from recipebox import storage


def tag_id(name: str) -> int:
    for tag in storage.list_tags():
        if tag.name == name:
            return tag.id
    raise AssertionError(f"tag {name!r} not found")


def parent_of(name: str) -> Optional[int]:
    for tag in storage.list_tags():
        if tag.name == name:
            return tag.parent_tag_id
    raise AssertionError(f"tag {name!r} not found")


def association_count(recipe_id: int, tag: Optional[int] = None) -> int:
    with storage.transaction(immediate=False) as conn:
        if tag is None:
            row = conn.execute(
                "SELECT COUNT(*) AS count FROM recipe_tags WHERE recipe_id = ?",
                (recipe_id,),
            ).fetchone()
        else:
            row = conn.execute(
                "SELECT COUNT(*) AS count FROM recipe_tags WHERE recipe_id = ? AND tag_id = ?",
                (recipe_id, tag),
            ).fetchone()
    return row["count"]
