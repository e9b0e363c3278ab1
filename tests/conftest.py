"""Shared fixtures: every test gets its own SQLite file."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, List, Optional

import pytest

from recipebox import storage
from recipebox.models import RecipeInput


@pytest.fixture
def db_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    path = tmp_path / "recipebox.db"
    monkeypatch.setattr(storage, "DB_PATH", path)
    monkeypatch.setattr(storage, "BUSY_TIMEOUT", 1.0)
    storage.init_db()
    return path


@pytest.fixture
def make_recipe(db_path: Path) -> Callable[..., int]:
    """Create a recipe with sensible defaults and return its id."""

    def _make(title: str = "Pancakes", tags: Optional[List[str]] = None, **fields: object) -> int:
        data = {
            "title": title,
            "ingredients": "flour, milk, eggs",
            "instructions": "Mix and fry.",
            "tags": tags or [],
        }
        data.update(fields)
        return storage.create_recipe(RecipeInput(**data))

    return _make
