"""SQLite-backed persistence for recipes, the tag hierarchy and their links."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Union

from loguru import logger

from .config import DATA_DIR
from .errors import (
    DuplicateName,
    InvalidArgument,
    MissingField,
    NotFound,
    RecipeBoxError,
    StoreError,
)
from .models import (
    PromotedTag,
    Recipe,
    RecipeInput,
    RecipeSummary,
    Tag,
    TagDeletionReport,
    TagNode,
)
from .search import filter_recipes, normalize_tag_names
from .tree import build_tag_tree

DB_PATH: Union[str, Path] = DATA_DIR / "recipebox.db"
BUSY_TIMEOUT = 5.0
REQUIRED_RECIPE_FIELDS = ("title", "ingredients", "instructions")
RECIPE_COLUMNS = (
    "id, title, description, ingredients, instructions, "
    "prep_time, cook_time, servings, created_at, updated_at"
)
DEFAULT_TAG_HIERARCHY = {
    "Cuisine": ["Italian", "Mexican", "Asian"],
    "Meal Type": ["Breakfast", "Lunch", "Dinner"],
    "Dietary": ["Vegetarian", "Vegan", "Gluten-Free"],
}

Identifier = Union[int, str]


def configure(database_path: Union[str, Path], busy_timeout: Optional[float] = None) -> None:
    """Point the store at a database file."""

    global DB_PATH, BUSY_TIMEOUT
    DB_PATH = database_path
    if busy_timeout is not None:
        BUSY_TIMEOUT = busy_timeout


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _get_connection() -> sqlite3.Connection:
    path = Path(DB_PATH)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path, timeout=BUSY_TIMEOUT, isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def transaction(immediate: bool = True) -> Iterator[sqlite3.Connection]:
    """Run a unit of work on its own connection inside one transaction.

    Commits when the block exits normally. Any exception, including
    ``KeyboardInterrupt`` raised while the caller abandons the work, rolls the
    transaction back before it propagates; ``sqlite3.Error`` is re-raised as
    :class:`StoreError`. The connection is always closed.
    """

    try:
        conn = _get_connection()
    except (sqlite3.Error, OSError) as exc:
        raise StoreError(str(exc)) from exc

    try:
        conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
        yield conn
        conn.execute("COMMIT")
    except BaseException as exc:
        if conn.in_transaction:
            try:
                conn.execute("ROLLBACK")
            except sqlite3.Error as rollback_exc:
                raise StoreError(f"rollback failed: {rollback_exc}") from exc
            if not isinstance(exc, RecipeBoxError):
                logger.warning("Rolled back transaction after {!r}", exc)
        if isinstance(exc, sqlite3.Error):
            raise StoreError(str(exc)) from exc
        raise
    finally:
        conn.close()


def parse_identifier(raw: Identifier, resource: str = "tag") -> int:
    """Return ``raw`` as a positive integer id or raise :class:`InvalidArgument`."""

    value: Optional[int] = None
    if isinstance(raw, bool):
        value = None
    elif isinstance(raw, int):
        value = raw
    elif isinstance(raw, str):
        cleaned = raw.strip()
        if cleaned.isascii() and cleaned.isdigit():
            value = int(cleaned)
    if value is None or value <= 0:
        raise InvalidArgument(f"Invalid {resource} ID")
    return value


def init_db(seed_default_tags: bool = False) -> None:
    """Create the database tables and optionally seed the default tag forest."""

    with transaction() as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS recipes (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                description TEXT,
                ingredients TEXT NOT NULL,
                instructions TEXT NOT NULL,
                prep_time INTEGER,
                cook_time INTEGER,
                servings INTEGER,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS tags (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL UNIQUE,
                parent_tag_id INTEGER,
                created_at TEXT NOT NULL,
                FOREIGN KEY (parent_tag_id) REFERENCES tags(id)
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS recipe_tags (
                recipe_id INTEGER NOT NULL,
                tag_id INTEGER NOT NULL,
                PRIMARY KEY (recipe_id, tag_id),
                FOREIGN KEY (recipe_id) REFERENCES recipes(id) ON DELETE CASCADE,
                FOREIGN KEY (tag_id) REFERENCES tags(id) ON DELETE CASCADE
            )
            """
        )
        conn.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_tags_parent_tag_id
            ON tags (parent_tag_id)
            """
        )
        conn.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_recipe_tags_tag_id
            ON recipe_tags (tag_id)
            """
        )
        if seed_default_tags:
            _seed_default_tags(conn)


def _seed_default_tags(conn: sqlite3.Connection) -> None:
    tag_count = conn.execute("SELECT COUNT(*) AS count FROM tags").fetchone()["count"]
    if tag_count:
        return

    timestamp = _now()
    for parent_name, child_names in DEFAULT_TAG_HIERARCHY.items():
        cursor = conn.execute(
            "INSERT INTO tags (name, parent_tag_id, created_at) VALUES (?, NULL, ?)",
            (parent_name, timestamp),
        )
        conn.executemany(
            "INSERT INTO tags (name, parent_tag_id, created_at) VALUES (?, ?, ?)",
            [(name, cursor.lastrowid, timestamp) for name in child_names],
        )
    logger.info("Seeded default tag hierarchy")


# Tags


def _row_to_tag(row: sqlite3.Row) -> Tag:
    return Tag(
        id=row["id"],
        name=row["name"],
        parent_tag_id=row["parent_tag_id"],
        created_at=row["created_at"],
    )


def _find_tag_id(conn: sqlite3.Connection, name: str) -> Optional[int]:
    row = conn.execute("SELECT id FROM tags WHERE name = ?", (name,)).fetchone()
    return row["id"] if row else None


def _resolve_tag_id(conn: sqlite3.Connection, name: str) -> int:
    existing = _find_tag_id(conn, name)
    if existing is not None:
        return existing
    try:
        cursor = conn.execute(
            "INSERT INTO tags (name, parent_tag_id, created_at) VALUES (?, NULL, ?)",
            (name, _now()),
        )
    except sqlite3.IntegrityError:
        # Another writer created the name after our lookup; read it back once.
        existing = _find_tag_id(conn, name)
        if existing is None:
            raise StoreError(f"Tag {name!r} could not be resolved")
        return existing
    logger.debug("Created tag {!r} on first use", name)
    return cursor.lastrowid


def resolve_tag_ids(conn: sqlite3.Connection, names: Iterable[str]) -> List[int]:
    """Map tag names to ids, creating root tags for names not seen before."""

    return [_resolve_tag_id(conn, name) for name in normalize_tag_names(names)]


def list_tags() -> List[Tag]:
    with transaction(immediate=False) as conn:
        rows = conn.execute(
            """
            SELECT id, name, parent_tag_id, created_at
            FROM tags
            ORDER BY name
            """
        ).fetchall()
    return [_row_to_tag(row) for row in rows]


def list_tag_tree() -> List[TagNode]:
    return build_tag_tree(list_tags())


def create_tag(name: str, parent_tag_id: Optional[Identifier] = None) -> Tag:
    cleaned_name = name.strip()
    if not cleaned_name:
        raise InvalidArgument("Tag name is required")
    parent_id = parse_identifier(parent_tag_id, "parent tag") if parent_tag_id is not None else None

    timestamp = _now()
    with transaction() as conn:
        if parent_id is not None:
            parent = conn.execute("SELECT 1 FROM tags WHERE id = ?", (parent_id,)).fetchone()
            if not parent:
                raise InvalidArgument(f"Parent tag {parent_id} does not exist")
        if _find_tag_id(conn, cleaned_name) is not None:
            raise DuplicateName(cleaned_name)
        try:
            cursor = conn.execute(
                """
                INSERT INTO tags (name, parent_tag_id, created_at)
                VALUES (?, ?, ?)
                """,
                (cleaned_name, parent_id, timestamp),
            )
        except sqlite3.IntegrityError as exc:
            raise DuplicateName(cleaned_name) from exc
        tag_id = cursor.lastrowid

    logger.info("Created tag {} {!r} under parent {}", tag_id, cleaned_name, parent_id)
    return Tag(id=tag_id, name=cleaned_name, parent_tag_id=parent_id, created_at=timestamp)


def _recipes_using_tag(conn: sqlite3.Connection, tag_id: int) -> List[RecipeSummary]:
    rows = conn.execute(
        """
        SELECT r.id, r.title, r.description
        FROM recipes AS r
        JOIN recipe_tags AS rt ON r.id = rt.recipe_id
        WHERE rt.tag_id = ?
        ORDER BY r.title, r.id
        """,
        (tag_id,),
    ).fetchall()
    return [RecipeSummary(id=row["id"], title=row["title"], description=row["description"]) for row in rows]


def list_tag_usage(tag_id: Identifier) -> List[RecipeSummary]:
    """Return the recipes linked to a tag, ordered by title."""

    parsed_id = parse_identifier(tag_id)
    with transaction(immediate=False) as conn:
        return _recipes_using_tag(conn, parsed_id)


def delete_tag(tag_id: Identifier) -> TagDeletionReport:
    """Delete a tag, promoting its children to the tag's own parent.

    Runs as one transaction: collect the recipes linked to the tag and its
    direct children, re-parent the children, then delete the tag row (the
    ``recipe_tags`` cascade drops its links). The returned report is the
    snapshot taken before the rewrite. Deleting an unknown id is a no-op that
    reports nothing affected.
    """

    parsed_id = parse_identifier(tag_id)
    with transaction() as conn:
        affected = _recipes_using_tag(conn, parsed_id)
        child_rows = conn.execute(
            """
            SELECT id, name
            FROM tags
            WHERE parent_tag_id = ? AND id != ?
            ORDER BY name, id
            """,
            (parsed_id, parsed_id),
        ).fetchall()
        row = conn.execute("SELECT parent_tag_id FROM tags WHERE id = ?", (parsed_id,)).fetchone()
        new_parent_id = row["parent_tag_id"] if row else None
        if new_parent_id == parsed_id:
            new_parent_id = None

        # Children must move before the delete or the parent FK rejects it.
        conn.execute(
            "UPDATE tags SET parent_tag_id = ? WHERE parent_tag_id = ? AND id != ?",
            (new_parent_id, parsed_id, parsed_id),
        )
        conn.execute("DELETE FROM tags WHERE id = ?", (parsed_id,))

    report = TagDeletionReport(
        tag_id=parsed_id,
        affected_recipes=affected,
        promoted_children=[PromotedTag(id=child["id"], name=child["name"]) for child in child_rows],
    )
    logger.info(
        "Deleted tag {}: {} recipes affected, {} children promoted to {}",
        parsed_id,
        report.affected_recipe_count,
        report.promoted_child_count,
        new_parent_id,
    )
    return report


# Recipe <-> tag links


def link_tags(conn: sqlite3.Connection, recipe_id: int, tag_ids: Sequence[int]) -> None:
    """Link a recipe to tags; pairs that are already linked are left alone."""

    deduped = list(dict.fromkeys(tag_ids))
    if not deduped:
        return
    conn.executemany(
        "INSERT OR IGNORE INTO recipe_tags (recipe_id, tag_id) VALUES (?, ?)",
        [(recipe_id, tag_id) for tag_id in deduped],
    )


def unlink_all_tags(conn: sqlite3.Connection, recipe_id: int) -> None:
    conn.execute("DELETE FROM recipe_tags WHERE recipe_id = ?", (recipe_id,))


def _load_tags_for_recipes(conn: sqlite3.Connection, recipe_ids: Sequence[int]) -> Dict[int, List[Tag]]:
    mapping: Dict[int, List[Tag]] = {}
    if not recipe_ids:
        return mapping

    placeholders = ",".join("?" for _ in recipe_ids)
    rows = conn.execute(
        f"""
        SELECT rt.recipe_id, t.id, t.name, t.parent_tag_id, t.created_at
        FROM recipe_tags AS rt
        JOIN tags AS t ON t.id = rt.tag_id
        WHERE rt.recipe_id IN ({placeholders})
        ORDER BY t.name
        """,
        tuple(recipe_ids),
    ).fetchall()
    for row in rows:
        mapping.setdefault(row["recipe_id"], []).append(_row_to_tag(row))
    return mapping


# Recipes


def _row_to_recipe(row: sqlite3.Row, tags: Optional[List[Tag]] = None) -> Recipe:
    return Recipe(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        ingredients=row["ingredients"],
        instructions=row["instructions"],
        prep_time=row["prep_time"],
        cook_time=row["cook_time"],
        servings=row["servings"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        tags=tags or [],
    )


def _require_fields(data: RecipeInput) -> None:
    for field in REQUIRED_RECIPE_FIELDS:
        value = getattr(data, field, None)
        if value is None or not str(value).strip():
            raise MissingField(field)


def _fetch_recipe(conn: sqlite3.Connection, recipe_id: int) -> Recipe:
    row = conn.execute(
        f"SELECT {RECIPE_COLUMNS} FROM recipes WHERE id = ?",
        (recipe_id,),
    ).fetchone()
    if not row:
        raise NotFound("Recipe", recipe_id)
    tag_map = _load_tags_for_recipes(conn, [recipe_id])
    return _row_to_recipe(row, tag_map.get(recipe_id))


def list_recipes() -> List[Recipe]:
    return search_recipes()


def get_recipe(recipe_id: Identifier) -> Recipe:
    parsed_id = parse_identifier(recipe_id, "recipe")
    with transaction(immediate=False) as conn:
        return _fetch_recipe(conn, parsed_id)


def create_recipe(data: RecipeInput) -> int:
    """Insert a recipe and link it to its tags, creating unknown tag names."""

    _require_fields(data)
    timestamp = _now()
    with transaction() as conn:
        cursor = conn.execute(
            """
            INSERT INTO recipes (
                title,
                description,
                ingredients,
                instructions,
                prep_time,
                cook_time,
                servings,
                created_at,
                updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                data.title,
                data.description,
                data.ingredients,
                data.instructions,
                data.prep_time,
                data.cook_time,
                data.servings,
                timestamp,
                timestamp,
            ),
        )
        recipe_id = cursor.lastrowid
        link_tags(conn, recipe_id, resolve_tag_ids(conn, data.tags))

    logger.info("Created recipe {} {!r}", recipe_id, data.title)
    return recipe_id


def update_recipe(recipe_id: Identifier, data: RecipeInput) -> None:
    """Replace every editable field and the full tag set of a recipe."""

    parsed_id = parse_identifier(recipe_id, "recipe")
    _require_fields(data)
    with transaction() as conn:
        cursor = conn.execute(
            """
            UPDATE recipes
            SET title = ?,
                description = ?,
                ingredients = ?,
                instructions = ?,
                prep_time = ?,
                cook_time = ?,
                servings = ?,
                updated_at = ?
            WHERE id = ?
            """,
            (
                data.title,
                data.description,
                data.ingredients,
                data.instructions,
                data.prep_time,
                data.cook_time,
                data.servings,
                _now(),
                parsed_id,
            ),
        )
        if cursor.rowcount == 0:
            raise NotFound("Recipe", parsed_id)
        unlink_all_tags(conn, parsed_id)
        link_tags(conn, parsed_id, resolve_tag_ids(conn, data.tags))

    logger.info("Updated recipe {}", parsed_id)


def set_recipe_tags(recipe_id: Identifier, tag_ids: Sequence[Identifier]) -> Recipe:
    """Replace a recipe's tags with existing tags given by id."""

    parsed_id = parse_identifier(recipe_id, "recipe")
    wanted = list(dict.fromkeys(parse_identifier(tag_id) for tag_id in tag_ids))
    with transaction() as conn:
        exists = conn.execute("SELECT 1 FROM recipes WHERE id = ?", (parsed_id,)).fetchone()
        if not exists:
            raise NotFound("Recipe", parsed_id)
        if wanted:
            placeholders = ",".join("?" for _ in wanted)
            known = {
                row["id"]
                for row in conn.execute(
                    f"SELECT id FROM tags WHERE id IN ({placeholders})",
                    tuple(wanted),
                ).fetchall()
            }
            missing = [tag_id for tag_id in wanted if tag_id not in known]
            if missing:
                raise InvalidArgument(f"Unknown tag ids: {', '.join(str(tag_id) for tag_id in missing)}")
        unlink_all_tags(conn, parsed_id)
        link_tags(conn, parsed_id, wanted)
        recipe = _fetch_recipe(conn, parsed_id)

    logger.info("Replaced tags of recipe {} with {}", parsed_id, wanted)
    return recipe


def delete_recipe(recipe_id: Identifier) -> None:
    parsed_id = parse_identifier(recipe_id, "recipe")
    with transaction() as conn:
        cursor = conn.execute("DELETE FROM recipes WHERE id = ?", (parsed_id,))
        if cursor.rowcount == 0:
            raise NotFound("Recipe", parsed_id)

    logger.info("Deleted recipe {}", parsed_id)


def search_recipes(
    query: Optional[str] = None,
    tag_names: Optional[Iterable[str]] = None,
) -> List[Recipe]:
    """Return recipes carrying every name in ``tag_names`` and matching ``query``.

    Tag matching is an intersection: recipe links are grouped per recipe and a
    recipe is kept only when the number of distinct matching names equals the
    number of requested names. The text filter is a case-insensitive substring
    test over title, description, ingredients and instructions. Newest first.
    """

    names = normalize_tag_names(tag_names)
    sql = f"SELECT {RECIPE_COLUMNS} FROM recipes"
    params: List[object] = []
    if names:
        placeholders = ",".join("?" for _ in names)
        sql += f"""
            WHERE id IN (
                SELECT rt.recipe_id
                FROM recipe_tags AS rt
                JOIN tags AS t ON t.id = rt.tag_id
                WHERE t.name IN ({placeholders})
                GROUP BY rt.recipe_id
                HAVING COUNT(DISTINCT t.name) = ?
            )
        """
        params.extend(names)
        params.append(len(names))
    sql += " ORDER BY created_at DESC, id DESC"

    with transaction(immediate=False) as conn:
        rows = conn.execute(sql, tuple(params)).fetchall()
        matches = filter_recipes([_row_to_recipe(row) for row in rows], query)
        tag_map = _load_tags_for_recipes(conn, [recipe.id for recipe in matches])

    return [recipe.model_copy(update={"tags": tag_map.get(recipe.id, [])}) for recipe in matches]
