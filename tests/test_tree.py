"""Tests for the tag forest builder."""

from __future__ import annotations

from recipebox.models import Tag
from recipebox.tree import build_tag_tree, flatten_tag_tree


def _tags(*rows):
    return [Tag(id=tag_id, name=name, parent_tag_id=parent) for tag_id, name, parent in rows]


class TestBuildTagTree:
    def test_empty_input_gives_empty_forest(self) -> None:
        assert build_tag_tree([]) == []

    def test_nests_children_sorted_by_name(self) -> None:
        forest = build_tag_tree(
            _tags(
                (1, "Meal Type", None),
                (2, "Lunch", 1),
                (3, "Breakfast", 1),
                (4, "Cuisine", None),
                (5, "Italian", 4),
                (6, "Brunch", 3),
            )
        )

        assert [node.name for node in forest] == ["Cuisine", "Meal Type"]
        meal_type = forest[1]
        assert [child.name for child in meal_type.children] == ["Breakfast", "Lunch"]
        assert [child.name for child in meal_type.children[0].children] == ["Brunch"]
        assert forest[0].children[0].children == []

    def test_round_trip_reproduces_parent_relation(self) -> None:
        tags = _tags(
            (1, "Cuisine", None),
            (2, "Italian", 1),
            (3, "Pasta", 2),
            (4, "Dietary", None),
            (5, "Vegan", 4),
            (6, "Vegetarian", 4),
            (7, "Mexican", 1),
        )

        pairs = set(flatten_tag_tree(build_tag_tree(tags)))

        assert pairs == {(tag.id, tag.parent_tag_id) for tag in tags}

    def test_dangling_parent_is_omitted(self) -> None:
        forest = build_tag_tree(_tags((1, "Root", None), (2, "Orphan", 99)))

        assert [node.name for node in forest] == ["Root"]
        assert forest[0].children == []

    def test_cycles_terminate_and_are_dropped(self) -> None:
        forest = build_tag_tree(
            _tags(
                (1, "Root", None),
                (2, "Loop A", 3),
                (3, "Loop B", 2),
                (4, "Self", 4),
                (5, "Hanger", 2),
            )
        )

        assert list(flatten_tag_tree(forest)) == [(1, None)]

    def test_is_deterministic_regardless_of_input_order(self) -> None:
        rows = _tags((1, "B", None), (2, "A", None), (3, "c", 1), (4, "C", 1))

        assert build_tag_tree(rows) == build_tag_tree(list(reversed(rows)))
        assert [child.name for child in build_tag_tree(rows)[1].children] == ["C", "c"]

    def test_deep_chain_builds_and_flattens(self) -> None:
        depth = 3000
        tags = [Tag(id=1, name="t1", parent_tag_id=None)] + [
            Tag(id=i, name=f"t{i}", parent_tag_id=i - 1) for i in range(2, depth + 1)
        ]

        forest = build_tag_tree(tags)

        pairs = list(flatten_tag_tree(forest))
        assert len(forest) == 1
        assert len(pairs) == depth
        assert pairs[0] == (1, None)
        assert pairs[-1] == (depth, depth - 1)
        assert set(pairs) == {(tag.id, tag.parent_tag_id) for tag in tags}
