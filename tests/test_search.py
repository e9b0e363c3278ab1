"""Tests for tag intersection search and the free-text filter."""

from __future__ import annotations

import pytest

from recipebox import storage
from recipebox.search import normalize_tag_names, parse_tag_list


@pytest.fixture
def catalogue(make_recipe):
    return {
        "abc": make_recipe("Frittata", tags=["A", "B", "C"], description="Oven baked eggs"),
        "ab": make_recipe("Porridge", tags=["A", "B"], ingredients="oats, MILK"),
        "a": make_recipe("Toast", tags=["A"], instructions="Toast the bread"),
        "none": make_recipe("Water"),
    }


def _ids(recipes):
    return {recipe.id for recipe in recipes}


class TestIntersection:
    def test_superset_matches(self, catalogue) -> None:
        assert _ids(storage.search_recipes(tag_names=["A", "B"])) == {catalogue["abc"], catalogue["ab"]}

    def test_subset_does_not_match(self, catalogue) -> None:
        assert _ids(storage.search_recipes(tag_names=["A", "B", "C"])) == {catalogue["abc"]}

    def test_repeated_names_count_once(self, catalogue) -> None:
        assert _ids(storage.search_recipes(tag_names=["C", "C"])) == {catalogue["abc"]}

    def test_unknown_name_matches_nothing(self, catalogue) -> None:
        assert storage.search_recipes(tag_names=["A", "Nope"]) == []

    def test_results_carry_their_tags(self, catalogue) -> None:
        (result,) = storage.search_recipes(tag_names=["C"])

        assert [tag.name for tag in result.tags] == ["A", "B", "C"]


class TestTextFilter:
    @pytest.mark.parametrize(
        ("query", "expected"),
        [
            ("frit", "abc"),
            ("BAKED", "abc"),
            ("milk", "ab"),
            ("the bread", "a"),
        ],
    )
    def test_matches_any_text_field_ignoring_case(self, catalogue, query, expected) -> None:
        assert _ids(storage.search_recipes(query=query)) == {catalogue[expected]}

    def test_query_whitespace_is_part_of_the_substring(self, catalogue) -> None:
        assert storage.search_recipes(query="eggs ") == []
        assert _ids(storage.search_recipes(query="milk, ")) == {
            catalogue["abc"],
            catalogue["a"],
            catalogue["none"],
        }

    def test_combines_with_tag_filter(self, catalogue) -> None:
        assert storage.search_recipes(query="toast", tag_names=["B"]) == []
        assert _ids(storage.search_recipes(query="toast", tag_names=["A"])) == {catalogue["a"]}

    def test_no_filters_returns_everything_newest_first(self, catalogue) -> None:
        results = storage.search_recipes(query="  ", tag_names=[])

        assert [recipe.id for recipe in results] == [
            catalogue["none"],
            catalogue["a"],
            catalogue["ab"],
            catalogue["abc"],
        ]


class TestTagNameParsing:
    def test_parse_tag_list(self) -> None:
        assert parse_tag_list(" Vegan, Quick ,,Vegan") == ["Vegan", "Quick"]
        assert parse_tag_list(None) == []

    def test_normalize_keeps_case(self) -> None:
        assert normalize_tag_names(["Vegan", "vegan"]) == ["Vegan", "vegan"]
