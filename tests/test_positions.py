import pytest

from composer.domain.invariants.exceptions import InvalidReference, InvariantViolation
from composer.domain.invariants.ordering import assert_complete_permutation, assert_positions
from composer.domain.types import OrderedItem
from composer.utils.positions import clamp_index, move_item, normalize_sequence, renumber
from composer.utils.slug import is_url_safe, slugify


def test_move_item_does_not_mutate_input():
    source = ["a", "b", "c"]
    assert move_item(source, 2, 0) == ["c", "a", "b"]
    assert source == ["a", "b", "c"]


@pytest.mark.parametrize("index, expected", [(-3, 0), (0, 0), (2, 2), (9, 3)])
def test_clamp_index(index, expected):
    assert clamp_index(index, 4) == expected


def test_renumber_is_gapless_from_base():
    items = [OrderedItem(id=i, position=p) for i, p in [(1, 7), (2, 3), (3, 3)]]
    assert [i.position for i in renumber(items)] == [0, 1, 2]
    assert [i.position for i in renumber(items, start=1)] == [1, 2, 3]


def test_normalize_sequence_sorts_by_supplied_positions_then_renumbers():
    items = [OrderedItem(id="b", position=10), OrderedItem(id="a", position=2)]
    normalized = normalize_sequence(items)
    assert [(i.id, i.position) for i in normalized] == [("a", 0), ("b", 1)]


def test_assert_positions_rejects_gaps_and_duplicates():
    assert_positions([OrderedItem(id=1, position=0), OrderedItem(id=2, position=1)])

    with pytest.raises(InvariantViolation):
        assert_positions([OrderedItem(id=1, position=0), OrderedItem(id=2, position=2)])

    with pytest.raises(InvariantViolation):
        assert_positions([OrderedItem(id=1, position=1), OrderedItem(id=2, position=1)], start=1)


def test_complete_permutation_checks():
    assert_complete_permutation([1, 2, 3], [3, 1, 2])

    with pytest.raises(InvalidReference, match="duplicate"):
        assert_complete_permutation([1, 2], [1, 1])
    with pytest.raises(InvalidReference, match="Unknown"):
        assert_complete_permutation([1, 2], [1, 9])
    with pytest.raises(InvalidReference, match="missing"):
        assert_complete_permutation([1, 2, 3], [1, 2])


@pytest.mark.parametrize("name, expected", [
    ("Summer Sale", "summer-sale"),
    ("  Shoes & Bags  ", "shoes-bags"),
    ("Kids -- Toys", "kids-toys"),
    ("Déco 2024!", "dco-2024"),
])
def test_slugify(name, expected):
    assert slugify(name) == expected
    assert is_url_safe(expected)


def test_is_url_safe_rejects_spaces_and_empty():
    assert not is_url_safe("")
    assert not is_url_safe("Summer Sale")
