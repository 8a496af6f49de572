# composer/utils/positions.py
from typing import Iterable, List, Sequence, TypeVar

from composer.domain.types import Identifier, OrderedItem

T = TypeVar("T")


def clamp_index(index: int, length: int) -> int:
    if length <= 0:
        return 0
    return max(0, min(int(index), length - 1))


def move_item(items: Sequence[T], from_index: int, to_index: int) -> List[T]:
    """
    Return a new list with the element at ``from_index`` moved to ``to_index``.
    The input is never mutated.
    """
    copy = list(items)
    item = copy.pop(from_index)
    copy.insert(to_index, item)
    return copy


def renumber(items: Iterable[OrderedItem], start: int = 0) -> List[OrderedItem]:
    """Gapless renumbering: position becomes the array index (+ start)."""
    return [
        item if item.position == index else item.with_position(index)
        for index, item in enumerate(items, start=start)
    ]


def normalize_sequence(items: Iterable[OrderedItem], start: int = 0) -> List[OrderedItem]:
    """
    Sort by the positions a caller supplied, then renumber.

    Positions that did not come out of a reorder are only trusted for their
    relative order; ties keep the incoming order.
    """
    return renumber(sorted(items, key=lambda item: item.position), start=start)


def index_of(items: Sequence[OrderedItem], item_id: Identifier) -> int:
    for index, item in enumerate(items):
        if item.id == item_id:
            return index
    return -1


def id_order(items: Iterable[OrderedItem]) -> List[Identifier]:
    return [item.id for item in items]
