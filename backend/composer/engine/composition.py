# composer/engine/composition.py
from typing import Iterable, List, Sequence

from composer.domain.invariants.exceptions import InvalidReference
from composer.domain.tree import CategoryTree
from composer.domain.types import CategoryNode, OrderedItem

CATEGORY_REF = "category_id"


def linked_category(item: OrderedItem):
    return (item.payload or {}).get(CATEGORY_REF)


def find_orphans(items: Iterable[OrderedItem], tree: CategoryTree) -> List[OrderedItem]:
    """Items pointing at a category the tree no longer holds."""
    return [
        item for item in items
        if linked_category(item) is not None and linked_category(item) not in tree
    ]


def assert_references(items: Iterable[OrderedItem], tree: CategoryTree) -> None:
    orphans = find_orphans(items, tree)
    if orphans:
        refs = ", ".join(f"{item.id}->{linked_category(item)}" for item in orphans)
        raise InvalidReference(f"Items reference missing categories: {refs}")


def available_categories(items: Sequence[OrderedItem], tree: CategoryTree) -> List[CategoryNode]:
    """Active categories not yet linked from ``items``, in tree order."""
    linked = {linked_category(item) for item in items}
    return [
        node for node in tree.nodes()
        if node.active and node.id not in linked
    ]


def assert_linkable(items: Sequence[OrderedItem], tree: CategoryTree, category_id) -> None:
    """Guard for adding a category to a block: it must exist and not be linked twice."""
    if category_id not in tree:
        raise InvalidReference(f"Unknown category: {category_id}")

    if any(linked_category(item) == category_id for item in items):
        raise InvalidReference(f"Category {category_id} is already in this block")
