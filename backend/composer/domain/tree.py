# composer/domain/tree.py
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

from composer.domain.invariants.exceptions import InvalidReference, InvariantViolation
from composer.domain.types import CategoryNode, Identifier, ParentOption

logger = logging.getLogger(__name__)

INDENT = "— "


class CategoryTree:
    """
    Category hierarchy held as an adjacency map.

    ``_parent`` (id -> parent id) is the only edge store. The child index
    (parent id -> ordered child ids) is derived from it and rebuilt whenever
    edges change; the nested forest is produced on demand by ``to_forest``.
    """

    def __init__(self, nodes: Iterable[CategoryNode] = ()):
        self._nodes: Dict[Identifier, CategoryNode] = {}
        self._parent: Dict[Identifier, Optional[Identifier]] = {}
        self._children: Dict[Optional[Identifier], List[Identifier]] = {}

        for node in nodes:
            if node.id in self._nodes:
                raise InvariantViolation(f"Duplicate category id in tree: {node.id}")
            self._nodes[node.id] = replace(node, children=[])
            self._parent[node.id] = node.parent_id

        for node_id, parent_id in self._parent.items():
            if parent_id is not None and parent_id not in self._nodes:
                raise InvalidReference(
                    f"Category {node_id} references missing parent {parent_id}"
                )

        self._rebuild_index()
        self._assert_acyclic()

    # -------------------------------------------------
    # Construction
    # -------------------------------------------------

    @classmethod
    def from_forest(cls, forest: Iterable) -> "CategoryTree":
        """
        Build from a nested forest (``CategoryNode`` or API dicts).

        Children arrays are authoritative: a child whose ``parent_id``
        disagrees with where it sits is re-pointed to its actual parent.
        """
        flat: List[CategoryNode] = []

        def visit(node, parent_id):
            if isinstance(node, dict):
                node = CategoryNode.from_dict(node)

            if node.parent_id is not None and node.parent_id != parent_id:
                logger.warning(
                    "Category %s claims parent %s but is nested under %s; using tree membership",
                    node.id, node.parent_id, parent_id,
                )

            flat.append(replace(node, parent_id=parent_id, children=[]))
            for child in node.children:
                visit(child, node.id)

        for root in forest:
            visit(root, None)

        return cls(flat)

    def _rebuild_index(self) -> None:
        children: Dict[Optional[Identifier], List[Identifier]] = {None: []}
        for node_id in self._nodes:
            children.setdefault(node_id, [])

        for node_id, parent_id in self._parent.items():
            children[parent_id].append(node_id)

        for ids in children.values():
            ids.sort(key=lambda i: self._nodes[i].position)

        self._children = children

    def _assert_acyclic(self) -> None:
        seen = set(self.walk_ids())
        if len(seen) != len(self._nodes):
            stranded = sorted(map(str, set(self._nodes) - seen))
            raise InvariantViolation(f"Category hierarchy contains a cycle through {stranded}")

    # -------------------------------------------------
    # Queries
    # -------------------------------------------------

    def __contains__(self, node_id) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def get(self, node_id: Identifier) -> CategoryNode:
        try:
            return self._nodes[node_id]
        except KeyError:
            raise InvalidReference(f"Unknown category: {node_id}") from None

    def parent_of(self, node_id: Identifier) -> Optional[Identifier]:
        self.get(node_id)
        return self._parent[node_id]

    def children_of(self, node_id: Optional[Identifier]) -> List[Identifier]:
        if node_id is not None:
            self.get(node_id)
        return list(self._children.get(node_id, []))

    def roots(self) -> List[Identifier]:
        return list(self._children[None])

    def ancestors(self, node_id: Identifier) -> List[Identifier]:
        chain = []
        parent = self.parent_of(node_id)
        while parent is not None:
            chain.append(parent)
            parent = self._parent[parent]
        return chain

    def subtree_ids(self, node_id: Identifier) -> Set[Identifier]:
        """The node itself plus every descendant."""
        self.get(node_id)
        found = set()
        stack = [node_id]
        while stack:
            current = stack.pop()
            found.add(current)
            stack.extend(self._children.get(current, []))
        return found

    def walk(self) -> Iterator[Tuple[CategoryNode, int]]:
        """Depth-first, sibling order, yielding (node, depth)."""
        stack = [(node_id, 0) for node_id in reversed(self._children[None])]
        visited: Set[Identifier] = set()
        while stack:
            node_id, depth = stack.pop()
            if node_id in visited:
                continue
            visited.add(node_id)
            yield self._nodes[node_id], depth
            for child_id in reversed(self._children.get(node_id, [])):
                stack.append((child_id, depth + 1))

    def walk_ids(self) -> Iterator[Identifier]:
        for node, _ in self.walk():
            yield node.id

    def nodes(self) -> List[CategoryNode]:
        return [node for node, _ in self.walk()]

    # -------------------------------------------------
    # Mutation (working copy only)
    # -------------------------------------------------

    def move(self, node_id: Identifier, new_parent_id: Optional[Identifier]) -> None:
        """Re-point one edge. Callers validate with ``reparent`` first."""
        self.get(node_id)
        if new_parent_id is not None:
            self.get(new_parent_id)
            if new_parent_id in self.subtree_ids(node_id):
                raise InvariantViolation(
                    f"Moving {node_id} under {new_parent_id} would create a cycle"
                )

        self._parent[node_id] = new_parent_id
        self._nodes[node_id] = replace(self._nodes[node_id], parent_id=new_parent_id)
        self._rebuild_index()

    def update(self, node_id: Identifier, **fields) -> CategoryNode:
        if "parent_id" in fields:
            self.move(node_id, fields.pop("parent_id"))
        node = replace(self.get(node_id), **fields)
        self._nodes[node_id] = node
        if "position" in fields:
            self._rebuild_index()
        return node

    def to_forest(self) -> List[CategoryNode]:
        def build(node_id):
            node = self._nodes[node_id]
            return replace(node, children=[build(c) for c in self._children.get(node_id, [])])

        return [build(root) for root in self._children[None]]


def build_parent_options(
    tree: CategoryTree,
    exclude_node_id: Optional[Identifier] = None,
) -> List[ParentOption]:
    """
    Flatten the tree into reparent targets for ``exclude_node_id``.

    Depth-first walk; each emitted label is indented with one "— " per level.
    When the walk reaches ``exclude_node_id`` that node and its entire
    subtree are blocked: none of them is ever emitted, so a node can never
    be offered as a parent of itself or of one of its ancestors.
    """
    options: List[ParentOption] = []
    blocked: Set[Identifier] = set()

    for node, depth in tree.walk():
        if node.id in blocked:
            continue

        if node.id == exclude_node_id:
            blocked.update(tree.subtree_ids(node.id))
            continue

        options.append(ParentOption(node.id, f"{INDENT * depth}{node.name}"))

    return options


def blocked_parents(tree: CategoryTree, node_id: Identifier) -> Set[Identifier]:
    """Ids that may never become the parent of ``node_id``."""
    if node_id not in tree:
        return set()
    return tree.subtree_ids(node_id)


def matching_ids(tree: CategoryTree, query: str) -> Set[Identifier]:
    """
    Case-insensitive name/slug search. Ancestors of each hit are included so
    a filtered tree still renders from its roots.
    """
    needle = (query or "").strip().lower()
    if not needle:
        return set(tree.walk_ids())

    found: Set[Identifier] = set()
    for node in tree.nodes():
        if needle in node.name.lower() or needle in node.slug.lower():
            found.add(node.id)
            found.update(tree.ancestors(node.id))
    return found
