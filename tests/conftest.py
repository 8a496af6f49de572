"""
Shared fixtures.

``FakeStore`` is an in-memory ``ContentStore`` whose calls can be made to
fail or to block on a gate, so the concurrency rules of the engine can be
exercised without a network.
"""
import asyncio
from dataclasses import replace
from typing import Any, Dict, List

import pytest

from composer import create_app
from composer.domain.invariants.exceptions import NotEmpty, PersistenceFailed
from composer.domain.tree import CategoryTree
from composer.domain.types import CategoryNode, OrderedItem
from composer.engine.cancellation import check_signal
from composer.engine.events import EngineEvents
from composer.engine.store import ContentStore
from composer.extensions import db


class RecordingEvents(EngineEvents):
    def __init__(self):
        self.sequences: List[List[OrderedItem]] = []
        self.forests: List[list] = []
        self.errors: List[tuple] = []

    def on_sequence_changed(self, sequence):
        self.sequences.append(list(sequence))

    def on_tree_changed(self, forest):
        self.forests.append(list(forest))

    def on_error(self, kind, message):
        self.errors.append((kind, message))

    @property
    def error_kinds(self):
        return [kind for kind, _ in self.errors]


class FakeStore(ContentStore):
    def __init__(self, items=(), nodes=()):
        self._order: Dict[Any, int] = {}
        self.items: Dict[Any, OrderedItem] = {}
        for item in items:
            self._order[item.id] = len(self._order)
            self.items[item.id] = item

        self.nodes: Dict[Any, CategoryNode] = {n.id: replace(n, children=[]) for n in nodes}

        self.calls: List[tuple] = []
        self.signals: List[Any] = []
        self.fail_on = set()
        self.gates: Dict[str, asyncio.Future] = {}
        self.in_flight = 0
        self.max_in_flight = 0
        self._next_id = 100

    async def _enter(self, name, key=None, signal=None):
        self.calls.append((name, key))
        self.signals.append(signal)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            gate = self.gates.pop(name, None)
            if gate is not None:
                await gate
            await asyncio.sleep(0)
            check_signal(signal)
            if name in self.fail_on or (name, key) in self.fail_on:
                raise PersistenceFailed(f"{name} failed")
        finally:
            self.in_flight -= 1

    def calls_to(self, name):
        return [key for call, key in self.calls if call == name]

    # -------------------------------------------------
    # Ordered collections
    # -------------------------------------------------

    def truth(self, collection_id=None) -> List[OrderedItem]:
        items = [
            item for item in self.items.values()
            if collection_id is None or item.collection_id in (None, collection_id)
        ]
        return sorted(items, key=lambda i: (i.position, self._order[i.id]))

    async def list_items(self, collection_id, *, signal=None):
        await self._enter("list_items", collection_id, signal)
        return self.truth(collection_id)

    async def update_position(self, item_id, position, *, signal=None):
        await self._enter("update_position", item_id, signal)
        self.items[item_id] = self.items[item_id].with_position(position)

    async def update_positions_batch(self, collection_id, ordered_ids, *, signal=None):
        await self._enter("update_positions_batch", tuple(ordered_ids), signal)
        for index, item_id in enumerate(ordered_ids):
            self.items[item_id] = self.items[item_id].with_position(index)

    async def update_active(self, item_id, active, *, signal=None):
        await self._enter("update_active", item_id, signal)
        self.items[item_id] = self.items[item_id].with_active(active)

    async def create_item(self, collection_id, fields, *, signal=None):
        await self._enter("create_item", collection_id, signal)
        self._next_id += 1
        item = OrderedItem(
            id=self._next_id,
            position=len(self.truth(collection_id)),
            active=fields.get("active", True),
            payload={k: v for k, v in fields.items() if k not in ("position", "active")},
            collection_id=collection_id,
        )
        self._order[item.id] = len(self._order)
        self.items[item.id] = item
        return item

    async def delete_item(self, item_id, *, signal=None):
        await self._enter("delete_item", item_id, signal)
        self.items.pop(item_id)

    # -------------------------------------------------
    # Category hierarchy
    # -------------------------------------------------

    async def create_node(self, parent_id, fields, *, signal=None):
        await self._enter("create_node", parent_id, signal)
        self._next_id += 1
        node = CategoryNode(
            id=f"c{self._next_id}",
            name=fields["name"],
            slug=fields["slug"],
            parent_id=parent_id,
            active=fields.get("is_active", True),
        )
        self.nodes[node.id] = node
        return node

    async def update_node(self, node_id, fields, *, signal=None):
        await self._enter("update_node", node_id, signal)
        node = self.nodes[node_id]
        local = {k: v for k, v in fields.items() if k in ("parent_id", "name", "slug")}
        if "is_active" in fields:
            local["active"] = fields["is_active"]
        if "is_campaign" in fields:
            local["is_campaign"] = fields["is_campaign"]
        self.nodes[node_id] = replace(node, **local)

    async def delete_node(self, node_id, *, signal=None):
        await self._enter("delete_node", node_id, signal)
        if any(n.parent_id == node_id for n in self.nodes.values()):
            raise NotEmpty("Category has subcategories and cannot be deleted")
        self.nodes.pop(node_id)

    async def fetch_tree(self, *, signal=None):
        await self._enter("fetch_tree", None, signal)
        return CategoryTree(self.nodes.values()).to_forest()


def make_items(*ids, collection_id="landing"):
    return [
        OrderedItem(id=item_id, position=index, collection_id=collection_id)
        for index, item_id in enumerate(ids)
    ]


def node(node_id, name=None, parent_id=None, position=0, **kwargs):
    name = name or node_id
    return CategoryNode(
        id=node_id,
        name=name,
        slug=name.lower(),
        parent_id=parent_id,
        position=position,
        **kwargs,
    )


@pytest.fixture
def events():
    return RecordingEvents()


@pytest.fixture
def app():
    app = create_app("testing")
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()
