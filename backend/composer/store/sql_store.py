# composer/store/sql_store.py
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from composer.application.categories.category_tree import category_tree
from composer.application.categories.create_category import create_category
from composer.application.categories.delete_category import delete_category
from composer.application.categories.update_category import update_category
from composer.application.ordering.create_item import create_item
from composer.application.ordering.delete_item import delete_item
from composer.application.ordering.list_items import list_items
from composer.application.ordering.reorder_items import reorder_items
from composer.application.ordering.update_item import update_item
from composer.domain.invariants.exceptions import PersistenceFailed
from composer.domain.types import CategoryNode, OrderedItem
from composer.engine.cancellation import CancelToken, check_signal
from composer.engine.store import ContentStore
from composer.normalizers.category import normalize_category, to_category_node
from composer.normalizers.collection_item import to_ordered_item

logger = logging.getLogger(__name__)


class SqlContentStore(ContentStore):
    """
    In-process store-of-record backed by the Flask-SQLAlchemy models.

    Each call runs the matching application use case inside its own app
    context, so every write is its own transaction. Database errors surface
    as ``PersistenceFailed``; domain rejections keep their own type.
    """

    def __init__(self, app):
        self.app = app

    def _run(self, signal: Optional[CancelToken], fn: Callable, **kwargs):
        check_signal(signal)
        with self.app.app_context():
            try:
                return fn(**kwargs)
            except SQLAlchemyError as exc:
                logger.error("Store call %s failed: %s", fn.__name__, exc)
                raise PersistenceFailed(f"{fn.__name__} failed") from exc

    # -------------------------------------------------
    # Ordered collections
    # -------------------------------------------------

    async def list_items(self, collection_id: str, *, signal=None) -> List[OrderedItem]:
        def load(collection_id):
            return [to_ordered_item(item) for item in list_items(collection_id=collection_id)]

        return self._run(signal, load, collection_id=collection_id)

    async def update_position(self, item_id, position: int, *, signal=None) -> None:
        self._run(signal, update_item, item_id=item_id, data={"position": position})

    async def update_positions_batch(self, collection_id: str, ordered_ids: Sequence, *, signal=None) -> None:
        self._run(signal, reorder_items, collection_id=collection_id, ordered_ids=list(ordered_ids))

    async def update_active(self, item_id, active: bool, *, signal=None) -> None:
        self._run(signal, update_item, item_id=item_id, data={"is_active": active})

    async def create_item(self, collection_id: str, fields: Dict[str, Any], *, signal=None) -> OrderedItem:
        def create(collection_id, data):
            return to_ordered_item(create_item(collection_id=collection_id, data=data))

        # The store always appends; a client-proposed position is not trusted.
        data = {key: value for key, value in fields.items() if key != "position"}
        return self._run(signal, create, collection_id=collection_id, data=data)

    async def delete_item(self, item_id, *, signal=None) -> None:
        self._run(signal, delete_item, item_id=item_id)

    # -------------------------------------------------
    # Category hierarchy
    # -------------------------------------------------

    async def create_node(self, parent_id, fields: Dict[str, Any], *, signal=None) -> CategoryNode:
        def create(parent_id, data):
            return to_category_node(normalize_category(create_category(parent_id=parent_id, data=data)))

        return self._run(signal, create, parent_id=parent_id, data=dict(fields))

    async def update_node(self, node_id, fields: Dict[str, Any], *, signal=None) -> None:
        data = dict(fields)
        if "active" in data:
            data["is_active"] = data.pop("active")
        if "position" in data:
            data["ordering"] = data.pop("position")
        self._run(signal, update_category, category_id=node_id, data=data)

    async def delete_node(self, node_id, *, signal=None) -> None:
        self._run(signal, delete_category, category_id=node_id)

    async def fetch_tree(self, *, signal=None) -> List[CategoryNode]:
        def load():
            return [to_category_node(node) for node in category_tree()]

        return self._run(signal, load)
