# composer/engine/store.py
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from composer.domain.types import CategoryNode, Identifier, OrderedItem
from .cancellation import CancelToken


class ContentStore(ABC):
    """
    The store-of-record as seen by the engine.

    Every call is a network round trip in production and accepts an
    external ``signal``. Implementations raise ``OperationCancelled`` when
    the signal has fired and ``PersistenceFailed`` (or a subclass) when the
    write is rejected.
    """

    # -------------------------------------------------
    # Ordered collections
    # -------------------------------------------------

    @abstractmethod
    async def list_items(
        self, collection_id: str, *, signal: Optional[CancelToken] = None
    ) -> List[OrderedItem]:
        ...

    @abstractmethod
    async def update_position(
        self, item_id: Identifier, position: int, *, signal: Optional[CancelToken] = None
    ) -> None:
        ...

    @abstractmethod
    async def update_positions_batch(
        self,
        collection_id: str,
        ordered_ids: Sequence[Identifier],
        *,
        signal: Optional[CancelToken] = None,
    ) -> None:
        """Apply positions in exactly the order of ``ordered_ids``."""

    @abstractmethod
    async def update_active(
        self, item_id: Identifier, active: bool, *, signal: Optional[CancelToken] = None
    ) -> None:
        ...

    @abstractmethod
    async def create_item(
        self, collection_id: str, fields: Dict[str, Any], *, signal: Optional[CancelToken] = None
    ) -> OrderedItem:
        ...

    @abstractmethod
    async def delete_item(
        self, item_id: Identifier, *, signal: Optional[CancelToken] = None
    ) -> None:
        ...

    # -------------------------------------------------
    # Category hierarchy
    # -------------------------------------------------

    @abstractmethod
    async def create_node(
        self,
        parent_id: Optional[Identifier],
        fields: Dict[str, Any],
        *,
        signal: Optional[CancelToken] = None,
    ) -> CategoryNode:
        ...

    @abstractmethod
    async def update_node(
        self, node_id: Identifier, fields: Dict[str, Any], *, signal: Optional[CancelToken] = None
    ) -> None:
        """``fields`` is a subset of parent_id, name, slug, is_active and the campaign fields."""

    @abstractmethod
    async def delete_node(
        self, node_id: Identifier, *, signal: Optional[CancelToken] = None
    ) -> None:
        """Raises ``NotEmpty`` while the node still has children."""

    @abstractmethod
    async def fetch_tree(self, *, signal: Optional[CancelToken] = None) -> List[CategoryNode]:
        ...
