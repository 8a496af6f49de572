# composer/engine/ordered_collection.py
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from composer.domain.invariants.exceptions import (
    InvalidReference,
    InvariantViolation,
    OperationCancelled,
    PersistenceFailed,
)
from composer.domain.invariants.ordering import assert_complete_permutation
from composer.domain.types import Identifier, OrderedItem
from composer.utils.positions import (
    clamp_index,
    id_order,
    index_of,
    move_item,
    normalize_sequence,
    renumber,
)
from .cancellation import CancelToken, run_cancellable
from .events import EngineEvents, report_error
from .store import ContentStore

logger = logging.getLogger(__name__)


class CommitStrategy(str, Enum):
    WHOLE_BATCH = "batch"
    PER_ITEM = "per_item"


class CommitOutcome(str, Enum):
    COMMITTED = "committed"
    UNCHANGED = "unchanged"
    SUPERSEDED = "superseded"
    FAILED = "failed"


def _as_store_error(exc: Exception) -> Exception:
    if isinstance(exc, (PersistenceFailed, OperationCancelled)):
        return exc
    return PersistenceFailed(str(exc) or exc.__class__.__name__)


class OrderedCollectionManager:
    """
    Working copy of one ordered sequence for the length of an editing session.

    Responsibilities:
    - compute proposed orders (``move``) with gapless renumbering
    - persist them with one of two strategies, one commit in flight at a time
    - discard the working copy and reload store truth on any failed commit

    Every ``move`` and ``commit`` bumps a generation counter. A store response
    is applied only while its generation is still current, and the pending
    call of a superseded commit is aborted through its ``CancelToken``.
    ``append`` and ``remove`` wait for a pending commit instead of
    superseding it. ``close`` aborts every pending store call.
    """

    def __init__(
        self,
        store: ContentStore,
        collection_id: str,
        *,
        strategy: CommitStrategy = CommitStrategy.WHOLE_BATCH,
        events: Optional[EngineEvents] = None,
        position_base: int = 0,
        refresh_after_commit: bool = False,
    ):
        self.store = store
        self.collection_id = collection_id
        self.strategy = CommitStrategy(strategy)
        self.events = events or EngineEvents()
        self.position_base = position_base
        self.refresh_after_commit = refresh_after_commit

        self._items: List[OrderedItem] = []
        self._confirmed: List[OrderedItem] = []
        self._generation = 0
        self._inflight: Optional[CancelToken] = None
        self._settled: Optional[asyncio.Event] = None
        self._lifetime = CancelToken()

    # -------------------------------------------------
    # State
    # -------------------------------------------------

    @property
    def sequence(self) -> List[OrderedItem]:
        return list(self._items)

    @property
    def confirmed(self) -> List[OrderedItem]:
        """Last sequence known to match the store."""
        return list(self._confirmed)

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_saving(self) -> bool:
        return self._inflight is not None

    @property
    def closed(self) -> bool:
        return self._lifetime.cancelled

    def get(self, item_id: Identifier) -> OrderedItem:
        index = index_of(self._items, item_id)
        if index == -1:
            raise InvalidReference(f"Item {item_id} is not in collection {self.collection_id}")
        return self._items[index]

    def load(self, sequence: Sequence[OrderedItem]) -> None:
        """
        Replace the working copy with store truth.

        Safe while a commit is pending: it is how rollbacks land.
        """
        self._items = normalize_sequence(sequence, start=self.position_base)
        self._confirmed = list(self._items)
        self._emit()

    async def refresh(self) -> List[OrderedItem]:
        items = await self._call(self.store.list_items, self.collection_id)
        self.load(items)
        return self.sequence

    def close(self) -> None:
        """End the editing session; pending store calls resolve as cancelled."""
        self._lifetime.cancel("closed")
        self._supersede()

    # -------------------------------------------------
    # Local mutation
    # -------------------------------------------------

    def move(self, item_id: Identifier, target_index: int) -> List[OrderedItem]:
        """
        Remove ``item_id`` and reinsert it at ``target_index`` (clamped).

        The proposal becomes the optimistic working copy; nothing is
        persisted here.
        """
        from_index = index_of(self._items, item_id)
        if from_index == -1:
            self._fail_validation(
                InvalidReference(f"Item {item_id} is not in collection {self.collection_id}")
            )

        to_index = clamp_index(target_index, len(self._items))
        if from_index == to_index:
            return self.sequence

        proposed = renumber(
            move_item(self._items, from_index, to_index),
            start=self.position_base,
        )

        self._supersede()
        self._items = proposed
        self._emit()
        return self.sequence

    # -------------------------------------------------
    # Persistence
    # -------------------------------------------------

    async def commit(
        self,
        sequence: Optional[Sequence[OrderedItem]] = None,
        *,
        strategy: Optional[CommitStrategy] = None,
    ) -> CommitOutcome:
        """
        Persist ``sequence`` (default: the working copy).

        Returns COMMITTED, SUPERSEDED (cancelled or overtaken, no state
        change) or FAILED (store truth reloaded, error reported).
        """
        proposed = renumber(
            self._items if sequence is None else sequence,
            start=self.position_base,
        )

        try:
            assert_complete_permutation(id_order(self._items), id_order(proposed))
        except InvariantViolation as exc:
            self._fail_validation(exc)

        generation = self._supersede()
        token = CancelToken()
        self._inflight = token
        settled = asyncio.Event()
        self._settled = settled

        if id_order(proposed) != id_order(self._items):
            self._items = proposed
            self._emit()

        try:
            return await self._finish_commit(
                proposed,
                CommitStrategy(strategy or self.strategy),
                generation,
                token,
            )
        finally:
            settled.set()

    async def reorder(self, item_id: Identifier, target_index: int) -> CommitOutcome:
        """Drag-end entry point: ``move`` then ``commit``."""
        before = id_order(self._items)
        proposed = self.move(item_id, target_index)

        if id_order(proposed) == before:
            return CommitOutcome.UNCHANGED

        return await self.commit()

    async def toggle_active(self, item_id: Identifier) -> bool:
        """
        Flip ``active`` optimistically. A failure reverts that one field and
        leaves the order alone.
        """
        index = index_of(self._items, item_id)
        if index == -1:
            self._fail_validation(
                InvalidReference(f"Item {item_id} is not in collection {self.collection_id}")
            )

        new_active = not self._items[index].active
        self._set_active(item_id, new_active)

        try:
            await self._call(self.store.update_active, item_id, new_active)
        except Exception as exc:
            if not isinstance(exc, OperationCancelled):
                logger.warning("Toggling %s on %s failed: %s", item_id, self.collection_id, exc)
            current = index_of(self._items, item_id)
            if current != -1 and self._items[current].active == new_active:
                self._set_active(item_id, not new_active)
            report_error(self.events, _as_store_error(exc))
            return False

        confirmed = index_of(self._confirmed, item_id)
        if confirmed != -1:
            self._confirmed[confirmed] = self._confirmed[confirmed].with_active(new_active)
        return True

    async def append(self, fields: Dict[str, Any]) -> Optional[OrderedItem]:
        """Create an item through the store and place it last."""
        await self._wait_for_commit()

        position = self.position_base + len(self._items)
        generation = self._supersede()

        try:
            created = await self._call(
                self.store.create_item,
                self.collection_id,
                {**fields, "position": position},
            )
        except OperationCancelled:
            return None
        except Exception as exc:
            logger.warning("Creating item in %s failed: %s", self.collection_id, exc)
            await self._rollback(generation)
            report_error(self.events, _as_store_error(exc))
            return None

        self._items = renumber([*self._items, created], start=self.position_base)
        self._confirmed = renumber([*self._confirmed, created], start=self.position_base)
        self._emit()
        return self._items[-1]

    async def remove(self, item_id: Identifier) -> bool:
        """Delete through the store; the remaining items close the gap."""
        await self._wait_for_commit()

        index = index_of(self._items, item_id)
        if index == -1:
            self._fail_validation(
                InvalidReference(f"Item {item_id} is not in collection {self.collection_id}")
            )

        generation = self._supersede()
        self._items = renumber(
            [item for item in self._items if item.id != item_id],
            start=self.position_base,
        )
        self._emit()

        try:
            await self._call(self.store.delete_item, item_id)
        except Exception as exc:
            if not isinstance(exc, OperationCancelled):
                logger.warning("Removing %s from %s failed: %s", item_id, self.collection_id, exc)
            await self._rollback(generation)
            report_error(self.events, _as_store_error(exc))
            return False

        self._confirmed = renumber(
            [item for item in self._confirmed if item.id != item_id],
            start=self.position_base,
        )
        return True

    # -------------------------------------------------
    # Internals
    # -------------------------------------------------

    async def _finish_commit(
        self,
        proposed: List[OrderedItem],
        strategy: CommitStrategy,
        generation: int,
        token: CancelToken,
    ) -> CommitOutcome:
        try:
            await self._persist(proposed, strategy, token)
        except OperationCancelled:
            logger.debug(
                "Commit %s on %s cancelled", generation, self.collection_id
            )
            return CommitOutcome.SUPERSEDED
        except Exception as exc:
            if not self._is_current(generation):
                logger.debug(
                    "Ignoring failure of superseded commit %s on %s: %s",
                    generation, self.collection_id, exc,
                )
                return CommitOutcome.SUPERSEDED

            self._inflight = None
            logger.warning(
                "Commit %s on %s failed, reloading from store: %s",
                generation, self.collection_id, exc,
            )
            await self._rollback(generation)
            report_error(self.events, _as_store_error(exc))
            return CommitOutcome.FAILED

        if not self._is_current(generation):
            return CommitOutcome.SUPERSEDED

        self._inflight = None
        self._confirmed = list(proposed)

        if self.refresh_after_commit:
            try:
                await self._reload(generation)
            except Exception as exc:
                # The write landed; the working copy already holds it.
                logger.warning(
                    "Reload of %s after commit %s failed: %s",
                    self.collection_id, generation, exc,
                )
                report_error(self.events, _as_store_error(exc))

        logger.info(
            "Committed order of %s (%d items, %s)",
            self.collection_id, len(proposed), strategy.value,
        )
        return CommitOutcome.COMMITTED

    async def _persist(
        self,
        proposed: List[OrderedItem],
        strategy: CommitStrategy,
        token: CancelToken,
    ) -> None:
        if strategy is CommitStrategy.WHOLE_BATCH:
            await run_cancellable(
                self.store.update_positions_batch(
                    self.collection_id, id_order(proposed), signal=token
                ),
                token,
            )
            return

        # Strictly sequential: parallel writes could land out of order.
        for item in proposed:
            token.raise_if_cancelled()
            await run_cancellable(
                self.store.update_position(item.id, item.position, signal=token),
                token,
            )

    async def _call(self, method: Callable[..., Awaitable], *args):
        """Store call bound to the session; ``close`` aborts it."""
        return await run_cancellable(method(*args, signal=self._lifetime), self._lifetime)

    async def _wait_for_commit(self) -> None:
        while self._settled is not None and not self._settled.is_set():
            await self._settled.wait()

    def _supersede(self) -> int:
        self._generation += 1
        if self._inflight is not None:
            self._inflight.cancel("superseded")
            self._inflight = None
        return self._generation

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    async def _rollback(self, generation: int) -> None:
        try:
            await self._reload(generation)
        except Exception as exc:
            logger.error(
                "Reload of %s failed after a persistence error, restoring last confirmed order: %s",
                self.collection_id, exc,
            )
            if self._is_current(generation):
                self._items = list(self._confirmed)
                self._emit()

    async def _reload(self, generation: int) -> None:
        items = await self._call(self.store.list_items, self.collection_id)
        if self._is_current(generation):
            self.load(items)

    def _set_active(self, item_id: Identifier, active: bool) -> None:
        self._items = [
            item.with_active(active) if item.id == item_id else item
            for item in self._items
        ]
        self._emit()

    def _fail_validation(self, error: InvariantViolation):
        report_error(self.events, error)
        raise error

    def _emit(self) -> None:
        try:
            self.events.on_sequence_changed(self.sequence)
        except Exception:
            logger.exception("on_sequence_changed listener failed for %s", self.collection_id)
