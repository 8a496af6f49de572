# composer/engine/hierarchy.py
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from composer.domain.invariants.campaign import parse_timestamp, validate_campaign_window
from composer.domain.invariants.exceptions import (
    CycleError,
    InvalidReference,
    InvariantViolation,
    OperationCancelled,
    PersistenceFailed,
)
from composer.domain.lifecycle.campaign import (
    CampaignState,
    assert_campaign_transition,
    classify,
)
from composer.domain.tree import CategoryTree, blocked_parents, build_parent_options, matching_ids
from composer.domain.types import (
    CampaignWindow,
    CategoryNode,
    Identifier,
    ParentOption,
    ReparentInstruction,
    Result,
)
from composer.utils.slug import is_url_safe, slugify
from .cancellation import CancelToken, run_cancellable
from .events import EngineEvents, report_error
from .store import ContentStore

logger = logging.getLogger(__name__)

CAMPAIGN_FIELDS = ("is_campaign", "starts_at", "ends_at", "show_countdown")


def _isoformat(value):
    ts = parse_timestamp(value)
    return ts.isoformat() if ts is not None else None


def _as_store_error(exc: Exception) -> Exception:
    if isinstance(exc, (PersistenceFailed, OperationCancelled)):
        return exc
    return PersistenceFailed(str(exc) or exc.__class__.__name__)


class HierarchyManager:
    """
    Working copy of the category tree.

    Validation (cycles, campaign windows, references) happens locally and
    never reaches the store. The store re-validates every write since this
    snapshot can be stale; any failed write replaces the tree wholesale with
    a fresh ``fetch_tree``.
    """

    def __init__(self, store: ContentStore, *, events: Optional[EngineEvents] = None):
        self.store = store
        self.events = events or EngineEvents()
        self.tree = CategoryTree()
        self._window_errors: Dict[Identifier, InvariantViolation] = {}
        self._lifetime = CancelToken()

    # -------------------------------------------------
    # Loading
    # -------------------------------------------------

    def load(self, forest) -> None:
        self.tree = CategoryTree.from_forest(forest)
        self._window_errors = {
            node_id: error
            for node_id, error in self._window_errors.items()
            if node_id in self.tree
        }
        self._emit()

    async def refresh(self) -> List[CategoryNode]:
        forest = await self._call(self.store.fetch_tree)
        self.load(forest)
        return self.tree.to_forest()

    def close(self) -> None:
        """End the editing session; pending store calls resolve as cancelled."""
        self._lifetime.cancel("closed")

    # -------------------------------------------------
    # Reparenting
    # -------------------------------------------------

    def build_parent_options(self, exclude_node_id: Optional[Identifier] = None) -> List[ParentOption]:
        return build_parent_options(self.tree, exclude_node_id)

    def reparent(
        self,
        node_id: Identifier,
        new_parent_id: Optional[Identifier],
    ) -> Result[ReparentInstruction]:
        """
        Check a proposed parent for ``node_id``. ``None`` makes it a root.

        Fails with CycleError when the target is the node itself or one of
        its descendants, InvalidReference when either id is unknown.
        """
        if node_id not in self.tree:
            return Result.failure(InvalidReference(f"Unknown category: {node_id}"))

        if new_parent_id is None:
            return Result.success(ReparentInstruction(node_id, None))

        if new_parent_id == node_id:
            return Result.failure(CycleError(f"Category {node_id} cannot be its own parent"))

        if new_parent_id not in self.tree:
            return Result.failure(InvalidReference(f"Unknown parent category: {new_parent_id}"))

        if new_parent_id in blocked_parents(self.tree, node_id):
            return Result.failure(
                CycleError(
                    f"Category {new_parent_id} is a descendant of {node_id} and cannot become its parent"
                )
            )

        return Result.success(ReparentInstruction(node_id, new_parent_id))

    async def apply_reparent(
        self,
        node_id: Identifier,
        new_parent_id: Optional[Identifier],
    ) -> Result[CategoryNode]:
        result = self.reparent(node_id, new_parent_id)
        if not result.ok:
            report_error(self.events, result.error)
            return Result.failure(result.error)

        return await self._write(node_id, result.value.as_fields())

    # -------------------------------------------------
    # Campaigns
    # -------------------------------------------------

    def validate_campaign_window(
        self,
        window: Optional[CampaignWindow],
        *,
        require_complete: bool = False,
        node_id: Optional[Identifier] = None,
    ) -> Result[CampaignWindow]:
        result = validate_campaign_window(window, require_complete=require_complete)

        if node_id is not None:
            if result.ok:
                self._window_errors.pop(node_id, None)
            else:
                self._window_errors[node_id] = result.error

        return result

    def window_error(self, node_id: Identifier) -> Optional[InvariantViolation]:
        return self._window_errors.get(node_id)

    def campaign_state(self, node_id: Identifier, now: datetime) -> CampaignState:
        node = self.tree.get(node_id)
        return classify(node.campaign, now, is_campaign=node.is_campaign)

    @staticmethod
    def classify(window: Optional[CampaignWindow], now: datetime, *, is_campaign: bool = True) -> CampaignState:
        return classify(window, now, is_campaign=is_campaign)

    async def set_campaign(
        self,
        node_id: Identifier,
        *,
        enabled: bool,
        window: Optional[CampaignWindow] = None,
        now: Optional[datetime] = None,
    ) -> Result[CategoryNode]:
        """
        Switch the campaign flag of a category.

        Switching on needs a complete, well-ordered window; with ``now``
        given, a window that has already ended is refused. Switching off
        needs nothing and clears the stored window.
        """
        if node_id not in self.tree:
            return self._reject(InvalidReference(f"Unknown category: {node_id}"))

        if not enabled:
            self._window_errors.pop(node_id, None)
            return await self._write(node_id, {
                "is_campaign": False,
                "starts_at": None,
                "ends_at": None,
                "show_countdown": False,
            })

        result = self.validate_campaign_window(window, require_complete=True, node_id=node_id)
        if not result.ok:
            return self._reject(result.error)

        if now is not None:
            current = self.campaign_state(node_id, now)
            if current is CampaignState.INACTIVE:
                try:
                    assert_campaign_transition(
                        from_state=current,
                        to_state=classify(window, now),
                    )
                except InvariantViolation as exc:
                    self._window_errors[node_id] = exc
                    return self._reject(exc)

        return await self._write(node_id, {
            "is_campaign": True,
            "starts_at": _isoformat(window.starts_at),
            "ends_at": _isoformat(window.ends_at),
            "show_countdown": bool(window.show_countdown),
        })

    # -------------------------------------------------
    # Node lifecycle
    # -------------------------------------------------

    @staticmethod
    def derive_slug(name: str, slug: Optional[str] = None) -> str:
        """An explicit slug wins; otherwise the slug follows the name."""
        if slug and slug.strip():
            return slugify(slug.strip())
        return slugify(name)

    async def create_node(
        self,
        parent_id: Optional[Identifier],
        fields: Dict[str, Any],
    ) -> Result[CategoryNode]:
        name = (fields.get("name") or "").strip()
        if not name:
            return self._reject(InvariantViolation("Category name is required"))

        if parent_id is not None and parent_id not in self.tree:
            return self._reject(InvalidReference(f"Unknown parent category: {parent_id}"))

        payload = {**fields, "name": name, "slug": self.derive_slug(name, fields.get("slug"))}
        if not is_url_safe(payload["slug"]):
            return self._reject(InvariantViolation(f"Slug {payload['slug']!r} is not URL-safe"))

        if payload.get("is_campaign"):
            check = validate_campaign_window(_window_from(payload), require_complete=True)
            if not check.ok:
                return self._reject(check.error)
        else:
            payload.update(is_campaign=False, starts_at=None, ends_at=None, show_countdown=False)

        try:
            created = await self._call(self.store.create_node, parent_id, payload)
        except Exception as exc:
            return await self._fail(exc, f"Creating category {name!r} failed")

        created = replace(created, parent_id=parent_id, children=[])
        self.tree = CategoryTree([*self.tree.nodes(), created])
        self._emit()
        return Result.success(created)

    async def update_node(self, node_id: Identifier, fields: Dict[str, Any]) -> Result[CategoryNode]:
        """
        Validate an edit locally, then persist it.

        Campaign rules: switching on needs a complete window; editing a
        running campaign only needs the window to stay well ordered.
        """
        if node_id not in self.tree:
            return self._reject(InvalidReference(f"Unknown category: {node_id}"))

        node = self.tree.get(node_id)
        payload = dict(fields)

        if "parent_id" in payload:
            reparent = self.reparent(node_id, payload["parent_id"])
            if not reparent.ok:
                return self._reject(reparent.error)

        if "name" in payload:
            payload["name"] = (payload["name"] or "").strip()
            if not payload["name"]:
                return self._reject(InvariantViolation("Category name is required"))
            payload["slug"] = self.derive_slug(payload["name"], payload.get("slug"))
        elif "slug" in payload:
            payload["slug"] = self.derive_slug(node.name, payload["slug"])

        if any(key in payload for key in CAMPAIGN_FIELDS):
            enabling = bool(payload.get("is_campaign", node.is_campaign))
            if enabling:
                merged = _window_from(payload, fallback=node.campaign)
                result = self.validate_campaign_window(
                    merged,
                    require_complete=not node.is_campaign,
                    node_id=node_id,
                )
                if not result.ok:
                    return self._reject(result.error)
            else:
                self._window_errors.pop(node_id, None)
                payload.update(is_campaign=False, starts_at=None, ends_at=None, show_countdown=False)

        return await self._write(node_id, payload)

    async def delete_node(self, node_id: Identifier) -> Result[Identifier]:
        if node_id not in self.tree:
            return self._reject(InvalidReference(f"Unknown category: {node_id}"))

        try:
            await self._call(self.store.delete_node, node_id)
        except Exception as exc:
            return await self._fail(exc, f"Deleting category {node_id} failed")

        remaining = [node for node in self.tree.nodes() if node.id != node_id]
        self.tree = CategoryTree(remaining)
        self._window_errors.pop(node_id, None)
        self._emit()
        return Result.success(node_id)

    def filter_tree(self, query: str) -> Set[Identifier]:
        return matching_ids(self.tree, query)

    # -------------------------------------------------
    # Internals
    # -------------------------------------------------

    async def _write(self, node_id: Identifier, fields: Dict[str, Any]) -> Result[CategoryNode]:
        try:
            await self._call(self.store.update_node, node_id, fields)
        except Exception as exc:
            return await self._fail(exc, f"Updating category {node_id} failed")

        node = self.tree.update(node_id, **_local_fields(fields, self.tree.get(node_id)))
        self._emit()
        return Result.success(node)

    async def _fail(self, exc: Exception, message: str) -> Result:
        if isinstance(exc, OperationCancelled):
            return Result.failure(exc)

        logger.warning("%s, reloading tree: %s", message, exc)
        try:
            self.load(await self._call(self.store.fetch_tree))
        except Exception as reload_exc:
            logger.error("Reloading category tree failed: %s", reload_exc)

        error = _as_store_error(exc)
        report_error(self.events, error)
        return Result.failure(error)

    async def _call(self, method: Callable[..., Awaitable], *args):
        return await run_cancellable(method(*args, signal=self._lifetime), self._lifetime)

    def _reject(self, error: InvariantViolation) -> Result:
        report_error(self.events, error)
        return Result.failure(error)

    def _emit(self) -> None:
        try:
            self.events.on_tree_changed(self.tree.to_forest())
        except Exception:
            logger.exception("on_tree_changed listener failed")


def _window_from(fields: Dict[str, Any], fallback: Optional[CampaignWindow] = None) -> CampaignWindow:
    fallback = fallback or CampaignWindow()
    return CampaignWindow(
        starts_at=fields.get("starts_at", fallback.starts_at),
        ends_at=fields.get("ends_at", fallback.ends_at),
        show_countdown=bool(fields.get("show_countdown", fallback.show_countdown)),
    )


def _local_fields(fields: Dict[str, Any], node: CategoryNode) -> Dict[str, Any]:
    """Translate store field names onto ``CategoryNode`` attributes."""
    local: Dict[str, Any] = {}

    for key in ("parent_id", "name", "slug", "position"):
        if key in fields:
            local[key] = fields[key]

    if "is_active" in fields:
        local["active"] = bool(fields["is_active"])
    if "active" in fields:
        local["active"] = bool(fields["active"])

    if any(key in fields for key in CAMPAIGN_FIELDS):
        is_campaign = bool(fields.get("is_campaign", node.is_campaign))
        local["is_campaign"] = is_campaign
        local["campaign"] = _window_from(fields, fallback=node.campaign) if is_campaign else None

    return local
