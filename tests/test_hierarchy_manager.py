import asyncio
from datetime import datetime, timezone

import pytest

from composer.domain.invariants.exceptions import (
    CycleError,
    ErrorKind,
    IncompleteWindow,
    InvalidReference,
    InvalidWindow,
    NotEmpty,
    OperationCancelled,
)
from composer.domain.lifecycle.campaign import CampaignState
from composer.domain.tree import CategoryTree
from composer.domain.types import CampaignWindow, ParentOption, ReparentInstruction
from composer.engine import HierarchyManager

from conftest import FakeStore, node

T1 = "2026-06-01T00:00:00+00:00"
T2 = "2026-06-30T00:00:00+00:00"
MID_JUNE = datetime(2026, 6, 15, tzinfo=timezone.utc)


@pytest.fixture
def store():
    return FakeStore(nodes=[
        node("root", "Root"),
        node("a", "A", parent_id="root"),
        node("b", "B", parent_id="a", position=0),
        node("c", "C", parent_id="a", position=1),
    ])


@pytest.fixture
def manager(store, events):
    manager = HierarchyManager(store, events=events)
    manager.load(CategoryTree(store.nodes.values()).to_forest())
    return manager


# -------------------------------------------------
# Parent options / reparent
# -------------------------------------------------

def test_load_emits_tree(manager, events):
    assert [n.id for n in events.forests[-1]] == ["root"]
    assert len(manager.tree) == 4


def test_parent_options_exclude_subtree(manager):
    assert manager.build_parent_options("a") == [ParentOption("root", "Root")]


@pytest.mark.parametrize("node_id, parent_id", [("a", "b"), ("a", "c"), ("a", "a"), ("root", "b")])
def test_reparent_into_own_subtree_is_a_cycle(manager, node_id, parent_id):
    result = manager.reparent(node_id, parent_id)

    assert not result.ok
    assert isinstance(result.error, CycleError)


def test_reparent_to_root_level_always_passes(manager):
    assert manager.reparent("b", None).value == ReparentInstruction("b", None)


def test_reparent_checks_references(manager):
    assert isinstance(manager.reparent("ghost", "root").error, InvalidReference)
    assert isinstance(manager.reparent("b", "ghost").error, InvalidReference)


def test_reparent_sideways_is_allowed(manager):
    assert manager.reparent("b", "root").value == ReparentInstruction("b", "root")


@pytest.mark.asyncio
async def test_apply_reparent_persists_and_moves(manager, store, events):
    result = await manager.apply_reparent("c", "root")

    assert result.ok
    assert store.calls_to("update_node") == ["c"]
    assert manager.tree.parent_of("c") == "root"
    assert store.nodes["c"].parent_id == "root"
    assert events.errors == []


@pytest.mark.asyncio
async def test_apply_reparent_cycle_never_reaches_store(manager, store, events):
    result = await manager.apply_reparent("a", "b")

    assert isinstance(result.error, CycleError)
    assert store.calls == []
    assert events.error_kinds == [ErrorKind.CYCLE_ERROR]


@pytest.mark.asyncio
async def test_failed_reparent_reloads_tree(manager, store, events):
    store.fail_on.add("update_node")

    result = await manager.apply_reparent("c", "root")

    assert not result.ok
    assert store.calls_to("fetch_tree") == [None]
    assert manager.tree.parent_of("c") == "a"
    assert events.error_kinds == [ErrorKind.PERSISTENCE_FAILED]


@pytest.mark.asyncio
async def test_close_aborts_pending_write(manager, store, events):
    store.gates["update_node"] = asyncio.get_running_loop().create_future()

    pending = asyncio.create_task(manager.apply_reparent("c", "root"))
    for _ in range(5):
        await asyncio.sleep(0)
    manager.close()
    result = await pending

    assert isinstance(result.error, OperationCancelled)
    assert store.signals[0] is not None
    assert manager.tree.parent_of("c") == "a"
    assert store.calls_to("fetch_tree") == []
    assert events.errors == []


# -------------------------------------------------
# Campaigns
# -------------------------------------------------

def test_campaign_window_errors_are_tracked_per_node(manager):
    bad = manager.validate_campaign_window(CampaignWindow(T2, T1), node_id="b")

    assert isinstance(bad.error, InvalidWindow)
    assert manager.window_error("b") is bad.error

    assert manager.validate_campaign_window(CampaignWindow(T1, T2), node_id="b").ok
    assert manager.window_error("b") is None


def test_equal_timestamps_fail_without_raising(manager):
    result = manager.validate_campaign_window(CampaignWindow(T1, T1))
    assert isinstance(result.error, InvalidWindow)


def test_static_classify(manager):
    assert HierarchyManager.classify(CampaignWindow(T1, T2), MID_JUNE) is CampaignState.LIVE


@pytest.mark.asyncio
async def test_switching_campaign_on_needs_complete_window(manager, store, events):
    result = await manager.set_campaign("b", enabled=True, window=CampaignWindow(starts_at=T1))

    assert isinstance(result.error, IncompleteWindow)
    assert store.calls == []
    assert manager.window_error("b") is result.error
    assert events.error_kinds == [ErrorKind.INCOMPLETE_WINDOW]


@pytest.mark.asyncio
async def test_switching_campaign_on(manager, store):
    result = await manager.set_campaign("b", enabled=True, window=CampaignWindow(T1, T2, True), now=MID_JUNE)

    assert result.ok
    assert manager.tree.get("b").is_campaign
    assert manager.campaign_state("b", MID_JUNE) is CampaignState.LIVE
    assert store.calls_to("update_node") == ["b"]


@pytest.mark.asyncio
async def test_ended_window_cannot_be_switched_on(manager, store):
    later = datetime(2026, 8, 1, tzinfo=timezone.utc)

    result = await manager.set_campaign("b", enabled=True, window=CampaignWindow(T1, T2), now=later)

    assert isinstance(result.error, InvalidWindow)
    assert store.calls == []


@pytest.mark.asyncio
async def test_switching_campaign_off_clears_window(manager, store):
    await manager.set_campaign("b", enabled=True, window=CampaignWindow(T1, T2))

    result = await manager.set_campaign("b", enabled=False)

    assert result.ok
    assert manager.tree.get("b").is_campaign is False
    assert manager.tree.get("b").campaign is None
    assert manager.campaign_state("b", MID_JUNE) is CampaignState.INACTIVE


# -------------------------------------------------
# Node lifecycle
# -------------------------------------------------

def test_derive_slug():
    assert HierarchyManager.derive_slug("Summer Sale") == "summer-sale"
    assert HierarchyManager.derive_slug("Summer Sale", " Hot Deals ") == "hot-deals"


@pytest.mark.asyncio
async def test_create_node_derives_slug(manager, store):
    result = await manager.create_node("a", {"name": "  New Arrivals "})

    assert result.ok
    created = result.value
    assert created.slug == "new-arrivals"
    assert manager.tree.parent_of(created.id) == "a"
    assert created.id in manager.tree.children_of("a")


@pytest.mark.asyncio
async def test_create_node_requires_name(manager, store, events):
    result = await manager.create_node(None, {"name": "   "})

    assert not result.ok
    assert store.calls == []
    assert events.error_kinds == [ErrorKind.INVALID_INPUT]


@pytest.mark.asyncio
async def test_create_campaign_node_requires_complete_window(manager, store):
    result = await manager.create_node(None, {"name": "Flash", "is_campaign": True, "starts_at": T1})

    assert isinstance(result.error, IncompleteWindow)
    assert store.calls == []


@pytest.mark.asyncio
async def test_update_node_renames_and_rederives_slug(manager, store):
    result = await manager.update_node("b", {"name": "Boots & Shoes"})

    assert result.ok
    assert manager.tree.get("b").slug == "boots-shoes"
    assert store.nodes["b"].slug == "boots-shoes"


@pytest.mark.asyncio
async def test_update_node_with_blank_slug_follows_name(manager, store):
    created = (await manager.create_node("a", {"name": "Summer Sale", "slug": "promo"})).value
    assert created.slug == "promo"

    result = await manager.update_node(created.id, {"slug": ""})

    assert result.ok
    assert manager.tree.get(created.id).slug == "summer-sale"
    assert store.nodes[created.id].slug == "summer-sale"


@pytest.mark.asyncio
async def test_update_node_refuses_cycle(manager, store):
    result = await manager.update_node("root", {"parent_id": "c"})

    assert isinstance(result.error, CycleError)
    assert store.calls == []


@pytest.mark.asyncio
async def test_editing_running_campaign_only_needs_ordering(manager):
    await manager.set_campaign("c", enabled=True, window=CampaignWindow(T1, T2))

    moved = await manager.update_node("c", {"ends_at": "2026-07-15T00:00:00+00:00"})
    assert moved.ok

    broken = await manager.update_node("c", {"ends_at": "2026-05-01T00:00:00+00:00"})
    assert isinstance(broken.error, InvalidWindow)


@pytest.mark.asyncio
async def test_delete_node_with_children_is_refused_by_store(manager, store, events):
    result = await manager.delete_node("a")

    assert isinstance(result.error, NotEmpty)
    assert "a" in manager.tree
    assert store.calls_to("fetch_tree") == [None]
    assert events.error_kinds == [ErrorKind.PERSISTENCE_FAILED]


@pytest.mark.asyncio
async def test_delete_leaf(manager, store):
    result = await manager.delete_node("c")

    assert result.value == "c"
    assert "c" not in manager.tree
    assert manager.tree.children_of("a") == ["b"]


@pytest.mark.asyncio
async def test_refresh_replaces_tree(manager, store):
    store.nodes.pop("c")

    forest = await manager.refresh()

    assert [n.id for n in forest[0].children[0].children] == ["b"]


def test_filter_tree(manager):
    assert manager.filter_tree("b") == {"b", "a", "root"}
