# composer/engine/__init__.py
from .cancellation import CancelToken, run_cancellable
from .events import EngineEvents, report_error
from .hierarchy import HierarchyManager
from .ordered_collection import CommitOutcome, CommitStrategy, OrderedCollectionManager
from .store import ContentStore


def build_collection_manager(app, collection_id, *, events=None, store=None, strategy=None):
    """
    Wire an ``OrderedCollectionManager`` from the Flask app's ordering config.

    ``store`` defaults to the in-process SQL store bound to ``app``.
    """
    if store is None:
        from composer.store.sql_store import SqlContentStore
        store = SqlContentStore(app)

    return OrderedCollectionManager(
        store,
        collection_id,
        strategy=CommitStrategy(strategy or app.config.get("ORDERING_COMMIT_STRATEGY", "batch")),
        events=events,
        position_base=int(app.config.get("ORDERING_POSITION_BASE", 0)),
        refresh_after_commit=bool(app.config.get("ORDERING_REFRESH_AFTER_COMMIT", False)),
    )


def build_hierarchy_manager(app, *, events=None, store=None):
    if store is None:
        from composer.store.sql_store import SqlContentStore
        store = SqlContentStore(app)

    return HierarchyManager(store, events=events)


__all__ = [
    "CancelToken",
    "CommitOutcome",
    "CommitStrategy",
    "ContentStore",
    "EngineEvents",
    "HierarchyManager",
    "OrderedCollectionManager",
    "build_collection_manager",
    "build_hierarchy_manager",
    "report_error",
    "run_cancellable",
]
