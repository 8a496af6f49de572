from typing import List, Sequence
from flask import current_app
from composer.models.collection_item import CollectionItem
from composer.domain.invariants.exceptions import InvariantViolation
from composer.domain.invariants.ordering import assert_complete_permutation, assert_positions
from composer.utils.audit import log_action
from composer.utils.order import apply_order
from composer.utils.transaction import transactional


def reorder_items(
    *,
    collection_id: str,
    ordered_ids: Sequence[str],
) -> List[CollectionItem]:
    """
    Whole-batch reorder: positions follow ``ordered_ids`` exactly.

    Responsibilities:
    - Reject payloads that skip, repeat or invent ids
    - Apply every position in one transaction
    - Verify the result is gapless before committing
    """
    if not isinstance(ordered_ids, (list, tuple)):
        raise InvariantViolation("ordered_ids must be a list")

    start = current_app.config.get("ORDERING_POSITION_BASE", 0)

    with transactional():
        # 1️⃣ Load the full collection
        items = CollectionItem.query.filter_by(collection_id=collection_id).all()

        # 2️⃣ The payload must be a permutation of it
        assert_complete_permutation([item.id for item in items], list(ordered_ids))

        # 3️⃣ Apply in the given order
        ordered = apply_order(items, ordered_ids, start=start)

        # 4️⃣ Enforce invariant
        assert_positions(ordered, start=start)

        log_action(
            action="item.reorder",
            entity_type="collection",
            entity_id=collection_id,
            payload={"count": len(ordered)},
        )

    return ordered
