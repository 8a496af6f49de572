from typing import Any, Dict
from composer.extensions import db
from composer.models.collection_item import CollectionItem
from composer.domain.invariants.exceptions import InvariantViolation, NotFound
from composer.utils.audit import log_action
from composer.utils.transaction import transactional


ALLOWED_UPDATE_FIELDS = {"position", "is_active"}


def update_item(
    *,
    item_id: str,
    data: Dict[str, Any],
) -> CollectionItem:
    """
    Update the position and/or active flag of one item.

    Design rules:
    - A bare position write is trusted as-is; it is one step of a
      sequential per-item commit, so transient duplicates are expected
    - No silent no-op updates
    """
    item = db.session.get(CollectionItem, item_id)
    if item is None:
        raise NotFound(f"Item not found: {item_id}")

    if "active" in data and "is_active" not in data:
        data = {**data, "is_active": data["active"]}

    changed_fields: list[str] = []

    with transactional():
        for field in ALLOWED_UPDATE_FIELDS:
            if field not in data:
                continue

            value = data[field]
            if field == "position":
                if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                    raise InvariantViolation(f"Invalid position: {value!r}")
            else:
                value = bool(value)

            if getattr(item, field) != value:
                setattr(item, field, value)
            changed_fields.append(field)

        if not changed_fields:
            raise InvariantViolation("No valid fields provided for update")

        log_action(
            action="item.update",
            entity_type="item",
            entity_id=item.id,
            payload={"fields": changed_fields},
        )

    return item
