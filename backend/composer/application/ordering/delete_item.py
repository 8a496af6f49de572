from flask import current_app
from composer.extensions import db
from composer.models.collection_item import CollectionItem
from composer.domain.invariants.exceptions import NotFound
from composer.utils.audit import log_action
from composer.utils.order import compact_order
from composer.utils.transaction import transactional


def delete_item(*, item_id: str) -> None:
    """
    Hard-delete an item and close the gap it leaves in its collection.
    """
    item = db.session.get(CollectionItem, item_id)
    if item is None:
        raise NotFound(f"Item not found: {item_id}")

    collection_id = item.collection_id

    with transactional():
        db.session.delete(item)
        db.session.flush()

        compact_order(
            CollectionItem.query.filter_by(collection_id=collection_id),
            start=current_app.config.get("ORDERING_POSITION_BASE", 0),
        )

        log_action(
            action="item.delete",
            entity_type="item",
            entity_id=item_id,
            payload={"collection_id": collection_id},
        )
