from typing import Any, Dict
from flask import current_app
from composer.extensions import db
from composer.models.category import Category
from composer.models.collection_item import CollectionItem
from composer.domain.invariants.exceptions import InvalidReference
from composer.utils.audit import log_action
from composer.utils.transaction import transactional


def create_item(
    *,
    collection_id: str,
    data: Dict[str, Any],
) -> CollectionItem:
    """
    Create an item at the end of its collection.

    Edge cases handled:
    - Missing collection id
    - Linked category must exist (no orphaned references)
    - The same category cannot be linked twice in one collection
    """
    if not collection_id:
        raise InvalidReference("collection_id is required")

    payload = dict(data.get("payload") or {})
    category_id = data.get("category_id", payload.pop("category_id", None))

    if category_id is not None:
        if db.session.get(Category, category_id) is None:
            raise InvalidReference(f"Unknown category: {category_id}")

        duplicate = CollectionItem.query.filter_by(
            collection_id=collection_id,
            category_id=category_id,
        ).first()
        if duplicate:
            raise InvalidReference(f"Category {category_id} is already in {collection_id}")

    base = current_app.config.get("ORDERING_POSITION_BASE", 0)
    count = CollectionItem.query.filter_by(collection_id=collection_id).count()

    item = CollectionItem()
    item.collection_id = collection_id
    item.kind = data.get("kind") or payload.pop("kind", None) or "block"
    item.position = base + count  # append at the end
    item.is_active = bool(data.get("is_active", data.get("active", True)))
    item.payload = payload
    item.category_id = category_id

    with transactional():
        db.session.add(item)
        db.session.flush()

        log_action(
            action="item.create",
            entity_type="collection",
            entity_id=collection_id,
            payload={"item_id": item.id, "position": item.position},
        )

    return item
