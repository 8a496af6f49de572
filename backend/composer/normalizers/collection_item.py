from composer.domain.types import OrderedItem


def normalize_item(item, admin=False):
    payload = dict(item.payload or {})
    if item.category_id is not None:
        payload["category_id"] = item.category_id

    base = {
        "id": item.id,
        "collection_id": item.collection_id,
        "kind": item.kind,
        "position": item.position,
        "is_active": item.is_active,
        "payload": payload,
    }

    if admin:
        base["created_at"] = item.created_at.isoformat() if item.created_at else None
        base["updated_at"] = item.updated_at.isoformat() if item.updated_at else None

    return base


def to_ordered_item(item):
    data = normalize_item(item)
    return OrderedItem(
        id=data["id"],
        position=data["position"],
        active=data["is_active"],
        payload={"kind": data["kind"], **data["payload"]},
        collection_id=data["collection_id"],
    )
