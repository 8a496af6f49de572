from typing import List
from composer.models.collection_item import CollectionItem


def list_items(*, collection_id: str) -> List[CollectionItem]:
    return (
        CollectionItem.query
        .filter_by(collection_id=collection_id)
        .order_by(CollectionItem.position.asc(), CollectionItem.created_at.asc())
        .all()
    )
