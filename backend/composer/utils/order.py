from composer.extensions import db


def compact_order(query, order_field="position", start=0):
    """
    Re-assigns sequential order values (start..start+N-1) for a scoped query.
    """
    model = query.column_descriptions[0]["entity"]
    items = query.order_by(getattr(model, order_field).asc(), model.id.asc()).all()

    for index, item in enumerate(items, start=start):
        setattr(item, order_field, index)

    db.session.flush()
    return items


def apply_order(items, ordered_ids, order_field="position", start=0):
    """
    Assigns positions following ``ordered_ids`` exactly.

    Every item must be named once; the caller validates that beforehand.
    """
    by_id = {item.id: item for item in items}

    for index, item_id in enumerate(ordered_ids, start=start):
        setattr(by_id[item_id], order_field, index)

    db.session.flush()
    return [by_id[item_id] for item_id in ordered_ids]
