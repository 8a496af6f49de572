from composer.domain.invariants.campaign import parse_timestamp
from composer.domain.types import CategoryNode


def _iso(value):
    ts = parse_timestamp(value)
    return ts.isoformat() if ts is not None else None


def normalize_category(category, include_children=False, index=None):
    data = {
        "id": category.id,
        "name": category.name,
        "slug": category.slug,
        "parent_id": category.parent_id,
        "ordering": category.position,
        "is_active": category.is_active,
        "is_campaign": category.is_campaign,
        "starts_at": _iso(category.starts_at),
        "ends_at": _iso(category.ends_at),
        "show_countdown": category.show_countdown,
        "updated_at": _iso(category.updated_at),
    }

    if include_children:
        children = (index or {}).get(category.id, [])
        data["children"] = [
            normalize_category(c, include_children=True, index=index)
            for c in children
        ]

    return data


def normalize_tree(categories):
    """
    Nest a flat category list into an ordered forest.

    Built from one flat query through a parent index, so the forest never
    depends on lazy relationship loading.
    """
    ordered = sorted(categories, key=lambda c: (c.position, c.name))
    index = {}
    for category in ordered:
        index.setdefault(category.parent_id, []).append(category)

    return [
        normalize_category(root, include_children=True, index=index)
        for root in index.get(None, [])
    ]


def to_category_node(data):
    return CategoryNode.from_dict(data)
