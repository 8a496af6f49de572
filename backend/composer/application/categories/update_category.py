from typing import Any, Dict
from composer.extensions import db
from composer.models.category import Category
from composer.domain.invariants.exceptions import CycleError, InvalidReference, InvariantViolation, NotFound
from composer.domain.tree import blocked_parents
from composer.utils.audit import log_action
from composer.utils.transaction import transactional
from ._shared import CAMPAIGN_FIELDS, apply_campaign, assert_unique_slug, load_tree, resolve_slug


ALLOWED_UPDATE_FIELDS = {"name", "slug", "parent_id", "is_active", "ordering", *CAMPAIGN_FIELDS}


def update_category(
    *,
    category_id: str,
    data: Dict[str, Any],
) -> Category:
    """
    Update a category.

    Design rules:
    - Only whitelisted fields are mutable
    - Reparenting re-validated against the persisted tree (client trees go stale)
    - Switching a campaign on needs a complete window; switching it off does not
    """
    category = db.session.get(Category, category_id)
    if category is None:
        raise NotFound(f"Category not found: {category_id}")

    unknown = set(data) - ALLOWED_UPDATE_FIELDS
    if unknown:
        raise InvariantViolation(f"Fields cannot be updated: {sorted(unknown)}")
    if not data:
        raise InvariantViolation("No valid fields provided for update")

    changed_fields: list[str] = []

    with transactional():
        # 1️⃣ Parent: no self, no descendant, must exist
        if "parent_id" in data and data["parent_id"] != category.parent_id:
            parent_id = data["parent_id"]
            if parent_id is not None:
                tree = load_tree()
                if parent_id not in tree:
                    raise InvalidReference(f"Unknown parent category: {parent_id}")
                if parent_id in blocked_parents(tree, category.id):
                    raise CycleError(
                        f"Category {parent_id} cannot become the parent of {category.id}"
                    )
            category.parent_id = parent_id
            changed_fields.append("parent_id")

        # 2️⃣ Name / slug
        if "name" in data:
            name = (data["name"] or "").strip()
            if not name:
                raise InvariantViolation("Category name is required")
            category.name = name
            changed_fields.append("name")

        if "slug" in data or "name" in data:
            slug = resolve_slug(category.name, data.get("slug"))
            if slug != category.slug:
                assert_unique_slug(slug, exclude_id=category.id)
                category.slug = slug
                changed_fields.append("slug")

        # 3️⃣ Flags and sibling order
        if "is_active" in data:
            category.is_active = bool(data["is_active"])
            changed_fields.append("is_active")

        if "ordering" in data:
            category.position = int(data["ordering"])
            changed_fields.append("ordering")

        # 4️⃣ Campaign window
        if any(field in data for field in CAMPAIGN_FIELDS):
            apply_campaign(category, data, require_complete=not category.is_campaign)
            changed_fields.append("campaign")

        log_action(
            action="category.update",
            entity_type="category",
            entity_id=category.id,
            payload={"fields": changed_fields},
        )

    return category
