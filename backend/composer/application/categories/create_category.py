from typing import Any, Dict, Optional
from sqlalchemy.exc import IntegrityError
from composer.extensions import db
from composer.models.category import Category
from composer.domain.invariants.exceptions import InvalidReference, InvariantViolation
from composer.utils.audit import log_action
from composer.utils.transaction import transactional
from ._shared import apply_campaign, assert_unique_slug, resolve_slug


def create_category(
    *,
    parent_id: Optional[str],
    data: Dict[str, Any],
) -> Category:
    """
    Create a category, appended after its siblings.

    Edge cases handled:
    - Missing name
    - Slug derived from the name unless given, must be unique
    - Unknown parent
    - Campaign flag set without a complete, well-ordered window
    """
    name = (data.get("name") or "").strip()
    if not name:
        raise InvariantViolation("Category name is required")

    if parent_id is not None and db.session.get(Category, parent_id) is None:
        raise InvalidReference(f"Unknown parent category: {parent_id}")

    slug = resolve_slug(name, data.get("slug"))
    assert_unique_slug(slug)

    siblings = Category.query.filter_by(parent_id=parent_id).count()

    category = Category()
    category.name = name
    category.slug = slug
    category.parent_id = parent_id
    category.position = data.get("ordering", data.get("position", siblings))
    category.is_active = bool(data.get("is_active", True))

    # Creation always requires both timestamps
    apply_campaign(category, data, require_complete=True)

    try:
        with transactional():
            db.session.add(category)
            db.session.flush()  # ensures category.id is available

            log_action(
                action="category.create",
                entity_type="category",
                entity_id=category.id,
                payload={"slug": category.slug, "parent_id": parent_id},
            )

        return category

    except IntegrityError as exc:
        raise InvariantViolation("A category with this slug already exists") from exc
