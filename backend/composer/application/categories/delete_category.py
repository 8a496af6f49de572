from composer.extensions import db
from composer.models.category import Category
from composer.models.collection_item import CollectionItem
from composer.domain.invariants.exceptions import Conflict, NotEmpty, NotFound
from composer.utils.audit import log_action
from composer.utils.transaction import transactional


def delete_category(*, category_id: str) -> None:
    """
    Delete a leaf category.

    Notes:
    - A category with children cannot be deleted (NotEmpty)
    - A category still linked from a collection cannot be deleted (Conflict)
    """
    category = db.session.get(Category, category_id)
    if category is None:
        raise NotFound(f"Category not found: {category_id}")

    if Category.query.filter_by(parent_id=category.id).count():
        raise NotEmpty("Category has subcategories and cannot be deleted")

    linked = CollectionItem.query.filter_by(category_id=category.id).count()
    if linked:
        raise Conflict(f"Category is still linked from {linked} collection item(s)")

    with transactional():
        db.session.delete(category)

        log_action(
            action="category.delete",
            entity_type="category",
            entity_id=category_id,
            payload={},
        )
