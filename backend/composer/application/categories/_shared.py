from typing import Any, Dict, Optional

from composer.domain.invariants.campaign import parse_timestamp, validate_campaign_window
from composer.domain.invariants.exceptions import InvariantViolation
from composer.domain.tree import CategoryTree
from composer.domain.types import CampaignWindow, CategoryNode
from composer.models.category import Category
from composer.utils.slug import is_url_safe, slugify

CAMPAIGN_FIELDS = ("is_campaign", "starts_at", "ends_at", "show_countdown")


def load_tree() -> CategoryTree:
    """Snapshot of the persisted hierarchy as a domain tree."""
    return CategoryTree(
        CategoryNode(
            id=c.id,
            name=c.name,
            slug=c.slug,
            parent_id=c.parent_id,
            active=c.is_active,
            position=c.position,
        )
        for c in Category.query.all()
    )


def resolve_slug(name: str, slug: Optional[str]) -> str:
    value = slugify(slug.strip()) if slug and slug.strip() else slugify(name)
    if not is_url_safe(value):
        raise InvariantViolation(f"Slug {value!r} is not URL-safe")
    return value


def assert_unique_slug(slug: str, exclude_id: Optional[str] = None) -> None:
    query = Category.query.filter_by(slug=slug)
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    if query.first():
        raise InvariantViolation(f"Slug already exists: {slug}")


def apply_campaign(category: Category, data: Dict[str, Any], *, require_complete: bool) -> None:
    """
    Validate and write the campaign fields. A campaign switched off is
    stored with a cleared window.
    """
    is_campaign = bool(data.get("is_campaign", category.is_campaign))

    if not is_campaign:
        category.is_campaign = False
        category.starts_at = None
        category.ends_at = None
        category.show_countdown = False
        return

    window = CampaignWindow(
        starts_at=data.get("starts_at", category.starts_at),
        ends_at=data.get("ends_at", category.ends_at),
        show_countdown=bool(data.get("show_countdown", category.show_countdown)),
    )
    validate_campaign_window(window, require_complete=require_complete).unwrap()

    category.is_campaign = True
    category.starts_at = parse_timestamp(window.starts_at)
    category.ends_at = parse_timestamp(window.ends_at)
    category.show_countdown = window.show_countdown
