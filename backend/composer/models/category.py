from composer.extensions import db
from .base import BaseModel


class Category(BaseModel):
    __tablename__ = "categories"

    name = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(200), nullable=False, unique=True, index=True)
    parent_id = db.Column(db.String(36), db.ForeignKey("categories.id"), nullable=True, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # Campaign window
    is_campaign = db.Column(db.Boolean, nullable=False, default=False)
    starts_at = db.Column(db.DateTime(timezone=True), nullable=True)
    ends_at = db.Column(db.DateTime(timezone=True), nullable=True)
    show_countdown = db.Column(db.Boolean, nullable=False, default=False)

    children = db.relationship(
        "Category",
        order_by="Category.position",
        back_populates="parent",
    )
    parent = db.relationship("Category", remote_side="Category.id", back_populates="children")

    linked_items = db.relationship("CollectionItem", back_populates="category")
