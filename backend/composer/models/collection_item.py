from composer.extensions import db
from .base import BaseModel


class CollectionItem(BaseModel):
    __tablename__ = "collection_items"

    # landing-blocks, hot-category-block:<id>, product:<id>:attributes, ...
    collection_id = db.Column(db.String(120), nullable=False, index=True)
    kind = db.Column(db.String(50), nullable=False, default="block")
    # No unique constraint: per-item position writes pass through duplicates.
    position = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    payload = db.Column(db.JSON, nullable=False, default=dict)

    category_id = db.Column(db.String(36), db.ForeignKey("categories.id"), nullable=True, index=True)

    category = db.relationship("Category", back_populates="linked_items")

    __table_args__ = (
        db.Index("idx_collection_item_position", "collection_id", "position"),
    )
