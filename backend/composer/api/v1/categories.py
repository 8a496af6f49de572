# composer/api/v1/categories.py
from flask import request, jsonify
from composer.extensions import db
from composer.application.categories.category_tree import category_tree
from composer.application.categories.create_category import create_category
from composer.application.categories.delete_category import delete_category
from composer.application.categories.update_category import update_category
from composer.domain.invariants.exceptions import NotFound
from composer.models.category import Category
from composer.normalizers.category import normalize_category
from composer.utils.optimistic_lock import enforce_optimistic_lock
from . import v1_bp


# ------------------------
# Categories
# ------------------------

@v1_bp.route("/categories/tree", methods=["GET"])
def get_category_tree():
    return jsonify(category_tree())


@v1_bp.route("/categories", methods=["POST"])
def post_category():
    data = request.get_json(silent=True) or {}
    parent_id = data.pop("parent_id", None)
    category = create_category(parent_id=parent_id, data=data)
    return jsonify(normalize_category(category)), 201


@v1_bp.route("/categories/<category_id>", methods=["PATCH"])
def patch_category(category_id):
    category = db.session.get(Category, category_id)
    if category is None:
        raise NotFound(f"Category not found: {category_id}")

    # -----------------------
    # Optimistic Locking Check
    # -----------------------
    enforce_optimistic_lock(category)

    data = request.get_json(silent=True) or {}
    category = update_category(category_id=category_id, data=data)
    return jsonify(normalize_category(category)), 200


@v1_bp.route("/categories/<category_id>", methods=["DELETE"])
def remove_category(category_id):
    delete_category(category_id=category_id)
    return "", 204
