# composer/api/v1/collections.py
from flask import request, jsonify
from composer.application.ordering.create_item import create_item
from composer.application.ordering.delete_item import delete_item
from composer.application.ordering.list_items import list_items
from composer.application.ordering.reorder_items import reorder_items
from composer.application.ordering.update_item import update_item
from composer.normalizers.collection_item import normalize_item
from . import v1_bp


# ------------------------
# Ordered collections
# ------------------------

@v1_bp.route("/collections/<collection_id>/items", methods=["GET"])
def list_collection_items(collection_id):
    admin = request.args.get("admin", "false").lower() == "true"
    items = list_items(collection_id=collection_id)
    return jsonify([normalize_item(i, admin=admin) for i in items])


@v1_bp.route("/collections/<collection_id>/items", methods=["POST"])
def create_collection_item(collection_id):
    data = request.get_json(silent=True) or {}
    item = create_item(collection_id=collection_id, data=data)
    return jsonify(normalize_item(item)), 201


@v1_bp.route("/collections/<collection_id>/reorder", methods=["POST"])
def reorder_collection(collection_id):
    data = request.get_json(silent=True)  # {"ids": ["...", ...]}

    if not isinstance(data, dict) or not isinstance(data.get("ids"), list):
        return jsonify({"error": "Invalid payload", "message": "Expected {\"ids\": [...]}"}), 400

    items = reorder_items(collection_id=collection_id, ordered_ids=data["ids"])
    return jsonify([normalize_item(i) for i in items]), 200


@v1_bp.route("/items/<item_id>", methods=["PATCH"])
def patch_item(item_id):
    data = request.get_json(silent=True) or {}
    item = update_item(item_id=item_id, data=data)
    return jsonify(normalize_item(item)), 200


@v1_bp.route("/items/<item_id>", methods=["DELETE"])
def remove_item(item_id):
    delete_item(item_id=item_id)
    return "", 204
