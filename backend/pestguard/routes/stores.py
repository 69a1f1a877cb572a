# Overview: Flask API routes for customers and stores; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role
from ..extensions import db
from ..services import store_service
from ..services.access_service import AccessResolver
from ..validation import ServiceError


stores_bp = Blueprint("stores", __name__, url_prefix="/api/stores")


@stores_bp.get("/customers")
@require_auth
@require_role("admin", "employee")
def list_customers():
    customers = store_service.list_customers()
    return jsonify([customer.to_dict() for customer in customers]), 200


@stores_bp.post("/customers")
@require_auth
@require_role("admin", "employee")
def create_customer():
    data = request.get_json(silent=True) or {}
    try:
        customer = store_service.create_customer(
            data.get("title"),
            code=data.get("code"),
            city=data.get("city"),
            address=data.get("address"),
            email=data.get("email"),
        )
        return jsonify(customer.to_dict()), 201
    except ServiceError as exc:
        return jsonify({"error": str(exc)}), exc.status_code
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500


@stores_bp.get("")
@require_auth
@require_role("admin", "employee")
def list_stores():
    try:
        stores = store_service.list_stores(request.args.get("customer_id"))
    except ServiceError as exc:
        return jsonify({"error": str(exc)}), exc.status_code
    return jsonify([store.to_dict() for store in stores]), 200


@stores_bp.post("")
@require_auth
@require_role("admin", "employee")
def create_store():
    data = request.get_json(silent=True) or {}
    try:
        store = store_service.create_store(
            data.get("customer_id"),
            data.get("name"),
            code=data.get("code"),
            city=data.get("city"),
            address=data.get("address"),
            phone=data.get("phone"),
            manager=data.get("manager"),
        )
        return jsonify(store.to_dict()), 201
    except ServiceError as exc:
        return jsonify({"error": str(exc)}), exc.status_code
    except Exception:
        current_app.logger.exception("Failed to create store")
        return jsonify({"error": "Internal server error"}), 500


@stores_bp.get("/mine")
@require_auth
@require_role("customer")
def my_stores():
    """Stores the calling access owner may file complaints against or view reports for."""
    stores = AccessResolver(db.session).list_accessible_stores(g.actor.id)
    return jsonify([store.to_dict() for store in stores]), 200


@stores_bp.get("/<int:store_id>/access")
@require_auth
@require_role("customer")
def check_store_access(store_id: int):
    allowed = AccessResolver(db.session).owner_can_access_store(g.actor.id, store_id)
    return jsonify({"store_id": store_id, "allowed": allowed}), 200


@stores_bp.get("/<int:store_id>")
@require_auth
@require_role("admin", "employee")
def get_store(store_id: int):
    store = store_service.get_store(store_id)
    if not store:
        return jsonify({"error": "Store not found"}), 404
    data = store.to_dict()
    data["customer"] = {"id": store.customer.id, "title": store.customer.title} if store.customer else None
    return jsonify(data), 200


@stores_bp.put("/<int:store_id>")
@require_auth
@require_role("admin", "employee")
def update_store(store_id: int):
    """
    Request body: any of name, code, city, address, phone, manager, is_active.
    The owning customer cannot be changed.
    """
    data = request.get_json(silent=True) or {}
    try:
        store = store_service.update_store(store_id, data)
    except ServiceError as exc:
        return jsonify({"error": str(exc)}), exc.status_code
    except Exception:
        current_app.logger.exception("Failed to update store")
        return jsonify({"error": "Internal server error"}), 500

    current_app.logger.info("Store %s updated by %s %s", store.id, g.actor.role, g.actor.id)
    return jsonify(store.to_dict()), 200


@stores_bp.delete("/<int:store_id>")
@require_auth
@require_role("admin", "employee")
def delete_store(store_id: int):
    try:
        store_service.delete_store(store_id)
    except ServiceError as exc:
        return jsonify({"error": str(exc)}), exc.status_code
    except Exception:
        current_app.logger.exception("Failed to delete store")
        return jsonify({"error": "Internal server error"}), 500

    current_app.logger.info("Store %s deleted by %s %s", store_id, g.actor.role, g.actor.id)
    return jsonify({"ok": True}), 200
