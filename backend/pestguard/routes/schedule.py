# Overview: Flask API routes for the visit calendar; parses input and returns JSON responses.

"""
Schedule Routes

SECURITY:
- Listing and detail: admin, employee, customer. Customers only see visits
  at stores their access grants cover.
- Planning a visit: admin.
- Editing a visit: admin (any field) or employee (status only).
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role
from ..extensions import db
from ..services.access_service import AccessResolver
from ..services.schedule_service import ScheduleEngine
from ..validation import ServiceError


schedule_bp = Blueprint("schedule", __name__, url_prefix="/api/schedule")


def _engine() -> ScheduleEngine:
    return ScheduleEngine(db.session)


def _arg(name: str, alias: str | None = None):
    value = request.args.get(name)
    if value is None and alias:
        value = request.args.get(alias)
    return value


@schedule_bp.get("/events")
@require_auth
@require_role("admin", "employee", "customer")
def list_events():
    """
    Visits intersecting [from, to).

    Query params: from, to (ISO-8601, required), employee_id, store_id,
    scope=mine (employees: only their own visits).
    """
    actor = g.actor
    filters = {
        "employee_id": _arg("employee_id", "employeeId"),
        "store_id": _arg("store_id", "storeId"),
    }

    if actor.role == "customer":
        filters["store_ids"] = AccessResolver(db.session).resolve_accessible_store_ids(actor.id)
    elif actor.role == "employee" and (request.args.get("scope") or "").lower() == "mine":
        filters["employee_id"] = actor.id

    try:
        details = _engine().list_event_details(_arg("from"), _arg("to"), **filters)
    except ServiceError as exc:
        return jsonify({"error": str(exc)}), exc.status_code

    return jsonify({"events": [d.to_dict() for d in details], "count": len(details)})


@schedule_bp.post("/events")
@require_auth
@require_role("admin")
def create_event():
    data = request.get_json(silent=True) or {}
    try:
        event = _engine().create_event(data, g.actor)
    except ServiceError as exc:
        return jsonify({"error": str(exc)}), exc.status_code
    except Exception:
        current_app.logger.exception("Failed to plan visit")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"event": event.to_dict()}), 201


@schedule_bp.put("/events/<int:event_id>")
@require_auth
@require_role("admin", "employee")
def update_event(event_id: int):
    data = request.get_json(silent=True) or {}
    try:
        event = _engine().update_event(event_id, data, g.actor)
    except ServiceError as exc:
        return jsonify({"error": str(exc)}), exc.status_code
    except Exception:
        current_app.logger.exception("Failed to update visit")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"event": event.to_dict()})


@schedule_bp.get("/events/<int:event_id>")
@require_auth
@require_role("admin", "employee", "customer")
def get_event(event_id: int):
    try:
        detail = _engine().get_event(event_id)
    except ServiceError as exc:
        return jsonify({"error": str(exc)}), exc.status_code

    actor = g.actor
    if actor.role == "customer":
        resolver = AccessResolver(db.session)
        if not resolver.owner_can_access_store(actor.id, detail.event.store_id):
            return jsonify({"error": "Permission denied"}), 403

    return jsonify({"event": detail.to_dict()})
