# Overview: Flask API routes for access owners and grants; parses input and returns JSON responses.

"""
Access Routes

SECURITY:
- Every endpoint requires an admin or employee session; owner code resets
  are admin only.
- Customer-side owners never manage grants; they consume them through
  /api/stores/mine and the schedule endpoints.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role
from ..extensions import db
from ..services.access_service import AccessResolver
from ..validation import ServiceError


access_bp = Blueprint("access", __name__, url_prefix="/api/access")


def _resolver() -> AccessResolver:
    return AccessResolver(db.session)


def _grant_list(grants) -> list[dict]:
    return [grant.to_dict() for grant in grants]


@access_bp.post("/owners/ensure")
@require_auth
@require_role("admin", "employee")
def ensure_owner():
    """
    Create-or-fetch an access owner by email.

    Request body:
    - email: str (required)
    - role, first_name, last_name, phone: optional
    - force_reset: bool, issue a new one-time code for an existing owner
    - reveal: bool, include the one-time code in the response (admin only)
    """
    data = request.get_json(silent=True) or {}
    try:
        owner, created, code = _resolver().ensure_owner(
            data.get("email"),
            role=data.get("role"),
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
            phone=data.get("phone"),
            force_reset=bool(data.get("force_reset", False)),
        )
    except ServiceError as exc:
        return jsonify({"error": str(exc)}), exc.status_code
    except Exception:
        current_app.logger.exception("Failed to ensure access owner")
        return jsonify({"error": "Internal server error"}), 500

    payload = {"owner": owner.to_dict(), "created": created, "code_issued": code is not None}
    if code is not None and data.get("reveal") and g.actor.role == "admin":
        payload["code"] = code
    return jsonify(payload), 201 if created else 200


@access_bp.get("/owner/<int:owner_id>")
@require_auth
@require_role("admin", "employee")
def get_owner(owner_id: int):
    try:
        owner, grants = _resolver().get_owner_detail(owner_id)
    except ServiceError as exc:
        return jsonify({"error": str(exc)}), exc.status_code
    return jsonify({"owner": owner.to_dict(), "grants": _grant_list(grants)})


@access_bp.post("/owner/<int:owner_id>/reset-password")
@require_auth
@require_role("admin")
def reset_owner_password(owner_id: int):
    """
    Issue a new one-time code for an access owner.

    Request body:
    - reveal: bool, include the new code in the response
    """
    data = request.get_json(silent=True) or {}
    try:
        owner, code = _resolver().reset_owner_code(owner_id)
    except ServiceError as exc:
        return jsonify({"error": str(exc)}), exc.status_code
    except Exception:
        current_app.logger.exception("Failed to reset access owner code")
        return jsonify({"error": "Internal server error"}), 500

    payload = {"ok": True, "owner": owner.to_dict()}
    if data.get("reveal"):
        payload["code"] = code
    return jsonify(payload)


@access_bp.get("/grants")
@require_auth
@require_role("admin", "employee")
def list_grants():
    args = request.args
    try:
        grants = _resolver().list_grants(
            owner_id=args.get("owner_id"),
            scope_type=args.get("scope_type"),
            customer_id=args.get("customer_id"),
            store_id=args.get("store_id"),
            principal_type=args.get("principal_type"),
            principal_id=args.get("principal_id"),
        )
    except ServiceError as exc:
        return jsonify({"error": str(exc)}), exc.status_code
    return jsonify({"grants": _grant_list(grants), "count": len(grants)})


@access_bp.get("/store/<int:store_id>")
@require_auth
@require_role("admin", "employee")
def effective_store_access(store_id: int):
    """Direct STORE grants plus CUSTOMER grants inherited from the store's customer."""
    try:
        grants = _resolver().list_grants_for_store(store_id)
    except ServiceError as exc:
        return jsonify({"error": str(exc)}), exc.status_code
    return jsonify({"grants": _grant_list(grants), "count": len(grants)})


@access_bp.get("/customer/<int:customer_id>")
@require_auth
@require_role("admin", "employee")
def effective_customer_access(customer_id: int):
    try:
        grants = _resolver().list_grants_for_customer(customer_id)
    except ServiceError as exc:
        return jsonify({"error": str(exc)}), exc.status_code
    return jsonify({"grants": _grant_list(grants), "count": len(grants)})


@access_bp.get("/principal/<principal_type>/<int:principal_id>")
@require_auth
@require_role("admin", "employee")
def principal_grants(principal_type: str, principal_id: int):
    try:
        principal, grants = _resolver().list_grants_for_principal(principal_type, principal_id)
    except ServiceError as exc:
        return jsonify({"error": str(exc)}), exc.status_code
    return jsonify({
        "principal": principal.to_dict() if principal else None,
        "grants": _grant_list(grants),
    })


@access_bp.post("/grant")
@require_auth
@require_role("admin", "employee")
def create_grant():
    """
    Request body:
    - principal_type: EMPLOYEE | CUSTOMER | ADMIN (default CUSTOMER when owner_id is sent)
    - principal_id: int (or owner_id for CUSTOMER principals)
    - scope_type: CUSTOMER | STORE
    - customer_id / store_id: exactly the one matching scope_type
    """
    data = request.get_json(silent=True) or {}
    principal_type = data.get("principal_type")
    principal_id = data.get("principal_id")
    if principal_type is None and principal_id is None and data.get("owner_id") is not None:
        principal_type, principal_id = "CUSTOMER", data.get("owner_id")

    try:
        grant = _resolver().create_grant(
            principal_type,
            principal_id,
            data.get("scope_type"),
            customer_id=data.get("customer_id"),
            store_id=data.get("store_id"),
            granted_by=g.actor,
        )
    except ServiceError as exc:
        return jsonify({"error": str(exc)}), exc.status_code
    except Exception:
        current_app.logger.exception("Failed to create access grant")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"grant": grant.to_dict()}), 201


@access_bp.delete("/<int:grant_id>")
@require_auth
@require_role("admin", "employee")
def revoke_grant(grant_id: int):
    try:
        _resolver().revoke_grant(grant_id)
    except ServiceError as exc:
        return jsonify({"error": str(exc)}), exc.status_code
    except Exception:
        current_app.logger.exception("Failed to revoke access grant")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"ok": True})
