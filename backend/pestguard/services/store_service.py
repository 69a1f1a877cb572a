# Overview: Service-layer operations for customers and stores.

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import AccessGrant, Customer, ScheduleEvent, Store
from ..validation import ConflictError, NotFoundError, ValidationError, require_id


def _clean(value) -> str | None:
    text = str(value).strip() if value is not None else ""
    return text or None


def create_customer(
    title: str,
    *,
    code: str | None = None,
    city: str | None = None,
    address: str | None = None,
    email: str | None = None,
) -> Customer:
    if not _clean(title):
        raise ValidationError("Customer title is required")

    customer = Customer(
        title=_clean(title),
        code=_clean(code),
        city=_clean(city),
        address=_clean(address),
        email=_clean(email),
    )
    db.session.add(customer)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Customer code is already in use") from None
    return customer


def get_customer(customer_id) -> Customer | None:
    return db.session.get(Customer, require_id(customer_id, "customer_id"))


def list_customers() -> list[Customer]:
    return db.session.query(Customer).order_by(Customer.title.asc()).all()


def create_store(
    customer_id,
    name: str,
    *,
    code: str | None = None,
    city: str | None = None,
    address: str | None = None,
    phone: str | None = None,
    manager: str | None = None,
) -> Store:
    cid = require_id(customer_id, "customer_id")
    if not _clean(name):
        raise ValidationError("Store name is required")

    if db.session.get(Customer, cid) is None:
        raise NotFoundError("Customer not found")

    store = Store(
        customer_id=cid,
        name=_clean(name),
        code=_clean(code),
        city=_clean(city),
        address=_clean(address),
        phone=_clean(phone),
        manager=_clean(manager),
    )
    db.session.add(store)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("This code is already used by another store of the customer") from None
    return store


def get_store(store_id) -> Store | None:
    return db.session.get(Store, require_id(store_id, "store_id"))


def list_stores(customer_id=None) -> list[Store]:
    query = db.session.query(Store)
    if customer_id is not None:
        query = query.filter_by(customer_id=require_id(customer_id, "customer_id"))
    return query.order_by(Store.name.asc(), Store.id.asc()).all()


STORE_PATCHABLE_FIELDS = ("name", "code", "city", "address", "phone", "manager", "is_active")


def update_store(store_id, patch: dict | None) -> Store:
    """
    Apply a partial update; keys outside STORE_PATCHABLE_FIELDS are rejected.

    customer_id never changes here, so grant inheritance stays put.
    """
    sid = require_id(store_id, "store_id")
    patch = dict(patch or {})
    unknown = sorted(set(patch) - set(STORE_PATCHABLE_FIELDS))
    if unknown:
        raise ValidationError(f"Fields cannot be changed: {', '.join(unknown)}")

    store = db.session.get(Store, sid)
    if store is None:
        raise NotFoundError("Store not found")

    if "name" in patch:
        if not _clean(patch["name"]):
            raise ValidationError("Store name is required")
        store.name = _clean(patch["name"])
    for key in ("code", "city", "address", "phone", "manager"):
        if key in patch:
            setattr(store, key, _clean(patch[key]))
    if "is_active" in patch:
        if not isinstance(patch["is_active"], bool):
            raise ValidationError("is_active must be a boolean")
        store.is_active = patch["is_active"]

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("This code is already used by another store of the customer") from None
    return store


def delete_store(store_id) -> None:
    """
    Remove a store that nothing refers to.

    Stores with visits or access grants are kept; deactivate them instead.
    """
    sid = require_id(store_id, "store_id")
    store = db.session.get(Store, sid)
    if store is None:
        raise NotFoundError("Store not found")

    if db.session.query(ScheduleEvent.id).filter_by(store_id=sid).first() is not None:
        raise ConflictError("Store has visits; deactivate it instead")
    if db.session.query(AccessGrant.id).filter_by(store_id=sid).first() is not None:
        raise ConflictError("Store has access grants; revoke them first")

    db.session.delete(store)
    db.session.commit()
