from __future__ import annotations

from ..extensions import db
from pestguard.time_utils import to_utc_z


PRINCIPAL_TYPES = ("EMPLOYEE", "CUSTOMER", "ADMIN")
SCOPE_TYPES = ("CUSTOMER", "STORE")


class AccessGrant(db.Model):
    """
    Authorization edge from a principal to a customer or a single store.

    SCOPE:
    - CUSTOMER: customer_id set, store_id NULL. Covers every store of the customer.
    - STORE: store_id set, customer_id NULL. Covers that store only, never its siblings.

    PRINCIPAL:
    - EMPLOYEE / ADMIN: internal staff, recorded for auditing.
    - CUSTOMER: an AccessOwner. owner_id mirrors principal_id so owner-scoped
      lookups (complaints, reports, calendar) can filter on one indexed column.

    IMMUTABLE: created and revoked, never edited in place.
    """
    __tablename__ = "access_grants"
    __table_args__ = (
        db.UniqueConstraint(
            "principal_type", "principal_id", "scope_type", "customer_id", "store_id",
            name="uq_access_grants_principal_scope",
        ),
        db.CheckConstraint(
            "(scope_type = 'CUSTOMER' AND customer_id IS NOT NULL AND store_id IS NULL)"
            " OR (scope_type = 'STORE' AND store_id IS NOT NULL AND customer_id IS NULL)",
            name="ck_access_grants_scope_target",
        ),
        db.CheckConstraint(
            "principal_type IN ('EMPLOYEE', 'CUSTOMER', 'ADMIN')",
            name="ck_access_grants_principal_type",
        ),
        db.Index("ix_access_grants_principal", "principal_type", "principal_id"),
        db.Index("ix_access_grants_owner", "owner_id"),
        db.Index("ix_access_grants_scope_customer", "scope_type", "customer_id"),
        db.Index("ix_access_grants_scope_store", "scope_type", "store_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    principal_type = db.Column(db.String(16), nullable=False)
    principal_id = db.Column(db.Integer, nullable=False)
    owner_id = db.Column(db.Integer, db.ForeignKey("access_owners.id"), nullable=True)

    scope_type = db.Column(db.String(16), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=True)

    # Who issued the grant (admin or employee)
    granted_by_id = db.Column(db.Integer, nullable=True)
    granted_by_role = db.Column(db.String(16), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    owner = db.relationship("AccessOwner", backref=db.backref("grants", lazy=True))
    customer = db.relationship("Customer", backref=db.backref("access_grants", lazy=True))
    store = db.relationship("Store", backref=db.backref("access_grants", lazy=True))

    def __repr__(self) -> str:
        target = self.customer_id if self.scope_type == "CUSTOMER" else self.store_id
        return (
            f"<AccessGrant id={self.id} {self.principal_type}#{self.principal_id}"
            f" -> {self.scope_type}#{target}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "principal_type": self.principal_type,
            "principal_id": self.principal_id,
            "owner_id": self.owner_id,
            "scope_type": self.scope_type,
            "customer_id": self.customer_id,
            "store_id": self.store_id,
            "granted_by_id": self.granted_by_id,
            "granted_by_role": self.granted_by_role,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
