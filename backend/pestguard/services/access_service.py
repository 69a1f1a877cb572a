# Overview: Service-layer operations for access grants; resolves CUSTOMER -> STORE inheritance.

"""
Access Grant Resolver

WHY: Customer-side accounts file complaints, read reports and see the visit
calendar for specific stores. A grant targets either a whole customer or a
single store. A CUSTOMER grant is equivalent to a STORE grant on every store
that customer owns; a STORE grant never reaches sibling stores.

DESIGN:
- Principals are EMPLOYEE, CUSTOMER (an AccessOwner) or ADMIN; one dispatch
  table maps each kind to its account model.
- Scopes are CustomerScope | StoreScope; one function turns a scope into its
  label and customer/store context.
- Principal lookups return PrincipalSummary | None. Orphaned grants still list.
- Owner-scoped authorization (resolve_accessible_store_ids) keys on owner_id.
"""

from __future__ import annotations

import enum
import logging
import secrets
from dataclasses import dataclass
from typing import Any, Union

from sqlalchemy.exc import IntegrityError

from ..models import AccessGrant, AccessOwner, Admin, Customer, Employee, Store, ACCESS_OWNER_ROLES
from ..validation import ConflictError, NotFoundError, ValidationError, parse_id, require_id
from .auth_service import hash_password, normalize_email
from .session_service import Actor


logger = logging.getLogger(__name__)


# One-time owner codes are short-lived; a lower bcrypt cost keeps ensure() fast
ONE_TIME_CODE_ROUNDS = 10
DEFAULT_OWNER_ROLE = "CALISAN"


class PrincipalType(str, enum.Enum):
    EMPLOYEE = "EMPLOYEE"
    CUSTOMER = "CUSTOMER"
    ADMIN = "ADMIN"

    @classmethod
    def parse(cls, value: Any) -> "PrincipalType":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().upper())
        except ValueError:
            raise ValidationError("Invalid principal_type") from None


_PRINCIPAL_MODELS = {
    PrincipalType.EMPLOYEE: Employee,
    PrincipalType.CUSTOMER: AccessOwner,
    PrincipalType.ADMIN: Admin,
}


@dataclass(frozen=True)
class CustomerScope:
    customer_id: int
    scope_type = "CUSTOMER"


@dataclass(frozen=True)
class StoreScope:
    store_id: int
    scope_type = "STORE"


GrantScope = Union[CustomerScope, StoreScope]


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def scope_from(scope_type: Any, customer_id: Any = None, store_id: Any = None) -> GrantScope:
    """
    Build a scope from request values.

    Exactly the foreign key matching scope_type must be present.
    """
    kind = str(scope_type or "").strip().upper()
    if kind == "CUSTOMER":
        if not _is_blank(store_id):
            raise ValidationError("store_id must be empty for CUSTOMER scope")
        return CustomerScope(require_id(customer_id, "customer_id"))
    if kind == "STORE":
        if not _is_blank(customer_id):
            raise ValidationError("customer_id must be empty for STORE scope")
        return StoreScope(require_id(store_id, "store_id"))
    raise ValidationError("Invalid scope_type")


def scope_of(grant: AccessGrant) -> GrantScope:
    if grant.scope_type == "CUSTOMER":
        return CustomerScope(grant.customer_id)
    return StoreScope(grant.store_id)


def scope_columns(scope: GrantScope) -> dict:
    if isinstance(scope, CustomerScope):
        return {"scope_type": "CUSTOMER", "customer_id": scope.customer_id, "store_id": None}
    return {"scope_type": "STORE", "customer_id": None, "store_id": scope.store_id}


@dataclass(frozen=True)
class PrincipalSummary:
    type: PrincipalType
    id: int
    name: str | None
    email: str | None
    role: str | None

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
        }


@dataclass
class EnrichedGrant:
    grant: AccessGrant
    principal: PrincipalSummary | None
    scope_label: str
    customer: Customer | None
    store: Store | None

    def to_dict(self) -> dict:
        data = self.grant.to_dict()
        data["principal"] = self.principal.to_dict() if self.principal else None
        data["scope_label"] = self.scope_label
        data["customer"] = (
            {"id": self.customer.id, "title": self.customer.title, "code": self.customer.code}
            if self.customer else None
        )
        data["store"] = (
            {"id": self.store.id, "name": self.store.name, "code": self.store.code,
             "customer_id": self.store.customer_id}
            if self.store else None
        )
        return data


def generate_one_time_code() -> str:
    return f"{secrets.randbelow(1_000_000):06d}"


def normalize_owner_role(value: Any) -> str:
    role = str(value or "").strip().upper()
    return role if role in ACCESS_OWNER_ROLES else DEFAULT_OWNER_ROLE


class AccessResolver:
    """Grant queries and mutations over an injected SQLAlchemy session."""

    def __init__(self, session):
        self.session = session

    # ------------------------------------------------------------------
    # Enrichment
    # ------------------------------------------------------------------

    def principal_summary(self, principal_type: Any, principal_id: Any) -> PrincipalSummary | None:
        """Display summary of a principal, or None when it cannot be resolved."""
        try:
            ptype = PrincipalType.parse(principal_type)
        except ValidationError:
            return None
        pid = parse_id(principal_id)
        if pid is None:
            return None

        account = self.session.get(_PRINCIPAL_MODELS[ptype], pid)
        if account is None:
            return None

        if ptype is PrincipalType.CUSTOMER:
            role = account.role
        else:
            role = ptype.value.lower()
        return PrincipalSummary(
            type=ptype,
            id=account.id,
            name=account.display_name,
            email=account.email,
            role=role,
        )

    def _scope_context(self, scope: GrantScope) -> tuple[str, Customer | None, Store | None]:
        if isinstance(scope, CustomerScope):
            customer = self.session.get(Customer, scope.customer_id)
            title = customer.title if customer and customer.title else scope.customer_id
            return f"Müşteri: {title}", customer, None

        store = self.session.get(Store, scope.store_id)
        customer = self.session.get(Customer, store.customer_id) if store else None
        name = store.name if store and store.name else scope.store_id
        return f"Mağaza: {name}", customer, store

    def expand_grant(self, grant: AccessGrant) -> EnrichedGrant:
        label, customer, store = self._scope_context(scope_of(grant))
        return EnrichedGrant(
            grant=grant,
            principal=self.principal_summary(grant.principal_type, grant.principal_id),
            scope_label=label,
            customer=customer,
            store=store,
        )

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    def _ordered(self, query):
        return query.order_by(AccessGrant.updated_at.desc(), AccessGrant.id.desc())

    def _store_ids_of_customers(self, customer_ids) -> list[int]:
        if not customer_ids:
            return []
        rows = self.session.query(Store.id).filter(Store.customer_id.in_(list(customer_ids))).all()
        return [row[0] for row in rows]

    def list_grants(
        self,
        *,
        owner_id: Any = None,
        scope_type: Any = None,
        customer_id: Any = None,
        store_id: Any = None,
        principal_type: Any = None,
        principal_id: Any = None,
    ) -> list[EnrichedGrant]:
        """Plain filtered listing; no inheritance is applied. Blank filters are ignored."""
        query = self.session.query(AccessGrant)
        if not _is_blank(owner_id):
            query = query.filter(AccessGrant.owner_id == require_id(owner_id, "owner_id"))
        if not _is_blank(scope_type):
            kind = str(scope_type).strip().upper()
            if kind not in ("CUSTOMER", "STORE"):
                raise ValidationError("Invalid scope_type")
            query = query.filter(AccessGrant.scope_type == kind)
        if not _is_blank(customer_id):
            query = query.filter(AccessGrant.customer_id == require_id(customer_id, "customer_id"))
        if not _is_blank(store_id):
            query = query.filter(AccessGrant.store_id == require_id(store_id, "store_id"))
        if not _is_blank(principal_type):
            query = query.filter(AccessGrant.principal_type == PrincipalType.parse(principal_type).value)
        if not _is_blank(principal_id):
            query = query.filter(AccessGrant.principal_id == require_id(principal_id, "principal_id"))
        return [self.expand_grant(g) for g in self._ordered(query).all()]

    def list_grants_for_store(self, store_id: Any) -> list[EnrichedGrant]:
        """
        Effective grants on a store: direct STORE grants, then CUSTOMER
        grants inherited from the store's customer.
        """
        sid = require_id(store_id, "store_id")
        store = self.session.get(Store, sid)
        if store is None:
            raise NotFoundError("Store not found")

        direct = self._ordered(
            self.session.query(AccessGrant).filter_by(scope_type="STORE", store_id=store.id)
        ).all()
        inherited = self._ordered(
            self.session.query(AccessGrant).filter_by(scope_type="CUSTOMER", customer_id=store.customer_id)
        ).all()
        return [self.expand_grant(g) for g in direct + inherited]

    def list_grants_for_customer(self, customer_id: Any) -> list[EnrichedGrant]:
        """CUSTOMER grants on the customer plus STORE grants on each of its stores."""
        cid = require_id(customer_id, "customer_id")

        customer_grants = self._ordered(
            self.session.query(AccessGrant).filter_by(scope_type="CUSTOMER", customer_id=cid)
        ).all()

        store_ids = self._store_ids_of_customers([cid])
        store_grants = []
        if store_ids:
            store_grants = self._ordered(
                self.session.query(AccessGrant).filter(
                    AccessGrant.scope_type == "STORE",
                    AccessGrant.store_id.in_(store_ids),
                )
            ).all()
        return [self.expand_grant(g) for g in customer_grants + store_grants]

    def list_grants_for_principal(
        self, principal_type: Any, principal_id: Any
    ) -> tuple[PrincipalSummary | None, list[EnrichedGrant]]:
        ptype = PrincipalType.parse(principal_type)
        pid = require_id(principal_id, "principal_id")

        grants = (
            self.session.query(AccessGrant)
            .filter_by(principal_type=ptype.value, principal_id=pid)
            .order_by(AccessGrant.created_at.desc(), AccessGrant.id.desc())
            .all()
        )
        return self.principal_summary(ptype, pid), [self.expand_grant(g) for g in grants]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _require_scope_target(self, scope: GrantScope) -> None:
        if isinstance(scope, CustomerScope):
            if self.session.get(Customer, scope.customer_id) is None:
                raise NotFoundError("Customer not found")
        elif self.session.get(Store, scope.store_id) is None:
            raise NotFoundError("Store not found")

    def create_grant(
        self,
        principal_type: Any,
        principal_id: Any,
        scope_type: Any,
        *,
        customer_id: Any = None,
        store_id: Any = None,
        granted_by: Actor | None = None,
    ) -> EnrichedGrant:
        """
        Issue a grant. Validation happens before any write.

        Raises ValidationError, NotFoundError (principal, customer or store)
        or ConflictError (identical grant exists).
        """
        ptype = PrincipalType.parse(principal_type)
        pid = require_id(principal_id, "principal_id")
        scope = scope_from(scope_type, customer_id=customer_id, store_id=store_id)

        if self.session.get(_PRINCIPAL_MODELS[ptype], pid) is None:
            raise NotFoundError("Principal not found")
        self._require_scope_target(scope)

        columns = scope_columns(scope)
        # NULL columns defeat the unique constraint on most backends
        existing = (
            self.session.query(AccessGrant.id)
            .filter_by(principal_type=ptype.value, principal_id=pid, **columns)
            .first()
        )
        if existing is not None:
            raise ConflictError("Grant already exists")

        grant = AccessGrant(
            principal_type=ptype.value,
            principal_id=pid,
            owner_id=pid if ptype is PrincipalType.CUSTOMER else None,
            granted_by_id=granted_by.id if granted_by else None,
            granted_by_role=granted_by.role if granted_by else None,
            **columns,
        )
        self.session.add(grant)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise ConflictError("Grant already exists") from None

        logger.info(
            "Access grant %s issued: %s#%s -> %s",
            grant.id, ptype.value, pid, scope,
        )
        return self.expand_grant(grant)

    def revoke_grant(self, grant_id: Any) -> None:
        gid = require_id(grant_id, "id")
        grant = self.session.get(AccessGrant, gid)
        if grant is None:
            raise NotFoundError("Grant not found")

        self.session.delete(grant)
        self.session.commit()
        logger.info("Access grant %s revoked", gid)

    # ------------------------------------------------------------------
    # Owner-scoped authorization
    # ------------------------------------------------------------------

    def resolve_accessible_store_ids(self, owner_id: Any) -> set[int]:
        """
        Every store id the access owner may act upon.

        Direct STORE grants plus all stores of CUSTOMER-granted customers.
        Unknown or absent owners resolve to an empty set.
        """
        oid = parse_id(owner_id)
        if oid is None:
            return set()

        rows = (
            self.session.query(AccessGrant.scope_type, AccessGrant.customer_id, AccessGrant.store_id)
            .filter(AccessGrant.owner_id == oid)
            .all()
        )

        store_ids: set[int] = set()
        customer_ids: set[int] = set()
        for scope_type, customer_id, store_id in rows:
            if scope_type == "STORE" and store_id:
                store_ids.add(store_id)
            elif scope_type == "CUSTOMER" and customer_id:
                customer_ids.add(customer_id)

        store_ids.update(self._store_ids_of_customers(customer_ids))
        return store_ids

    def owner_can_access_store(self, owner_id: Any, store_id: Any) -> bool:
        sid = parse_id(store_id)
        if sid is None:
            return False
        return sid in self.resolve_accessible_store_ids(owner_id)

    def list_accessible_stores(self, owner_id: Any) -> list[Store]:
        store_ids = self.resolve_accessible_store_ids(owner_id)
        if not store_ids:
            return []
        return (
            self.session.query(Store)
            .filter(Store.id.in_(sorted(store_ids)))
            .order_by(Store.name.asc(), Store.id.asc())
            .all()
        )

    # ------------------------------------------------------------------
    # Access owners
    # ------------------------------------------------------------------

    def ensure_owner(
        self,
        email: Any,
        *,
        role: Any = DEFAULT_OWNER_ROLE,
        first_name: str | None = None,
        last_name: str | None = None,
        phone: str | None = None,
        force_reset: bool = False,
    ) -> tuple[AccessOwner, bool, str | None]:
        """
        Fetch the owner with this email, creating it if needed.

        Returns (owner, created, one_time_code). A code is issued for new
        owners and on force_reset; delivering it is the caller's concern.
        """
        normalized = normalize_email(email)
        if not normalized:
            raise ValidationError("email is required")

        owner = self.session.query(AccessOwner).filter_by(email=normalized).first()
        code = None
        created = False

        if owner is None:
            code = generate_one_time_code()
            owner = AccessOwner(
                email=normalized,
                password_hash=hash_password(code, rounds=ONE_TIME_CODE_ROUNDS),
                role=normalize_owner_role(role),
                first_name=first_name or None,
                last_name=last_name or None,
                phone=phone or None,
                is_active=True,
            )
            self.session.add(owner)
            created = True
        elif force_reset:
            code = generate_one_time_code()
            owner.password_hash = hash_password(code, rounds=ONE_TIME_CODE_ROUNDS)

        if created or force_reset:
            try:
                self.session.commit()
            except IntegrityError:
                self.session.rollback()
                raise ConflictError("Access owner with this email already exists") from None
            logger.info("Access owner %s %s", owner.id, "created" if created else "reset")

        return owner, created, code

    def reset_owner_code(self, owner_id: Any) -> tuple[AccessOwner, str]:
        """Issue a new one-time code for an existing owner; the old one stops working."""
        oid = require_id(owner_id, "owner_id")
        owner = self.session.get(AccessOwner, oid)
        if owner is None:
            raise NotFoundError("Access owner not found")

        code = generate_one_time_code()
        owner.password_hash = hash_password(code, rounds=ONE_TIME_CODE_ROUNDS)
        self.session.commit()

        logger.info("Access owner %s code reset", owner.id)
        return owner, code

    def get_owner_detail(self, owner_id: Any) -> tuple[AccessOwner, list[EnrichedGrant]]:
        oid = require_id(owner_id, "owner_id")
        owner = self.session.get(AccessOwner, oid)
        if owner is None:
            raise NotFoundError("Access owner not found")

        grants = (
            self.session.query(AccessGrant)
            .filter_by(owner_id=oid)
            .order_by(AccessGrant.created_at.desc(), AccessGrant.id.desc())
            .all()
        )
        return owner, [self.expand_grant(g) for g in grants]
