# Overview: Pytest coverage for access grant resolution and inheritance.

"""
Access Grant Resolver Tests

SECURITY TESTS: A CUSTOMER grant reaches every store of that customer; a
STORE grant reaches exactly one store. Owners with no grants reach nothing.
"""

import pytest

from pestguard.models import AccessGrant
from pestguard.services.access_service import (
    AccessResolver,
    CustomerScope,
    PrincipalType,
    StoreScope,
    scope_from,
)
from pestguard.services.auth_service import verify_password
from pestguard.validation import ConflictError, NotFoundError, ValidationError

from conftest import TEST_PASSWORD


@pytest.fixture
def resolver(db_session):
    return AccessResolver(db_session)


class TestScopeParsing:
    def test_customer_scope(self):
        assert scope_from("customer", customer_id="1") == CustomerScope(1)

    def test_store_scope(self):
        assert scope_from("STORE", store_id=10) == StoreScope(10)

    def test_mismatched_foreign_key_rejected(self):
        with pytest.raises(ValidationError):
            scope_from("CUSTOMER", customer_id=1, store_id=10)
        with pytest.raises(ValidationError):
            scope_from("STORE", customer_id=1, store_id=10)

    def test_missing_target_rejected(self):
        with pytest.raises(ValidationError):
            scope_from("STORE")

    def test_unknown_scope_type(self):
        with pytest.raises(ValidationError):
            scope_from("REGION", customer_id=1)

    def test_principal_type_parse(self):
        assert PrincipalType.parse("employee") is PrincipalType.EMPLOYEE
        with pytest.raises(ValidationError):
            PrincipalType.parse("ROBOT")


class TestCreateGrant:
    def test_customer_principal_sets_owner(self, resolver, owner, customer_a, admin_actor):
        enriched = resolver.create_grant(
            "CUSTOMER", owner.id, "CUSTOMER", customer_id=customer_a.id, granted_by=admin_actor
        )
        grant = enriched.grant
        assert grant.owner_id == owner.id
        assert grant.store_id is None
        assert grant.granted_by_role == "admin"
        assert enriched.principal.name == "Zeynep Sahip"
        assert enriched.principal.role == "MAGAZA_MUDURU"

    def test_employee_principal_has_no_owner(self, resolver, employee, store_a):
        grant = resolver.create_grant("EMPLOYEE", employee.id, "STORE", store_id=store_a.id).grant
        assert grant.owner_id is None
        assert grant.customer_id is None

    def test_duplicate_grant_conflicts(self, resolver, db_session, owner, customer_a):
        resolver.create_grant("CUSTOMER", owner.id, "CUSTOMER", customer_id=customer_a.id)
        with pytest.raises(ConflictError):
            resolver.create_grant("CUSTOMER", owner.id, "CUSTOMER", customer_id=customer_a.id)
        assert db_session.query(AccessGrant).count() == 1

    def test_same_principal_different_scope_is_allowed(self, resolver, owner, customer_a, store_a):
        resolver.create_grant("CUSTOMER", owner.id, "CUSTOMER", customer_id=customer_a.id)
        resolver.create_grant("CUSTOMER", owner.id, "STORE", store_id=store_a.id)
        assert len(resolver.list_grants(owner_id=owner.id)) == 2

    def test_unknown_principal(self, resolver, customer_a):
        with pytest.raises(NotFoundError):
            resolver.create_grant("EMPLOYEE", 999, "CUSTOMER", customer_id=customer_a.id)

    def test_unknown_store(self, resolver, owner):
        with pytest.raises(NotFoundError):
            resolver.create_grant("CUSTOMER", owner.id, "STORE", store_id=999)

    def test_invalid_principal_id(self, resolver, customer_a):
        with pytest.raises(ValidationError):
            resolver.create_grant("CUSTOMER", "abc", "CUSTOMER", customer_id=customer_a.id)

    def test_nothing_written_on_validation_error(self, resolver, db_session, owner, customer_a, store_a):
        with pytest.raises(ValidationError):
            resolver.create_grant("CUSTOMER", owner.id, "CUSTOMER", customer_id=customer_a.id, store_id=store_a.id)
        assert db_session.query(AccessGrant).count() == 0


class TestRevokeGrant:
    def test_revoke(self, resolver, db_session, owner, customer_a):
        grant = resolver.create_grant("CUSTOMER", owner.id, "CUSTOMER", customer_id=customer_a.id).grant
        resolver.revoke_grant(grant.id)
        assert db_session.query(AccessGrant).count() == 0

    def test_revoke_missing(self, resolver):
        with pytest.raises(NotFoundError):
            resolver.revoke_grant(12345)

    def test_revoke_invalid_id(self, resolver):
        with pytest.raises(ValidationError):
            resolver.revoke_grant("x")


class TestInheritance:
    def test_customer_grant_appears_on_every_store(self, resolver, owner, customer_a, store_a, store_a2):
        grant = resolver.create_grant("CUSTOMER", owner.id, "CUSTOMER", customer_id=customer_a.id).grant

        for store in (store_a, store_a2):
            ids = [item.grant.id for item in resolver.list_grants_for_store(store.id)]
            assert grant.id in ids

    def test_store_grant_does_not_reach_siblings(self, resolver, owner, store_a, store_a2):
        grant = resolver.create_grant("CUSTOMER", owner.id, "STORE", store_id=store_a.id).grant

        assert [g.grant.id for g in resolver.list_grants_for_store(store_a.id)] == [grant.id]
        assert resolver.list_grants_for_store(store_a2.id) == []

    def test_direct_grants_listed_before_inherited(self, resolver, owner, employee, customer_a, store_a):
        inherited = resolver.create_grant("CUSTOMER", owner.id, "CUSTOMER", customer_id=customer_a.id).grant
        direct = resolver.create_grant("EMPLOYEE", employee.id, "STORE", store_id=store_a.id).grant

        ids = [item.grant.id for item in resolver.list_grants_for_store(store_a.id)]
        assert ids == [direct.id, inherited.id]

    def test_store_listing_for_missing_store(self, resolver):
        with pytest.raises(NotFoundError):
            resolver.list_grants_for_store(404)

    def test_customer_listing_includes_store_grants(self, resolver, owner, employee, customer_a, store_a, store_b):
        on_customer = resolver.create_grant("CUSTOMER", owner.id, "CUSTOMER", customer_id=customer_a.id).grant
        on_store = resolver.create_grant("EMPLOYEE", employee.id, "STORE", store_id=store_a.id).grant
        resolver.create_grant("EMPLOYEE", employee.id, "STORE", store_id=store_b.id)

        ids = [item.grant.id for item in resolver.list_grants_for_customer(customer_a.id)]
        assert ids == [on_customer.id, on_store.id]

    def test_customer_listing_for_unknown_customer_is_empty(self, resolver):
        assert resolver.list_grants_for_customer(777) == []


class TestEnrichment:
    def test_customer_scope_label(self, resolver, owner, customer_a, store_a):
        resolver.create_grant("CUSTOMER", owner.id, "CUSTOMER", customer_id=customer_a.id)

        [item] = resolver.list_grants_for_store(store_a.id)
        assert item.scope_label == "Müşteri: Acme Gıda"
        assert item.customer.id == customer_a.id
        assert item.store is None

    def test_store_scope_backfills_customer(self, resolver, owner, customer_a, store_a):
        resolver.create_grant("CUSTOMER", owner.id, "STORE", store_id=store_a.id)

        data = resolver.list_grants_for_store(store_a.id)[0].to_dict()
        assert data["scope_label"] == "Mağaza: Kadıköy"
        assert data["customer"] == {"id": 1, "title": "Acme Gıda", "code": "ACME"}
        assert data["store"]["id"] == 10

    def test_orphaned_principal_still_listed(self, resolver, db_session, customer_a):
        grant = AccessGrant(principal_type="EMPLOYEE", principal_id=99, scope_type="CUSTOMER", customer_id=customer_a.id)
        db_session.add(grant)
        db_session.commit()

        [item] = resolver.list_grants_for_customer(customer_a.id)
        assert item.principal is None
        assert item.to_dict()["principal"] is None

    def test_principal_listing(self, resolver, employee, customer_a, store_b):
        resolver.create_grant("EMPLOYEE", employee.id, "CUSTOMER", customer_id=customer_a.id)
        resolver.create_grant("EMPLOYEE", employee.id, "STORE", store_id=store_b.id)

        principal, grants = resolver.list_grants_for_principal("EMPLOYEE", employee.id)
        assert principal.name == "Mehmet Teknisyen"
        assert principal.role == "employee"
        assert len(grants) == 2

    def test_principal_listing_unknown_principal(self, resolver):
        principal, grants = resolver.list_grants_for_principal("ADMIN", 42)
        assert principal is None
        assert grants == []


class TestOwnerAuthorization:
    def test_no_grants_means_no_stores(self, resolver, owner, store_a):
        assert resolver.resolve_accessible_store_ids(owner.id) == set()
        assert resolver.owner_can_access_store(owner.id, store_a.id) is False

    def test_union_of_direct_and_inherited(self, resolver, owner, customer_a, store_a, store_a2, store_b):
        resolver.create_grant("CUSTOMER", owner.id, "CUSTOMER", customer_id=customer_a.id)
        resolver.create_grant("CUSTOMER", owner.id, "STORE", store_id=store_b.id)

        assert resolver.resolve_accessible_store_ids(owner.id) == {10, 11, 20}

    def test_store_grant_only(self, resolver, owner, store_a, store_a2):
        resolver.create_grant("CUSTOMER", owner.id, "STORE", store_id=store_a.id)

        assert resolver.resolve_accessible_store_ids(owner.id) == {10}
        assert resolver.owner_can_access_store(owner.id, store_a2.id) is False

    def test_resolution_is_idempotent(self, resolver, owner, customer_a, store_a, store_a2):
        resolver.create_grant("CUSTOMER", owner.id, "CUSTOMER", customer_id=customer_a.id)
        first = resolver.resolve_accessible_store_ids(owner.id)
        assert resolver.resolve_accessible_store_ids(owner.id) == first

    def test_employee_grants_do_not_count_for_owners(self, resolver, db_session, owner, employee, store_a):
        resolver.create_grant("EMPLOYEE", employee.id, "STORE", store_id=store_a.id)
        assert resolver.resolve_accessible_store_ids(owner.id) == set()

    def test_unknown_owner(self, resolver):
        assert resolver.resolve_accessible_store_ids(None) == set()
        assert resolver.resolve_accessible_store_ids(404) == set()

    def test_list_accessible_stores(self, resolver, owner, customer_a, store_a, store_a2):
        resolver.create_grant("CUSTOMER", owner.id, "CUSTOMER", customer_id=customer_a.id)
        names = [s.name for s in resolver.list_accessible_stores(owner.id)]
        assert names == ["Beşiktaş", "Kadıköy"]


class TestEnsureOwner:
    def test_creates_owner_with_code(self, resolver):
        owner, created, code = resolver.ensure_owner(" New@Acme.test ", role="patron", first_name="Ali")
        assert created is True
        assert owner.email == "new@acme.test"
        assert owner.role == "PATRON"
        assert len(code) == 6 and code.isdigit()

    def test_existing_owner_is_returned_untouched(self, resolver, owner):
        before = owner.password_hash
        found, created, code = resolver.ensure_owner("owner@acme.test")
        assert found.id == owner.id
        assert created is False
        assert code is None
        assert found.password_hash == before

    def test_force_reset_issues_new_code(self, resolver, owner):
        before = owner.password_hash
        _, created, code = resolver.ensure_owner("owner@acme.test", force_reset=True)
        assert created is False
        assert code is not None
        assert owner.password_hash != before

    def test_reset_code_replaces_password(self, resolver, owner):
        assert verify_password(TEST_PASSWORD, owner.password_hash)
        found, code = resolver.reset_owner_code(owner.id)
        assert found.id == owner.id
        assert len(code) == 6 and code.isdigit()
        assert verify_password(code, owner.password_hash)
        assert not verify_password(TEST_PASSWORD, owner.password_hash)

    def test_reset_code_missing_owner(self, resolver):
        with pytest.raises(NotFoundError):
            resolver.reset_owner_code(404)

    def test_unknown_role_falls_back(self, resolver):
        owner, _, _ = resolver.ensure_owner("x@y.test", role="CEO")
        assert owner.role == "CALISAN"

    def test_email_required(self, resolver):
        with pytest.raises(ValidationError):
            resolver.ensure_owner("  ")

    def test_owner_detail(self, resolver, owner, customer_a):
        resolver.create_grant("CUSTOMER", owner.id, "CUSTOMER", customer_id=customer_a.id)
        found, grants = resolver.get_owner_detail(owner.id)
        assert found.id == owner.id
        assert len(grants) == 1

    def test_owner_detail_missing(self, resolver):
        with pytest.raises(NotFoundError):
            resolver.get_owner_detail(404)


class TestFilteredListing:
    def test_filters_narrow_the_listing(self, resolver, owner, employee, customer_a, store_a):
        resolver.create_grant("CUSTOMER", owner.id, "CUSTOMER", customer_id=customer_a.id)
        resolver.create_grant("EMPLOYEE", employee.id, "STORE", store_id=store_a.id)

        assert [g.grant.principal_type for g in resolver.list_grants(scope_type="store")] == ["EMPLOYEE"]
        assert [g.grant.principal_type for g in resolver.list_grants(owner_id=owner.id)] == ["CUSTOMER"]

    def test_blank_filters_are_ignored(self, resolver, owner, employee, customer_a, store_a):
        resolver.create_grant("CUSTOMER", owner.id, "CUSTOMER", customer_id=customer_a.id)
        resolver.create_grant("EMPLOYEE", employee.id, "STORE", store_id=store_a.id)

        grants = resolver.list_grants(
            owner_id="", scope_type="  ", customer_id="", store_id="", principal_type="", principal_id=" ",
        )
        assert len(grants) == 2

    def test_bad_filter_value_rejected(self, resolver):
        with pytest.raises(ValidationError):
            resolver.list_grants(owner_id="abc")
