# Overview: Pytest coverage for the /api/access endpoints.

from pestguard.models import AccessGrant, AccessOwner


class TestAccessAuthorization:
    def test_requires_token(self, client, db_session):
        resp = client.get("/api/access/grants")
        assert resp.status_code == 401

    def test_customer_role_denied(self, client, owner_headers):
        resp = client.get("/api/access/grants", headers=owner_headers)
        assert resp.status_code == 403
        assert resp.get_json()["required_roles"] == ["admin", "employee"]


class TestGrantEndpoints:
    def test_customer_grant_visible_on_store(self, client, admin_headers, owner, store_a, store_a2):
        resp = client.post("/api/access/grant", headers=admin_headers, json={
            "owner_id": owner.id,
            "scope_type": "CUSTOMER",
            "customer_id": 1,
        })
        assert resp.status_code == 201
        grant = resp.get_json()["grant"]
        assert grant["principal_type"] == "CUSTOMER"
        assert grant["owner_id"] == owner.id
        assert grant["granted_by_role"] == "admin"

        resp = client.get("/api/access/store/10", headers=admin_headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["count"] == 1
        assert body["grants"][0]["id"] == grant["id"]
        assert "Müşteri:" in body["grants"][0]["scope_label"]
        assert body["grants"][0]["principal"]["email"] == "owner@acme.test"

    def test_duplicate_grant_is_409(self, client, employee_headers, owner, customer_a):
        payload = {"principal_type": "CUSTOMER", "principal_id": owner.id, "scope_type": "CUSTOMER", "customer_id": 1}
        assert client.post("/api/access/grant", headers=employee_headers, json=payload).status_code == 201

        resp = client.post("/api/access/grant", headers=employee_headers, json=payload)
        assert resp.status_code == 409
        assert "error" in resp.get_json()

    def test_bad_scope_is_400(self, client, admin_headers, owner, store_a):
        resp = client.post("/api/access/grant", headers=admin_headers, json={
            "owner_id": owner.id,
            "scope_type": "STORE",
            "customer_id": 1,
            "store_id": 10,
        })
        assert resp.status_code == 400

    def test_unknown_store_is_404(self, client, admin_headers):
        assert client.get("/api/access/store/999", headers=admin_headers).status_code == 404

    def test_revoke(self, client, admin_headers, db_session, owner, store_a):
        resp = client.post("/api/access/grant", headers=admin_headers, json={
            "owner_id": owner.id, "scope_type": "STORE", "store_id": 10,
        })
        grant_id = resp.get_json()["grant"]["id"]

        resp = client.delete(f"/api/access/{grant_id}", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json() == {"ok": True}
        assert db_session.query(AccessGrant).count() == 0

        assert client.delete(f"/api/access/{grant_id}", headers=admin_headers).status_code == 404

    def test_customer_listing(self, client, admin_headers, owner, employee, customer_a, store_a):
        client.post("/api/access/grant", headers=admin_headers, json={
            "owner_id": owner.id, "scope_type": "CUSTOMER", "customer_id": 1,
        })
        client.post("/api/access/grant", headers=admin_headers, json={
            "principal_type": "EMPLOYEE", "principal_id": employee.id, "scope_type": "STORE", "store_id": 10,
        })

        resp = client.get("/api/access/customer/1", headers=admin_headers)
        assert resp.get_json()["count"] == 2

    def test_filtered_listing(self, client, admin_headers, owner, employee, customer_a, store_a):
        client.post("/api/access/grant", headers=admin_headers, json={
            "owner_id": owner.id, "scope_type": "CUSTOMER", "customer_id": 1,
        })
        client.post("/api/access/grant", headers=admin_headers, json={
            "principal_type": "EMPLOYEE", "principal_id": employee.id, "scope_type": "STORE", "store_id": 10,
        })

        resp = client.get("/api/access/grants?scope_type=store", headers=admin_headers)
        grants = resp.get_json()["grants"]
        assert [g["principal_type"] for g in grants] == ["EMPLOYEE"]

        resp = client.get("/api/access/grants?owner_id=abc", headers=admin_headers)
        assert resp.status_code == 400

    def test_blank_filters_list_everything(self, client, admin_headers, owner, employee, customer_a, store_a):
        client.post("/api/access/grant", headers=admin_headers, json={
            "owner_id": owner.id, "scope_type": "CUSTOMER", "customer_id": 1,
        })
        client.post("/api/access/grant", headers=admin_headers, json={
            "principal_type": "EMPLOYEE", "principal_id": employee.id, "scope_type": "STORE", "store_id": 10,
        })

        resp = client.get("/api/access/grants?owner_id=&scope_type=&principal_id=", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["count"] == 2

    def test_principal_listing(self, client, admin_headers, employee, store_a):
        client.post("/api/access/grant", headers=admin_headers, json={
            "principal_type": "EMPLOYEE", "principal_id": employee.id, "scope_type": "STORE", "store_id": 10,
        })
        resp = client.get(f"/api/access/principal/employee/{employee.id}", headers=admin_headers)
        body = resp.get_json()
        assert resp.status_code == 200
        assert body["principal"]["name"] == "Mehmet Teknisyen"
        assert len(body["grants"]) == 1

        resp = client.get("/api/access/principal/robot/1", headers=admin_headers)
        assert resp.status_code == 400


class TestOwnerEndpoints:
    def test_ensure_creates_then_fetches(self, client, admin_headers, db_session):
        payload = {"email": "new@acme.test", "role": "GENEL_MUDUR", "reveal": True}

        resp = client.post("/api/access/owners/ensure", headers=admin_headers, json=payload)
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["created"] is True
        assert len(body["code"]) == 6

        resp = client.post("/api/access/owners/ensure", headers=admin_headers, json=payload)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["created"] is False
        assert body["code_issued"] is False
        assert "code" not in body
        assert db_session.query(AccessOwner).count() == 1

    def test_code_hidden_from_employees(self, client, employee_headers):
        resp = client.post("/api/access/owners/ensure", headers=employee_headers, json={
            "email": "hidden@acme.test", "reveal": True,
        })
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["code_issued"] is True
        assert "code" not in body

    def test_ensure_requires_email(self, client, admin_headers):
        resp = client.post("/api/access/owners/ensure", headers=admin_headers, json={})
        assert resp.status_code == 400

    def test_owner_detail(self, client, admin_headers, owner, customer_a):
        client.post("/api/access/grant", headers=admin_headers, json={
            "owner_id": owner.id, "scope_type": "CUSTOMER", "customer_id": 1,
        })
        resp = client.get(f"/api/access/owner/{owner.id}", headers=admin_headers)
        body = resp.get_json()
        assert body["owner"]["email"] == "owner@acme.test"
        assert len(body["grants"]) == 1

        assert client.get("/api/access/owner/999", headers=admin_headers).status_code == 404

    def test_reset_password_reveals_code_to_admins(self, client, admin_headers, owner):
        resp = client.post(f"/api/access/owner/{owner.id}/reset-password", headers=admin_headers, json={"reveal": True})
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["ok"] is True
        assert body["owner"]["email"] == "owner@acme.test"
        assert len(body["code"]) == 6 and body["code"].isdigit()

        resp = client.post("/api/auth/login", json={"email": "owner@acme.test", "password": body["code"]})
        assert resp.status_code == 200

    def test_reset_password_hides_code_without_reveal(self, client, admin_headers, owner):
        resp = client.post(f"/api/access/owner/{owner.id}/reset-password", headers=admin_headers)
        assert resp.status_code == 200
        assert "code" not in resp.get_json()

    def test_reset_password_unknown_owner(self, client, admin_headers):
        resp = client.post("/api/access/owner/999/reset-password", headers=admin_headers, json={"reveal": True})
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "Access owner not found"

    def test_reset_password_is_admin_only(self, client, employee_headers, owner):
        resp = client.post(f"/api/access/owner/{owner.id}/reset-password", headers=employee_headers)
        assert resp.status_code == 403
