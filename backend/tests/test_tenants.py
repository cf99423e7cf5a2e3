"""Tests for the tenants API."""

from uuid import uuid4


class TestTenantsApi:
    def test_create_and_get(self, client):
        response = client.post("/v1/tenants/", json={"name": "Acme"})
        assert response.status_code == 201
        tenant = response.json()

        fetched = client.get(f"/v1/tenants/{tenant['id']}")
        assert fetched.status_code == 200
        assert fetched.json()["name"] == "Acme"

    def test_list(self, client):
        client.post("/v1/tenants/", json={"name": "Acme"})

        response = client.get("/v1/tenants/", params={"order_by": "name:asc"})

        assert response.status_code == 200
        assert response.headers["X-Total-Count"] == "2"
        assert [t["name"] for t in response.json()] == ["Acme", "Default Test Tenant"]

    def test_get_not_found(self, client):
        assert client.get(f"/v1/tenants/{uuid4()}").status_code == 404

    def test_name_required(self, client):
        assert client.post("/v1/tenants/", json={"name": ""}).status_code == 422

    def test_scoped_requests_accept_new_tenant(self, client):
        tenant = client.post("/v1/tenants/", json={"name": "Acme"}).json()
        response = client.get("/v1/cms_integrations/", headers={"X-Tenant-Id": tenant["id"]})
        assert response.status_code == 200


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["status"] == "running"
