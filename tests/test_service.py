import database


def test_root(client):
    assert client.get("/").json() == {"message": "Grocery Store API is running"}


def test_health_report(client, hub, monkeypatch):
    assert client.get("/test").json() == {"backend": "running", "database": "connected", "orderEventSubscribers": 0}
    monkeypatch.setattr(database, "db", None)
    assert client.get("/test").json()["database"] == "not-configured"


def test_schema_uses_stored_field_names(client):
    schema = client.get("/schema").json()
    assert "passwordHash" in schema["user"]["properties"]
    assert "deliveryAddress" in schema["order"]["properties"]


def test_missing_database_is_a_server_error(client, monkeypatch):
    monkeypatch.setattr(database, "db", None)
    res = client.get("/api/products")
    assert res.status_code == 500
    assert res.json()["detail"] == "Database not configured"
