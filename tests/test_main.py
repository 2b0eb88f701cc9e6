import config
import database


def test_root(client):
    r = client.get("/")
    assert r.status_code == 200
    assert r.text == "API Working"


def test_diagnostics(client, make_product):
    make_product()
    body = client.get("/test").json()
    assert body["backend"] == "✅ Running"
    assert body["database_url"] == "✅ Set"
    assert "product" in body["collections"]
    assert body["stripe"] == "❌ Not Set"


def test_validation_errors_use_failure_envelope(client, user):
    r = client.post("/api/cart/update", json={"itemId": "x"}, headers=user["headers"])
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is False
    assert body["message"]


def test_api_routes_are_rate_limited_per_ip(client, monkeypatch, make_product):
    monkeypatch.setattr(config, "RATE_LIMIT_MAX", 3)
    pid = make_product()

    statuses = [client.post("/api/product/single", json={"productId": pid}).status_code for _ in range(3)]
    assert statuses == [200, 200, 200]

    r = client.get("/api/product/list")
    assert r.status_code == 429
    assert r.json() == {
        "success": False,
        "message": "Too many requests from this IP, please try again later.",
        "retryAfter": "15 minutes",
    }

    # service routes stay reachable
    assert client.get("/").status_code == 200
    assert client.get("/test").status_code == 200


def test_health_reports_database_state(client, monkeypatch):
    monkeypatch.setattr(database, "ping", lambda: {"connected": True})
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["database"] == "connected"

    monkeypatch.setattr(database, "ping", lambda: {"connected": False, "error": "timed out"})
    r = client.get("/health")
    assert r.status_code == 503
    assert r.json()["status"] == "degraded"
    assert r.json()["database"] == "disconnected"


def test_large_responses_are_compressed(client, make_product):
    for i in range(20):
        make_product(name=f"Linen Shirt {i}")

    r = client.get("/api/product/list", params={"limit": 20}, headers={"Accept-Encoding": "gzip"})

    assert r.headers["content-encoding"] == "gzip"
    assert len(r.json()["products"]) == 20


def test_small_responses_are_not_compressed(client):
    r = client.get("/", headers={"Accept-Encoding": "gzip"})
    assert "content-encoding" not in r.headers
