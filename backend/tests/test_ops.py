# backend/tests/test_ops.py
def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json().get("ok") is True


def test_root(client):
    r = client.get("/")
    assert r.status_code == 200
    assert r.json()["status"] == "running"


def test_request_id_is_echoed(client):
    r = client.get("/health", headers={"X-Request-ID": "abc123"})
    assert r.headers["X-Request-ID"] == "abc123"
    assert client.get("/health").headers["X-Request-ID"]


def test_ops_status(client):
    r = client.get("/ops/status")
    assert r.status_code == 200
    body = r.json()
    assert body["connections"] == 0
    assert "ollama" in body["providers"]
