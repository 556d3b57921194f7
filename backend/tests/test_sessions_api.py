# backend/tests/test_sessions_api.py
from services.session_store import make_question_answer


def _seed(store, n=2):
    ids = []
    for i in range(n):
        s = store.create()
        store.append(s.id, make_question_answer(question=f"Question {i}, please", answer="Answer", provider="ollama"))
        ids.append(s.id)
    return ids


def test_list_newest_first(client, store):
    ids = _seed(store, 3)
    r = client.get("/sessions", params={"limit": 2})
    assert r.status_code == 200
    assert [s["id"] for s in r.json()] == [ids[2], ids[1]]


def test_get_and_404(client, store):
    (sid,) = _seed(store, 1)
    r = client.get(f"/sessions/{sid}")
    assert r.status_code == 200
    assert r.json()["questions"][0]["provider"] == "ollama"

    r = client.get("/sessions/does-not-exist")
    assert r.status_code == 404


def test_delete_one_and_clear(client, store):
    a, b = _seed(store, 2)
    assert client.delete(f"/sessions/{a}").status_code == 200
    assert client.delete(f"/sessions/{a}").status_code == 404
    assert store.get(b) is not None

    r = client.delete("/sessions")
    assert r.json().get("ok") is True
    assert len(store) == 0


def test_export_csv_attachment(client, store):
    _seed(store, 1)
    r = client.get("/sessions/export", params={"format": "csv"})
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/csv")
    assert 'filename="interview-sessions-' in r.headers["content-disposition"]
    assert '"Question 0, please"' in r.text


def test_export_rejects_unknown_format(client):
    r = client.get("/sessions/export", params={"format": "xml"})
    assert r.status_code == 422
