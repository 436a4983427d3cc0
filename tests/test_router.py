import pytest
from fastapi.testclient import TestClient

from main import app


@pytest.fixture
def client(store):
    # No `with` block: the lifespan (and its Postgres pool) stays off.
    return TestClient(app)


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_only_badge_routes_and_health_are_served(client):
    assert client.get("/").status_code == 404


def test_create_badge(client, badge_payload):
    resp = client.post("/badges", json=badge_payload)

    assert resp.status_code == 201
    body = resp.json()["badge"]
    assert body["slug"] == "first-aid"
    assert body["criteria"] == []
    assert "imageUrl" not in body


def test_create_badge_rejects_invalid_payload(client, store, badge_payload):
    badge_payload["unique"] = "perhaps"
    del badge_payload["name"]

    resp = client.post("/badges", json=badge_payload)

    assert resp.status_code == 400
    fields = {e["field"] for e in resp.json()["detail"]["errors"]}
    assert fields == {"name", "unique"}
    assert store.all("badges") == []


def test_get_missing_badge_is_404(client):
    assert client.get("/badges/123").status_code == 404


def test_update_badge_merges_payload(client, badge):
    resp = client.put(f"/badges/{badge['id']}", json={"name": "Advanced First Aid"})

    assert resp.status_code == 200
    body = resp.json()["badge"]
    assert body["name"] == "Advanced First Aid"
    assert body["slug"] == "first-aid"


def test_set_criteria_endpoint(client, store, badge):
    store.seed("criteria", {"badgeId": badge["id"], "description": "old"})

    resp = client.put(
        f"/badges/{badge['id']}/criteria",
        json={"criteria": [{"description": "Attend the course", "required": "true"}]},
    )

    assert resp.status_code == 200
    criteria = resp.json()["badge"]["criteria"]
    assert [(c["description"], c["required"]) for c in criteria] == [("Attend the course", True)]


def test_set_categories_and_tags_endpoints(client, badge):
    resp = client.put(f"/badges/{badge['id']}/categories", json={"categories": ["a", "a", "", "b"]})
    assert resp.json()["badge"]["categories"] == ["a", "b"]

    resp = client.put(f"/badges/{badge['id']}/tags", json={"tags": [{"value": "lab"}, "lab", "field"]})
    assert [t["value"] for t in resp.json()["badge"]["tags"]] == ["lab", "field"]

    resp = client.put(f"/badges/{badge['id']}/tags", json={"tags": "solo"})
    assert [t["value"] for t in resp.json()["badge"]["tags"]] == ["solo"]


def test_children_of_missing_badge_are_404(client, store):
    resp = client.put("/badges/77/categories", json={"categories": ["a"]})

    assert resp.status_code == 404
    assert store.all("categories") == []


def test_delete_badge(client, store, badge):
    store.seed("criteria", {"badgeId": badge["id"], "description": "x"})

    resp = client.delete(f"/badges/{badge['id']}")

    assert resp.status_code == 200
    assert resp.json()["deleted"]["criteria"] == 1
    assert client.get(f"/badges/{badge['id']}").status_code == 404


def test_store_failures_are_500(client, store, badge):
    store.fail = lambda op, table, values: op == "delete"

    resp = client.put(f"/badges/{badge['id']}/categories", json={"categories": ["a"]})

    assert resp.status_code == 500


def test_list_badges(client, store, badge, badge_payload):
    store.seed("badges", {**badge_payload, "slug": "retired", "archived": True})

    body = client.get("/badges", params={"archived": "false"}).json()

    assert body["count"] == 1
    assert body["badges"][0]["slug"] == "first-aid"
