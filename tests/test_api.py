# tests/test_api.py
from __future__ import annotations

import logging
from collections.abc import Generator
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from dmhero.api.app import app
from dmhero.config import Settings
from dmhero.search import SqliteEntityStore

# ---------------------------------------------------------------------------
# TestClient fixture
# ---------------------------------------------------------------------------


@pytest.fixture(scope="function")
def api_env(conn, seed) -> Generator[SimpleNamespace, None, None]:
    """
    TestClient wired to the in-memory campaign DB.

    The store is injected through app.state so the app never opens the
    default database file.
    """
    app.state.entity_store = SqliteEntityStore(conn)
    client = TestClient(app)

    cid = seed.campaign()
    elara = seed.entity(cid, "Player", "Elara", description="Half-elf ranger")
    temple = seed.entity(cid, "Lore", "Sunken Temple")
    seed.entity(cid, "Lore", "Elara's Diary")
    seed.entity(cid, "NPC", "Goblin King")
    seed.relate(temple, elara)

    try:
        yield SimpleNamespace(client=client, campaign_id=cid, elara=elara, temple=temple)
    finally:
        app.state.entity_store = None
        app.state.settings = None


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


def test_health(api_env):
    resp = api_env.client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"ok": True}


def test_global_search_returns_ranked_hits(api_env):
    resp = api_env.client.get(
        "/api/search", params={"q": "Elara", "campaignId": api_env.campaign_id}
    )
    assert resp.status_code == 200
    data = resp.json()

    names = [d["name"] for d in data]
    assert names[0] == "Elara"
    assert set(names) == {"Elara", "Elara's Diary", "Sunken Temple"}

    top = data[0]
    assert top["id"] == api_env.elara
    assert top["type"] == "Player"
    assert top["icon"] == "mdi-account-star"
    assert top["description"] == "Half-elf ranger"
    assert top["linkedEntities"] == ["Sunken Temple"]
    assert "score" not in top
    assert "_score" not in top


def test_global_search_without_query_or_campaign_is_empty(api_env):
    client = api_env.client
    assert client.get("/api/search").json() == []
    assert client.get("/api/search", params={"q": "elara"}).json() == []
    assert client.get("/api/search", params={"campaignId": api_env.campaign_id}).json() == []
    assert client.get(
        "/api/search", params={"q": "  ", "campaignId": api_env.campaign_id}
    ).json() == []


def test_global_search_other_campaign_sees_nothing(api_env, seed):
    other = seed.campaign("Other")
    resp = api_env.client.get("/api/search", params={"q": "elara", "campaignId": other})
    assert resp.status_code == 200
    assert resp.json() == []


def test_lore_listing_appends_entries_linked_to_matching_players(api_env):
    resp = api_env.client.get(
        "/api/lore", params={"search": "Elara", "campaignId": api_env.campaign_id}
    )
    assert resp.status_code == 200
    assert [d["name"] for d in resp.json()] == ["Elara's Diary", "Sunken Temple"]


def test_listing_without_search_returns_everything(api_env):
    resp = api_env.client.get("/api/players", params={"campaignId": api_env.campaign_id})
    assert resp.status_code == 200
    rows = resp.json()
    assert [r["name"] for r in rows] == ["Elara"]
    assert rows[0]["image_url"] is None


def test_listing_without_campaign_is_400(api_env):
    resp = api_env.client.get("/api/players", params={"search": "elara"})
    assert resp.status_code == 400
    body = resp.json()
    assert body["error"] == "invalid_scope"
    assert "Campaign ID" in body["detail"]


def test_unknown_collection_is_404(api_env):
    resp = api_env.client.get("/api/dragons", params={"campaignId": api_env.campaign_id})
    assert resp.status_code == 404
    assert resp.json()["error"] == "unknown_collection"


def test_requests_are_logged(api_env, caplog):
    caplog.set_level(logging.INFO, logger="dmhero.api.middleware.request_logging")
    api_env.client.get("/api/search", params={"q": "elara", "campaignId": api_env.campaign_id})
    api_env.client.get("/health")

    messages = [r.getMessage() for r in caplog.records if r.name.endswith("request_logging")]
    assert len(messages) == 1
    assert "/api/search" in messages[0]
    assert "q='elara'" in messages[0]
    assert "-> 200" in messages[0]


def test_listing_uses_app_settings_for_bands(api_env, seed):
    seed.entity(api_env.campaign_id, "Player", "Gandalf")
    params = {"search": "Gandlf", "campaignId": api_env.campaign_id}

    resp = api_env.client.get("/api/players", params=params)
    assert [d["name"] for d in resp.json()] == ["Gandalf"]

    app.state.settings = Settings(scoped_bands=(0, 0, 0))
    resp = api_env.client.get("/api/players", params=params)
    assert resp.status_code == 200
    assert resp.json() == []


def test_global_search_uses_app_settings_for_limit(api_env):
    app.state.settings = Settings(result_limit=1)
    resp = api_env.client.get(
        "/api/search", params={"q": "Elara", "campaignId": api_env.campaign_id}
    )
    assert [d["name"] for d in resp.json()] == ["Elara"]
