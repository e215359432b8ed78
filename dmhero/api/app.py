from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse

from dmhero.api.middleware.request_logging import RequestLoggingMiddleware
from dmhero.config import Settings, load_settings, settings
from dmhero.exceptions import InvalidScopeError
from dmhero.search import (
    DistanceBands,
    EntityStore,
    ScoringWeights,
    SqliteEntityStore,
    search_entities,
    search_entity_type,
)

log = logging.getLogger(__name__)

# URL collection -> entity_types.name
COLLECTIONS: dict[str, str] = {
    "players": "Player",
    "lore": "Lore",
    "npcs": "NPC",
    "items": "Item",
    "factions": "Faction",
    "locations": "Location",
}


@asynccontextmanager
async def lifespan(_app: FastAPI):
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=settings.LOG_LEVEL,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
    yield
    store = getattr(_app.state, "entity_store", None)
    if isinstance(store, SqliteEntityStore):
        store.conn.close()


app = FastAPI(title="DM Hero Search API", lifespan=lifespan)
app.add_middleware(RequestLoggingMiddleware)


def _error_response(status_code: int, error: str, detail: str) -> JSONResponse:
    """
    Helper to return a JSON error payload with a consistent shape.

    Example:
        { "error": "invalid_scope", "detail": "Campaign ID is required" }
    """
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "detail": detail},
    )


def _get_settings(request: Request) -> Settings:
    """
    Settings snapshot for this app, read once and cached on app.state.

    Tests inject their own by setting app.state.settings.
    """
    current: Settings | None = getattr(request.app.state, "settings", None)
    if current is None:
        current = load_settings()
        request.app.state.settings = current
    return current


def _get_entity_store(request: Request) -> EntityStore:
    """
    Lazily construct and cache a SqliteEntityStore on app.state.

    Tests inject their own store by setting app.state.entity_store.
    """
    store: EntityStore | None = getattr(request.app.state, "entity_store", None)
    if store is not None:
        return store

    # Import here so tests can patch the module before the first request.
    from dmhero.db import get_connection

    db_path = _get_settings(request).database_path()
    conn = get_connection(db_path, check_same_thread=False)
    store = SqliteEntityStore(conn)
    request.app.state.entity_store = store
    log.info("opened entity store at %s", db_path)
    return store


@app.get("/health")
async def health():
    return {"ok": True}


@app.get("/api/search")
async def global_search(
    request: Request,
    q: str | None = None,
    campaign_id: str | None = Query(default=None, alias="campaignId"),
) -> list[dict[str, Any]]:
    """
    Search every entity type of a campaign, best match first (max 20).

    Missing q or campaignId returns an empty list: the search box calls this
    on every keystroke and an empty box is not an error.
    """
    if not q or not campaign_id:
        return []
    store = _get_entity_store(request)
    cfg = _get_settings(request)
    hits = search_entities(
        store,
        q.strip(),
        campaign_id,
        bands=DistanceBands.from_tuple(cfg.global_bands),
        weights=ScoringWeights.from_settings(cfg),
    )
    return [hit.to_dict() for hit in hits]


@app.get("/api/{collection}")
async def list_collection(
    request: Request,
    collection: str,
    search: str | None = None,
    campaign_id: str | None = Query(default=None, alias="campaignId"),
):
    """
    List entities of one type, optionally filtered by `search`.

    Direct matches come first in listing order, followed by entities related
    to matching entities of other types.
    """
    entity_type = COLLECTIONS.get(collection)
    if entity_type is None:
        return _error_response(404, "unknown_collection", f"Unknown collection: {collection}")

    store = _get_entity_store(request)
    cfg = _get_settings(request)
    try:
        return search_entity_type(
            store,
            entity_type,
            campaign_id,
            search,
            bands=DistanceBands.from_tuple(cfg.scoped_bands),
            min_word_length=cfg.min_word_length,
        )
    except InvalidScopeError as exc:
        return _error_response(400, "invalid_scope", str(exc))
