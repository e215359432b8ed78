# dmhero/db.py
import logging
import sqlite3
from pathlib import Path

from dmhero.config import load_settings

log = logging.getLogger(__name__)

# -------------------- schema --------------------

CORE_ENTITY_TYPES: list[tuple[str, str, str]] = [
    ("NPC", "mdi-account", "#4CAF50"),
    ("Location", "mdi-map-marker", "#2196F3"),
    ("Item", "mdi-sword", "#FF9800"),
    ("Faction", "mdi-shield", "#9C27B0"),
    ("Lore", "mdi-book-open-variant", "#795548"),
    ("Player", "mdi-account-star", "#E91E63"),
]

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS campaigns (
  id INTEGER PRIMARY KEY,
  name TEXT NOT NULL,
  created_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS entity_types (
  id INTEGER PRIMARY KEY,
  name TEXT NOT NULL UNIQUE,
  icon TEXT,
  color TEXT
);

CREATE TABLE IF NOT EXISTS entities (
  id INTEGER PRIMARY KEY,
  campaign_id INTEGER NOT NULL REFERENCES campaigns(id) ON DELETE CASCADE,
  type_id INTEGER NOT NULL REFERENCES entity_types(id),
  name TEXT NOT NULL,
  description TEXT,
  metadata TEXT,
  created_at TEXT DEFAULT CURRENT_TIMESTAMP,
  updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
  deleted_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_entities_campaign_type
  ON entities(campaign_id, type_id);

CREATE TABLE IF NOT EXISTS entity_relations (
  id INTEGER PRIMARY KEY,
  from_entity_id INTEGER NOT NULL REFERENCES entities(id) ON DELETE CASCADE,
  to_entity_id INTEGER NOT NULL REFERENCES entities(id) ON DELETE CASCADE,
  relation_type TEXT,
  created_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_entity_relations_from ON entity_relations(from_entity_id);
CREATE INDEX IF NOT EXISTS idx_entity_relations_to ON entity_relations(to_entity_id);

CREATE TABLE IF NOT EXISTS entity_images (
  id INTEGER PRIMARY KEY,
  entity_id INTEGER NOT NULL REFERENCES entities(id) ON DELETE CASCADE,
  image_url TEXT NOT NULL,
  is_primary INTEGER NOT NULL DEFAULT 0
);
"""

# -------------------- basics --------------------


def _db_path() -> str:
    # DMHERO_DB_URL, then DMHERO_DB_PATH, then dev.db at the project root
    return load_settings().database_path()


def get_connection(db_path: str | None = None, *, check_same_thread: bool = True) -> sqlite3.Connection:
    """
    Shared SQLite connection helper for the API, CLI and scripts.

    - If db_path is None, uses Settings.database_path() (DMHERO_DB_URL /
      DMHERO_DB_PATH / dev.db at the project root).
    - Ensures foreign key enforcement.
    - Sets row_factory to sqlite3.Row for dict-like access.
    """
    if db_path is None:
        db_path = _db_path()
    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    con = sqlite3.connect(db_path, check_same_thread=check_same_thread)
    con.row_factory = sqlite3.Row
    con.execute("PRAGMA foreign_keys=ON")
    return con


def apply_schema(con: sqlite3.Connection, *, seed_types: bool = True) -> None:
    """
    Create tables and indexes if missing. Idempotent.

    When seed_types is set, the core entity types are inserted (existing
    rows with the same name are left alone).
    """
    con.executescript(SCHEMA_SQL)
    if seed_types:
        con.executemany(
            "INSERT OR IGNORE INTO entity_types(name, icon, color) VALUES (?, ?, ?)",
            CORE_ENTITY_TYPES,
        )
    con.commit()
    log.debug("schema applied (seed_types=%s)", seed_types)


__all__ = [
    "CORE_ENTITY_TYPES",
    "SCHEMA_SQL",
    "apply_schema",
    "get_connection",
]
