# ruff: noqa: E402
# tests/conftest.py
from __future__ import annotations

import sqlite3
import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

# Ensure project root importable
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from dmhero.db import apply_schema, get_connection
from dmhero.search import SqliteEntityStore


class Seeder:
    """Small helper for inserting campaigns, entities and relations."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def campaign(self, name: str = "Test Campaign") -> int:
        cur = self.conn.execute("INSERT INTO campaigns(name) VALUES (?)", (name,))
        self.conn.commit()
        return int(cur.lastrowid)

    def type_id(self, type_name: str) -> int:
        row = self.conn.execute(
            "SELECT id FROM entity_types WHERE name = ?", (type_name,)
        ).fetchone()
        if row is None:
            cur = self.conn.execute(
                "INSERT INTO entity_types(name, icon, color) VALUES (?, ?, ?)",
                (type_name, "mdi-help", "#000000"),
            )
            return int(cur.lastrowid)
        return int(row[0])

    def entity(
        self,
        campaign_id: int,
        type_name: str,
        name: str,
        *,
        description: str | None = None,
        metadata: str | None = None,
        updated_at: str | None = None,
        deleted: bool = False,
    ) -> int:
        cur = self.conn.execute(
            """
            INSERT INTO entities (
              campaign_id, type_id, name, description, metadata, updated_at, deleted_at
            )
            VALUES (?, ?, ?, ?, ?, COALESCE(?, CURRENT_TIMESTAMP), ?)
            """,
            (
                campaign_id,
                self.type_id(type_name),
                name,
                description,
                metadata,
                updated_at,
                "2024-01-01T00:00:00Z" if deleted else None,
            ),
        )
        self.conn.commit()
        return int(cur.lastrowid)

    def relate(self, from_id: int, to_id: int, relation_type: str = "related") -> None:
        self.conn.execute(
            """
            INSERT INTO entity_relations (from_entity_id, to_entity_id, relation_type)
            VALUES (?, ?, ?)
            """,
            (from_id, to_id, relation_type),
        )
        self.conn.commit()

    def image(self, entity_id: int, url: str, *, primary: bool = True) -> None:
        self.conn.execute(
            "INSERT INTO entity_images (entity_id, image_url, is_primary) VALUES (?, ?, ?)",
            (entity_id, url, 1 if primary else 0),
        )
        self.conn.commit()


@pytest.fixture
def conn() -> Iterator[sqlite3.Connection]:
    """
    Fresh in-memory campaign DB with the schema and core entity types.

    check_same_thread=False so the FastAPI TestClient (which runs the app in
    a worker thread) can share it.
    """
    connection = get_connection(":memory:", check_same_thread=False)
    apply_schema(connection)
    yield connection
    connection.close()


@pytest.fixture
def seed(conn: sqlite3.Connection) -> Seeder:
    return Seeder(conn)


@pytest.fixture
def store(conn: sqlite3.Connection) -> SqliteEntityStore:
    return SqliteEntityStore(conn)
