from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable, Sequence
from typing import Any, Protocol

from dmhero.db import CORE_ENTITY_TYPES
from dmhero.search.scoring import Candidate

log = logging.getLogger(__name__)

CORE_TYPE_NAMES: tuple[str, ...] = tuple(name for name, _icon, _color in CORE_ENTITY_TYPES)

# Listing orders exposed to callers; never interpolate user input into SQL.
ORDER_CLAUSES: dict[str, str] = {
    "name": "e.name ASC, e.id ASC",
    "recent": "e.updated_at DESC, e.id DESC",
}


def _rows_to_dicts(cursor: sqlite3.Cursor, rows: Sequence[Sequence[Any]]) -> list[dict[str, Any]]:
    cols = [desc[0] for desc in cursor.description]
    return [dict(zip(cols, row, strict=False)) for row in rows]


def _placeholders(values: Sequence[Any]) -> str:
    return ",".join("?" for _ in values)


def _order_clause(order_by: str) -> str:
    try:
        return ORDER_CLAUSES[order_by]
    except KeyError:
        raise ValueError(f"Unsupported order_by value: {order_by!r}") from None


class EntityStore(Protocol):
    """
    Data-access interface the search code depends on.

    Search never issues SQL itself; swapping SQLite for another store only
    needs a new implementation of this protocol.
    """

    def type_id(self, name: str) -> int | None:
        ...

    def neighbors(self, entity_id: int) -> list[dict[str, Any]]:
        """
        Entities one relation hop away from entity_id, in either direction.
        Each item is {"id", "name", "type"}.
        """
        ...

    def load_candidates(self, campaign_id: int | str) -> list[Candidate]:
        ...

    def list_entities(
        self, type_id: int, campaign_id: int | str, order_by: str = "name"
    ) -> list[dict[str, Any]]:
        ...

    def entities_by_ids(
        self,
        ids: Iterable[int],
        type_id: int,
        campaign_id: int | str,
        order_by: str = "name",
    ) -> list[dict[str, Any]]:
        ...

    def name_rows(self, type_ids: Iterable[int], campaign_id: int | str) -> list[dict[str, Any]]:
        ...

    def related_ids(self, entity_ids: Iterable[int]) -> set[int]:
        ...


class SqliteEntityStore:
    """
    EntityStore backed by the campaign SQLite database.

    Soft-deleted entities (deleted_at IS NOT NULL) are invisible everywhere,
    including as relation neighbours.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    @property
    def conn(self) -> sqlite3.Connection:
        return self._conn

    def type_id(self, name: str) -> int | None:
        row = self._conn.execute("SELECT id FROM entity_types WHERE name = ?", (name,)).fetchone()
        return int(row[0]) if row else None

    def neighbors(self, entity_id: int) -> list[dict[str, Any]]:
        cur = self._conn.execute(
            """
            SELECT r.id AS relation_id, x.id AS id, x.name AS name, et.name AS type
            FROM entity_relations AS r
            JOIN entities AS x
              ON x.id = r.to_entity_id AND x.deleted_at IS NULL
            JOIN entity_types AS et
              ON et.id = x.type_id
            WHERE r.from_entity_id = :id
            UNION ALL
            SELECT r.id AS relation_id, x.id AS id, x.name AS name, et.name AS type
            FROM entity_relations AS r
            JOIN entities AS x
              ON x.id = r.from_entity_id AND x.deleted_at IS NULL
            JOIN entity_types AS et
              ON et.id = x.type_id
            WHERE r.to_entity_id = :id
            ORDER BY relation_id
            """,
            {"id": entity_id},
        )
        out: list[dict[str, Any]] = []
        seen: set[int] = set()
        for row in _rows_to_dicts(cur, cur.fetchall()):
            if row["id"] in seen or row["id"] == entity_id:
                continue
            seen.add(row["id"])
            out.append({"id": row["id"], "name": row["name"], "type": row["type"]})
        return out

    def _linked_names(self, entity_id: int, entity_type: str) -> tuple[str, ...]:
        """
        Names of core-type neighbours of a different type, grouped by the
        core type order (NPC, Location, Item, Faction, Lore, Player).
        """
        if entity_type not in CORE_TYPE_NAMES:
            return ()
        rank = {name: i for i, name in enumerate(CORE_TYPE_NAMES)}
        linked = [
            n
            for n in self.neighbors(entity_id)
            if n["type"] in rank and n["type"] != entity_type and n["name"]
        ]
        linked.sort(key=lambda n: rank[n["type"]])
        return tuple(n["name"] for n in linked)

    def load_candidates(self, campaign_id: int | str) -> list[Candidate]:
        cur = self._conn.execute(
            """
            SELECT
              e.id AS id,
              e.name AS name,
              e.description AS description,
              et.name AS type,
              et.icon AS icon,
              et.color AS color
            FROM entities AS e
            JOIN entity_types AS et
              ON et.id = e.type_id
            WHERE e.campaign_id = ?
              AND e.deleted_at IS NULL
            ORDER BY et.id, e.id
            """,
            (campaign_id,),
        )
        rows = _rows_to_dicts(cur, cur.fetchall())
        candidates = [
            Candidate(
                id=row["id"],
                name=row["name"],
                description=row["description"],
                entity_type=row["type"],
                icon=row["icon"],
                color=row["color"],
                linked_entities=self._linked_names(row["id"], row["type"]),
            )
            for row in rows
        ]
        log.debug("loaded %d candidates for campaign %s", len(candidates), campaign_id)
        return candidates

    def list_entities(
        self, type_id: int, campaign_id: int | str, order_by: str = "name"
    ) -> list[dict[str, Any]]:
        cur = self._conn.execute(
            f"""
            SELECT
              e.id, e.name, e.description, e.metadata, e.created_at, e.updated_at,
              ei.image_url
            FROM entities AS e
            LEFT JOIN (
              SELECT entity_id, MIN(image_url) AS image_url
              FROM entity_images
              WHERE is_primary = 1
              GROUP BY entity_id
            ) AS ei
              ON ei.entity_id = e.id
            WHERE e.type_id = ?
              AND e.campaign_id = ?
              AND e.deleted_at IS NULL
            ORDER BY {_order_clause(order_by)}
            """,
            (type_id, campaign_id),
        )
        return _rows_to_dicts(cur, cur.fetchall())

    def entities_by_ids(
        self,
        ids: Iterable[int],
        type_id: int,
        campaign_id: int | str,
        order_by: str = "name",
    ) -> list[dict[str, Any]]:
        id_list = sorted(set(ids))
        if not id_list:
            return []
        cur = self._conn.execute(
            f"""
            SELECT
              e.id, e.name, e.description, e.metadata, e.created_at, e.updated_at,
              ei.image_url
            FROM entities AS e
            LEFT JOIN (
              SELECT entity_id, MIN(image_url) AS image_url
              FROM entity_images
              WHERE is_primary = 1
              GROUP BY entity_id
            ) AS ei
              ON ei.entity_id = e.id
            WHERE e.id IN ({_placeholders(id_list)})
              AND e.type_id = ?
              AND e.campaign_id = ?
              AND e.deleted_at IS NULL
            ORDER BY {_order_clause(order_by)}
            """,
            (*id_list, type_id, campaign_id),
        )
        return _rows_to_dicts(cur, cur.fetchall())

    def name_rows(self, type_ids: Iterable[int], campaign_id: int | str) -> list[dict[str, Any]]:
        type_list = list(type_ids)
        if not type_list:
            return []
        cur = self._conn.execute(
            f"""
            SELECT id, name, type_id
            FROM entities
            WHERE type_id IN ({_placeholders(type_list)})
              AND campaign_id = ?
              AND deleted_at IS NULL
            ORDER BY id
            """,
            (*type_list, campaign_id),
        )
        return _rows_to_dicts(cur, cur.fetchall())

    def related_ids(self, entity_ids: Iterable[int]) -> set[int]:
        id_list = sorted(set(entity_ids))
        if not id_list:
            return set()
        marks = _placeholders(id_list)
        cur = self._conn.execute(
            f"""
            SELECT from_entity_id, to_entity_id
            FROM entity_relations
            WHERE from_entity_id IN ({marks}) OR to_entity_id IN ({marks})
            """,
            (*id_list, *id_list),
        )
        wanted = set(id_list)
        out: set[int] = set()
        for from_id, to_id in cur.fetchall():
            if from_id in wanted:
                out.add(int(to_id))
            if to_id in wanted:
                out.add(int(from_id))
        return out


__all__ = [
    "CORE_TYPE_NAMES",
    "ORDER_CLAUSES",
    "EntityStore",
    "SqliteEntityStore",
]
