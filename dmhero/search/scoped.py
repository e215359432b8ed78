"""
Entity-type listings with search (Players, Lore, NPCs, ...).

Unlike global search these results are not ranked. A listing is the union of

  1. entities of the type that match the query themselves, in store order, and
  2. entities of the type related to a matching entity of some other type
     (e.g. Lore linked to a Player called "Elara"), appended after.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from dmhero.config import SEARCH_MIN_WORD_LENGTH
from dmhero.exceptions import InvalidScopeError, UnknownEntityTypeError
from dmhero.search.backend import EntityStore
from dmhero.search.distance import SCOPED_BANDS, DistanceBands
from dmhero.search.normalize import normalize_text, split_words
from dmhero.search.query import ParsedQuery, QueryTerm, parse_search_query

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScopedSearchPlan:
    """
    How one entity type is listed and searched.

    Attributes:
        entity_type:  entity_types.name of the listed type.
        text_fields:  row fields (besides name) checked by substring.
        cross_types:  other types whose name matches pull in related entities.
        order_by:     listing order, a key of backend.ORDER_CLAUSES.
    """

    entity_type: str
    text_fields: tuple[str, ...] = ("description",)
    cross_types: tuple[str, ...] = ()
    order_by: str = "name"


SEARCH_PLANS: dict[str, ScopedSearchPlan] = {
    "Player": ScopedSearchPlan(
        entity_type="Player",
        text_fields=("description", "metadata"),
        cross_types=("NPC", "Item", "Faction", "Lore", "Location"),
        order_by="name",
    ),
    "Lore": ScopedSearchPlan(
        entity_type="Lore",
        text_fields=("description",),
        cross_types=("Player",),
        order_by="recent",
    ),
    "NPC": ScopedSearchPlan(
        entity_type="NPC",
        cross_types=("Location", "Item", "Faction", "Lore", "Player"),
    ),
    "Item": ScopedSearchPlan(
        entity_type="Item",
        cross_types=("NPC", "Location", "Faction", "Lore", "Player"),
    ),
    "Faction": ScopedSearchPlan(
        entity_type="Faction",
        cross_types=("NPC", "Location", "Item", "Lore", "Player"),
    ),
    "Location": ScopedSearchPlan(
        entity_type="Location",
        cross_types=("NPC", "Item", "Faction", "Lore", "Player"),
    ),
}


def get_plan(entity_type: str) -> ScopedSearchPlan:
    try:
        return SEARCH_PLANS[entity_type]
    except KeyError:
        raise UnknownEntityTypeError(f"No search plan for entity type {entity_type!r}") from None


def matches_entity(
    term: str,
    *,
    name: str | None,
    texts: Iterable[Any] = (),
    bands: DistanceBands = SCOPED_BANDS,
    max_dist: int | None = None,
    min_word_length: int = SEARCH_MIN_WORD_LENGTH,
) -> bool:
    """
    Boolean include/exclude filter against an already-normalized term.

    Matches when the term is a substring of the name or any extra text, when
    the whole (non-empty) name is within the distance band, or when any name
    word of at least min_word_length characters is.
    """
    if not term:
        return False
    limit = bands.max_distance(term) if max_dist is None else max_dist

    name_norm = normalize_text(name)
    if term in name_norm:
        return True
    for text in texts:
        if term in normalize_text(text):
            return True

    if not name_norm:
        return False
    if bands.within(term, name_norm, limit) is not None:
        return True
    return any(
        bands.within(term, word, limit) is not None
        for word in split_words(name_norm, min_word_length)
    )


def matches_query(
    parsed: ParsedQuery,
    *,
    name: str | None,
    texts: Iterable[Any] = (),
    bands: DistanceBands = SCOPED_BANDS,
    min_word_length: int = SEARCH_MIN_WORD_LENGTH,
) -> bool:
    """
    matches_entity for every term of a parsed query, folded with its mode.

    Quoted phrases only match as exact normalized substrings. Excluded terms
    found in the name or texts reject the entity; a query made only of
    exclusions keeps everything else.
    """
    texts = list(texts)
    if parsed.excludes([name, *texts]):
        return False
    if not parsed.terms:
        return True

    def term_matches(term: QueryTerm) -> bool:
        if term.phrase:
            return any(term.text in normalize_text(t) for t in (name, *texts))
        return matches_entity(
            term.text, name=name, texts=texts, bands=bands, min_word_length=min_word_length
        )

    return parsed.combine(term_matches)


def _cross_name_matches(
    parsed: ParsedQuery,
    name: str | None,
    bands: DistanceBands,
    min_word_length: int,
) -> bool:
    """
    Name test for entities of the cross types. A quoted phrase matches a
    name containing every word of the phrase, in any order.
    """

    def term_matches(term: QueryTerm) -> bool:
        if term.phrase:
            name_norm = normalize_text(name)
            return all(word in name_norm for word in term.words)
        return matches_entity(
            term.text, name=name, bands=bands, min_word_length=min_word_length
        )

    return parsed.combine(term_matches)


def _parse_metadata(row: dict[str, Any]) -> dict[str, Any]:
    raw = row.get("metadata")
    if not raw or not isinstance(raw, str):
        return {**row, "metadata": raw or None}
    try:
        return {**row, "metadata": json.loads(raw)}
    except json.JSONDecodeError:
        log.warning("entity %s has unparsable metadata; returning raw text", row.get("id"))
        return row


def _linked_to_matches(
    store: EntityStore,
    plan: ScopedSearchPlan,
    campaign_id: int | str,
    parsed: ParsedQuery,
    bands: DistanceBands,
    min_word_length: int,
) -> set[int]:
    """
    Ids on the far side of any relation touching an entity of a cross type
    whose name matches the query.
    """
    cross_type_ids = [tid for tid in (store.type_id(t) for t in plan.cross_types) if tid]
    if not cross_type_ids or not parsed.terms:
        return set()

    matching_ids = [
        row["id"]
        for row in store.name_rows(cross_type_ids, campaign_id)
        if _cross_name_matches(parsed, row["name"], bands, min_word_length)
    ]
    log.debug(
        "%s search: %d cross-entity matches", plan.entity_type, len(matching_ids)
    )
    if not matching_ids:
        return set()
    return store.related_ids(matching_ids)


def search_entity_type(
    store: EntityStore,
    plan: ScopedSearchPlan | str,
    campaign_id: int | str | None,
    query: str | None = None,
    *,
    bands: DistanceBands = SCOPED_BANDS,
    min_word_length: int = SEARCH_MIN_WORD_LENGTH,
) -> list[dict[str, Any]]:
    """
    List entities of one type, optionally filtered by a search query.

    Raises InvalidScopeError if campaign_id is missing. An empty query returns
    the whole listing. The query may use the operators of
    dmhero.search.query. Metadata JSON is decoded on the way out.
    """
    if campaign_id in (None, ""):
        raise InvalidScopeError("Campaign ID is required")
    if isinstance(plan, str):
        plan = get_plan(plan)

    type_id = store.type_id(plan.entity_type)
    if type_id is None:
        log.info("entity type %s is not configured; returning empty listing", plan.entity_type)
        return []

    rows = store.list_entities(type_id, campaign_id, plan.order_by)
    parsed = parse_search_query(query)
    if parsed.is_empty:
        return [_parse_metadata(r) for r in rows]

    def texts_of(row: dict[str, Any]) -> list[Any]:
        return [row.get(f) for f in plan.text_fields]

    # Phase 1: direct matches, store order.
    results = [
        row
        for row in rows
        if matches_query(
            parsed,
            name=row.get("name"),
            texts=texts_of(row),
            bands=bands,
            min_word_length=min_word_length,
        )
    ]

    # Phase 2: entities linked to matching entities of other types.
    linked_ids = _linked_to_matches(store, plan, campaign_id, parsed, bands, min_word_length)
    present = {row["id"] for row in results}
    extra_ids = linked_ids - present
    if extra_ids:
        results.extend(
            row
            for row in store.entities_by_ids(extra_ids, type_id, campaign_id, plan.order_by)
            if not parsed.excludes([row.get("name"), *texts_of(row)])
        )

    log.debug(
        "%s search %r: %d direct, %d via relations",
        plan.entity_type,
        query,
        len(present),
        len(results) - len(present),
    )
    return [_parse_metadata(r) for r in results]


__all__ = [
    "ScopedSearchPlan",
    "SEARCH_PLANS",
    "get_plan",
    "matches_entity",
    "matches_query",
    "search_entity_type",
]
