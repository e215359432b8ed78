# dmhero/search/__init__.py
"""
Fuzzy, relevance-scored entity search for campaigns.

Global search (`search_entities`) ranks every entity of a campaign by a
first-match-wins signal cascade. Typed listings (`search_entity_type`) filter
one entity type and append entities related to matches of other types.
Both accept the query operators of `parse_search_query` (AND, OR, NOT and
"quoted phrases").

Both read through an `EntityStore`; `SqliteEntityStore` is the only
implementation today.
"""

from .backend import EntityStore, SqliteEntityStore
from .distance import GLOBAL_BANDS, SCOPED_BANDS, DistanceBands, levenshtein
from .normalize import normalize_text
from .query import ParsedQuery, QueryTerm, parse_search_query
from .scoped import (
    SEARCH_PLANS,
    ScopedSearchPlan,
    matches_entity,
    matches_query,
    search_entity_type,
)
from .scoring import (
    Candidate,
    ScoringWeights,
    SearchHit,
    rank_candidates,
    score_candidate,
    score_query,
    search_entities,
)

__all__ = [
    "Candidate",
    "DistanceBands",
    "EntityStore",
    "GLOBAL_BANDS",
    "ParsedQuery",
    "QueryTerm",
    "SCOPED_BANDS",
    "SEARCH_PLANS",
    "ScopedSearchPlan",
    "ScoringWeights",
    "SearchHit",
    "SqliteEntityStore",
    "levenshtein",
    "matches_entity",
    "matches_query",
    "normalize_text",
    "parse_search_query",
    "rank_candidates",
    "score_candidate",
    "score_query",
    "search_entities",
    "search_entity_type",
]
