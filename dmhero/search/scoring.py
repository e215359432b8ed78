from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from dmhero.config import (
    SEARCH_LINKED_DISPLAY_LIMIT,
    SEARCH_MIN_WORD_LENGTH,
    SEARCH_RESULT_LIMIT,
    SEARCH_SCORE_CEILING,
    SEARCH_TRACE,
)
from dmhero.search.distance import GLOBAL_BANDS, DistanceBands
from dmhero.search.normalize import normalize_text, split_words
from dmhero.search.query import MODE_OR, ParsedQuery, parse_search_query

if TYPE_CHECKING:
    from dmhero.config import Settings
    from dmhero.search.backend import EntityStore

log = logging.getLogger(__name__)

# Linked names arrive GROUP_CONCAT'ed with "|"; older rows used ",".
_LINKED_SPLIT_RE = re.compile(r"[|,]")


@dataclass(frozen=True)
class Candidate:
    """
    An entity under consideration for a search result.

    Attributes:
        linked_entities:
            Names of entities one relation hop away (either direction), in
            store order. Used for cross-entity matching and for display.
        extra:
            Display-only fields passed through to the payload untouched.
    """

    id: int
    name: str | None
    description: str | None = None
    entity_type: str = ""
    icon: str | None = None
    color: str | None = None
    linked_entities: tuple[str, ...] = ()
    extra: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ScoringWeights:
    """
    Score ceiling and per-signal bonuses. Lower final score ranks higher.

    Fuzzy bonuses are (base, per_edit) pairs: bonus = base - per_edit * distance.
    result_limit=None disables truncation.
    """

    ceiling: int = SEARCH_SCORE_CEILING
    exact: int = 500
    name_substring: int = 200
    description_substring: int = 50
    linked_substring: int = 100
    name_fuzzy: tuple[int, int] = (100, 10)
    name_word_fuzzy: tuple[int, int] = (90, 10)
    description_word_fuzzy: tuple[int, int] = (50, 5)
    linked_word_fuzzy: tuple[int, int] = (80, 8)
    min_word_length: int = SEARCH_MIN_WORD_LENGTH
    result_limit: int | None = SEARCH_RESULT_LIMIT
    linked_display_limit: int = SEARCH_LINKED_DISPLAY_LIMIT

    @classmethod
    def from_settings(cls, s: Settings) -> ScoringWeights:
        return cls(
            ceiling=s.score_ceiling,
            min_word_length=s.min_word_length,
            result_limit=s.result_limit,
            linked_display_limit=s.linked_display_limit,
        )


DEFAULT_WEIGHTS = ScoringWeights()


@dataclass
class ScoredCandidate:
    candidate: Candidate
    score: int
    signal: str


@dataclass
class SearchHit:
    """
    Public search result: the original candidate plus a cleaned, capped list
    of linked entity names for display. Scores never leave the ranker.
    """

    candidate: Candidate
    linked_entities: list[str]

    def to_dict(self) -> dict[str, Any]:
        c = self.candidate
        payload: dict[str, Any] = dict(c.extra)
        payload.update(
            {
                "id": c.id,
                "name": c.name,
                "description": c.description,
                "type": c.entity_type,
                "icon": c.icon,
                "color": c.color,
                "linkedEntities": list(self.linked_entities),
            }
        )
        return payload


class _MatchContext:
    """
    Normalized views of one candidate for one search term. Word lists are
    built lazily since most candidates exit the cascade early.
    """

    def __init__(
        self,
        term: str,
        candidate: Candidate,
        max_dist: int,
        bands: DistanceBands,
        weights: ScoringWeights,
    ) -> None:
        self.term = term
        self.max_dist = max_dist
        self.bands = bands
        self.weights = weights
        self.name = normalize_text(candidate.name)
        self.description = normalize_text(candidate.description)
        self.linked = normalize_text("|".join(candidate.linked_entities))

    def distance(self, other: str) -> int | None:
        return self.bands.within(self.term, other, self.max_dist)

    def first_word_distance(self, words: Iterable[str]) -> int | None:
        for word in words:
            dist = self.distance(word)
            if dist is not None:
                return dist
        return None

    def linked_words(self) -> Iterable[str]:
        if not self.linked:
            return
        for linked_name in _LINKED_SPLIT_RE.split(self.linked):
            yield from split_words(linked_name.strip())


def _fuzzy_bonus(pair: tuple[int, int], dist: int) -> int:
    base, per_edit = pair
    return max(base - per_edit * dist, 0)


def _exact(ctx: _MatchContext) -> int | None:
    return ctx.weights.exact if ctx.name == ctx.term else None


def _name_substring(ctx: _MatchContext) -> int | None:
    return ctx.weights.name_substring if ctx.term in ctx.name else None


def _description_substring(ctx: _MatchContext) -> int | None:
    return ctx.weights.description_substring if ctx.term in ctx.description else None


def _linked_substring(ctx: _MatchContext) -> int | None:
    return ctx.weights.linked_substring if ctx.term in ctx.linked else None


def _name_fuzzy(ctx: _MatchContext) -> int | None:
    # An empty name is len(term) edits away from any term; never a name match.
    if not ctx.name:
        return None
    dist = ctx.distance(ctx.name)
    return None if dist is None else _fuzzy_bonus(ctx.weights.name_fuzzy, dist)


def _name_word_fuzzy(ctx: _MatchContext) -> int | None:
    words = split_words(ctx.name, ctx.weights.min_word_length)
    dist = ctx.first_word_distance(words)
    return None if dist is None else _fuzzy_bonus(ctx.weights.name_word_fuzzy, dist)


def _description_word_fuzzy(ctx: _MatchContext) -> int | None:
    words = split_words(ctx.description, ctx.weights.min_word_length)
    dist = ctx.first_word_distance(words)
    return None if dist is None else _fuzzy_bonus(ctx.weights.description_word_fuzzy, dist)


def _linked_word_fuzzy(ctx: _MatchContext) -> int | None:
    dist = ctx.first_word_distance(ctx.linked_words())
    return None if dist is None else _fuzzy_bonus(ctx.weights.linked_word_fuzzy, dist)


Signal = Callable[[_MatchContext], "int | None"]

# First match wins; signals are never summed.
SIGNAL_PRIORITY_ORDER: tuple[tuple[str, Signal], ...] = (
    ("exact", _exact),
    ("name_substring", _name_substring),
    ("description_substring", _description_substring),
    ("linked_substring", _linked_substring),
    ("name_fuzzy", _name_fuzzy),
    ("name_word_fuzzy", _name_word_fuzzy),
    ("description_word_fuzzy", _description_word_fuzzy),
    ("linked_word_fuzzy", _linked_word_fuzzy),
)

# Signals that do not tolerate typos.
EXACT_SIGNALS = frozenset(
    {"exact", "name_substring", "description_substring", "linked_substring"}
)


def score_candidate(
    term: str,
    candidate: Candidate,
    *,
    bands: DistanceBands = GLOBAL_BANDS,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
    max_dist: int | None = None,
    fuzzy: bool = True,
) -> ScoredCandidate | None:
    """
    Run the signal cascade for one candidate against an already-normalized
    term. Returns None when no signal matches.

    fuzzy=False limits the cascade to the exact and substring signals
    (quoted phrases).
    """
    if not term:
        return None
    limit = bands.max_distance(term) if max_dist is None else max_dist
    ctx = _MatchContext(term, candidate, limit, bands, weights)
    for signal_name, signal in SIGNAL_PRIORITY_ORDER:
        if not fuzzy and signal_name not in EXACT_SIGNALS:
            continue
        bonus = signal(ctx)
        if bonus is not None:
            return ScoredCandidate(
                candidate=candidate,
                score=weights.ceiling - bonus,
                signal=signal_name,
            )
    return None


def score_query(
    parsed: ParsedQuery,
    candidate: Candidate,
    *,
    bands: DistanceBands = GLOBAL_BANDS,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> ScoredCandidate | None:
    """
    Score a candidate against a parsed query.

    Each term runs its own cascade. AND keeps the weakest term score (every
    term has to match), OR keeps the strongest. Excluded terms found in the
    name or description drop the candidate.
    """
    if not parsed.terms:
        return None
    if parsed.excludes((candidate.name, candidate.description)):
        return None

    hits: list[ScoredCandidate] = []
    for term in parsed.terms:
        hit = score_candidate(
            term.text, candidate, bands=bands, weights=weights, fuzzy=not term.phrase
        )
        if hit is not None:
            hits.append(hit)
        elif parsed.mode != MODE_OR:
            return None

    if not hits:
        return None
    if parsed.mode == MODE_OR:
        return min(hits, key=lambda h: h.score)
    return max(hits, key=lambda h: h.score)


def clean_linked_names(linked: Iterable[str | None], limit: int | None) -> list[str]:
    """
    Split raw linked names on "|" / ",", trim, drop empties and duplicates
    (first occurrence wins), then cap at limit.
    """
    out: list[str] = []
    seen: set[str] = set()
    for raw in linked:
        if not raw:
            continue
        for name in _LINKED_SPLIT_RE.split(raw):
            name = name.strip()
            if name and name not in seen:
                seen.add(name)
                out.append(name)
    return out if limit is None else out[:limit]


def rank_candidates(
    query: str | None,
    candidates: Sequence[Candidate],
    *,
    bands: DistanceBands = GLOBAL_BANDS,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> list[SearchHit]:
    """
    Score, sort (ascending, stable) and truncate candidates for a raw query.

    Empty or whitespace-only queries return [] without touching candidates.
    """
    parsed = parse_search_query(query)
    if not parsed.terms:
        return []

    term = " ".join(t.text for t in parsed.terms)
    scored: list[ScoredCandidate] = []
    for candidate in candidates:
        hit = score_query(parsed, candidate, bands=bands, weights=weights)
        if hit is None:
            continue
        if SEARCH_TRACE:
            log.debug(
                "search %r: %s #%s scored %d via %s",
                term,
                candidate.entity_type,
                candidate.id,
                hit.score,
                hit.signal,
            )
        scored.append(hit)

    # list.sort is stable: equal scores keep candidate order.
    scored.sort(key=lambda s: s.score)
    if weights.result_limit is not None:
        scored = scored[: weights.result_limit]

    log.debug(
        "search %r (%s): %d of %d candidates kept",
        term,
        parsed.mode,
        len(scored),
        len(candidates),
    )
    return [
        SearchHit(
            candidate=s.candidate,
            linked_entities=clean_linked_names(
                s.candidate.linked_entities, weights.linked_display_limit
            ),
        )
        for s in scored
    ]


def search_entities(
    store: EntityStore,
    query: str | None,
    campaign_id: int | str | None,
    *,
    bands: DistanceBands = GLOBAL_BANDS,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> list[SearchHit]:
    """
    Global search across every entity type of a campaign.

    A missing query or campaign yields [] rather than an error, matching the
    behaviour of the search box (it fires on every keystroke).
    """
    if not query or not query.strip() or campaign_id in (None, ""):
        return []
    candidates = store.load_candidates(campaign_id)
    return rank_candidates(query, candidates, bands=bands, weights=weights)


__all__ = [
    "Candidate",
    "ScoringWeights",
    "DEFAULT_WEIGHTS",
    "ScoredCandidate",
    "SearchHit",
    "SIGNAL_PRIORITY_ORDER",
    "score_candidate",
    "score_query",
    "clean_linked_names",
    "rank_candidates",
    "search_entities",
]
