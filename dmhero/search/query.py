# dmhero/search/query.py
"""
Search query operators.

    goblin king              plain query, matched as one term (fuzzy)
    "bernhard von berg"      quoted phrase, exact normalized substring only
    elf AND ranger           both terms must match   (also: elf + ranger)
    elf OR dwarf             either term may match   (also: elf | dwarf)
    goblin NOT king          exclude entities mentioning "king"
                             (also: goblin - king, goblin -king)

Operators are standalone, case-insensitive tokens. Mixed AND/OR queries are
evaluated as AND. Terms are normalized with normalize_text, so operators and
phrases are accent- and case-insensitive like the rest of search.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from dmhero.search.normalize import normalize_text, split_words

AND_TOKENS = frozenset({"AND", "+"})
OR_TOKENS = frozenset({"OR", "|"})
NOT_TOKENS = frozenset({"NOT", "-"})

# Whitespace-separated tokens, keeping "quoted phrases" together.
_TOKEN_RE = re.compile(r'(?:[^\s"]+|"[^"]*")+')

MODE_SIMPLE = "simple"
MODE_AND = "and"
MODE_OR = "or"


@dataclass(frozen=True)
class QueryTerm:
    text: str
    phrase: bool = False

    @property
    def words(self) -> list[str]:
        return split_words(self.text)


@dataclass(frozen=True)
class ParsedQuery:
    """
    Normalized query terms plus how to combine them.

    Attributes:
        terms:     terms an entity must match (all for "and", any for "or").
        excluded:  terms that disqualify an entity when found in its text.
        mode:      "simple" (no operators), "and" or "or".
    """

    terms: tuple[QueryTerm, ...] = ()
    excluded: tuple[QueryTerm, ...] = ()
    mode: str = MODE_SIMPLE

    @property
    def has_operators(self) -> bool:
        return self.mode != MODE_SIMPLE

    @property
    def is_empty(self) -> bool:
        return not self.terms and not self.excluded

    def combine(self, term_matches: Callable[[QueryTerm], bool]) -> bool:
        """
        Apply term_matches to every term and fold with the query mode.
        A query with no positive terms matches nothing.
        """
        if not self.terms:
            return False
        if self.mode == MODE_OR:
            return any(term_matches(t) for t in self.terms)
        return all(term_matches(t) for t in self.terms)

    def excludes(self, texts: Iterable[object]) -> bool:
        """True when any excluded term occurs in any of the (raw) texts."""
        if not self.excluded:
            return False
        normalized = [normalize_text(t) for t in texts]
        return any(term.text in text for term in self.excluded for text in normalized)


def _is_operator(token: str) -> bool:
    upper = token.upper()
    return upper in AND_TOKENS or upper in OR_TOKENS or upper in NOT_TOKENS


def _has_operators(tokens: list[str]) -> bool:
    for token in tokens:
        if _is_operator(token) or '"' in token:
            return True
        if token.startswith("-") and len(token) > 1:
            return True
    return False


def parse_search_query(query: str | None) -> ParsedQuery:
    """
    Parse a raw search box query.

    Without operators or quotes the whole normalized query is a single
    term, so plain searches behave exactly as before operators existed.
    """
    raw = (query or "").strip()
    if not raw:
        return ParsedQuery()

    tokens = _TOKEN_RE.findall(raw)
    if not _has_operators(tokens):
        text = normalize_text(raw)
        return ParsedQuery(terms=(QueryTerm(text),)) if text else ParsedQuery()

    terms: list[QueryTerm] = []
    excluded: list[QueryTerm] = []
    saw_and = saw_or = negate_next = False

    for token in tokens:
        upper = token.upper()
        if upper in AND_TOKENS:
            saw_and = True
            continue
        if upper in OR_TOKENS:
            saw_or = True
            continue
        if upper in NOT_TOKENS:
            negate_next = True
            continue

        negated, negate_next = negate_next, False
        if token.startswith("-"):
            negated = True
            token = token[1:]

        phrase = len(token) >= 2 and token.startswith('"') and token.endswith('"')
        text = normalize_text(token.replace('"', " "))
        if not text:
            continue
        (excluded if negated else terms).append(QueryTerm(text, phrase=phrase))

    mode = MODE_OR if saw_or and not saw_and else MODE_AND
    return ParsedQuery(terms=tuple(terms), excluded=tuple(excluded), mode=mode)


__all__ = [
    "ParsedQuery",
    "QueryTerm",
    "parse_search_query",
]
