# dmhero/search/distance.py
from __future__ import annotations

from dataclasses import dataclass

from rapidfuzz.distance import Levenshtein

from dmhero.config import GLOBAL_DISTANCE_BANDS, SCOPED_DISTANCE_BANDS


def levenshtein(a: str | None, b: str | None, score_cutoff: int | None = None) -> int:
    """
    Classic Levenshtein edit distance (unit-cost insert/delete/substitute).

    When score_cutoff is given and the real distance is larger, returns
    score_cutoff + 1 instead of the exact value, which lets rapidfuzz bail out
    early on long strings.
    """
    return Levenshtein.distance(a or "", b or "", score_cutoff=score_cutoff)


@dataclass(frozen=True)
class DistanceBands:
    """
    Maximum tolerated edit distance, banded by normalized query length.

    Attributes:
        short / medium / long:
            Tolerated distance for terms of length <= short_max_len,
            <= medium_max_len, and anything longer.
    """

    short: int
    medium: int
    long: int
    short_max_len: int = 3
    medium_max_len: int = 6

    @classmethod
    def from_tuple(cls, values: tuple[int, int, int]) -> DistanceBands:
        short, medium, long = values
        return cls(short=short, medium=medium, long=long)

    def max_distance(self, term: str) -> int:
        n = len(term)
        if n <= self.short_max_len:
            return self.short
        if n <= self.medium_max_len:
            return self.medium
        return self.long

    def within(self, term: str, other: str, max_dist: int | None = None) -> int | None:
        """
        Return the distance between term and other if it is within the
        tolerated band, else None.
        """
        limit = self.max_distance(term) if max_dist is None else max_dist
        dist = levenshtein(term, other, score_cutoff=limit)
        return dist if dist <= limit else None


# Global search ({2,3,4}) and the per-type listings ({1,2,3}) disagree for the
# same length bands; both are kept and chosen explicitly by the caller.
GLOBAL_BANDS = DistanceBands.from_tuple(GLOBAL_DISTANCE_BANDS)
SCOPED_BANDS = DistanceBands.from_tuple(SCOPED_DISTANCE_BANDS)

__all__ = ["levenshtein", "DistanceBands", "GLOBAL_BANDS", "SCOPED_BANDS"]
