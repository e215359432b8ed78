from __future__ import annotations

from hypothesis import given
from hypothesis import strategies as st

from dmhero.search.distance import GLOBAL_BANDS, SCOPED_BANDS, DistanceBands, levenshtein

short_text = st.text(alphabet="abcdeé xyz", max_size=12)


def test_known_distances():
    assert levenshtein("kitten", "sitting") == 3
    assert levenshtein("gandlf", "gandalf") == 1
    assert levenshtein("", "abc") == 3
    assert levenshtein("abc", "") == 3
    assert levenshtein("", "") == 0


def test_none_treated_as_empty():
    assert levenshtein(None, "abc") == 3
    assert levenshtein("abc", None) == 3


def test_score_cutoff_reports_cutoff_plus_one_when_exceeded():
    assert levenshtein("abc", "xyz", score_cutoff=1) == 2
    assert levenshtein("abc", "abd", score_cutoff=1) == 1


@given(short_text, short_text)
def test_symmetry(a, b):
    assert levenshtein(a, b) == levenshtein(b, a)


@given(short_text)
def test_identity_and_empty(a):
    assert levenshtein(a, a) == 0
    assert levenshtein("", a) == len(a)


@given(short_text, short_text, short_text)
def test_triangle_inequality(a, b, c):
    assert levenshtein(a, c) <= levenshtein(a, b) + levenshtein(b, c)


def test_global_bands():
    assert GLOBAL_BANDS.max_distance("elf") == 2
    assert GLOBAL_BANDS.max_distance("tavern") == 3
    assert GLOBAL_BANDS.max_distance("gandalfs") == 4


def test_scoped_bands():
    assert SCOPED_BANDS.max_distance("elf") == 1
    assert SCOPED_BANDS.max_distance("elfs") == 2
    assert SCOPED_BANDS.max_distance("gandlf") == 2
    assert SCOPED_BANDS.max_distance("gandalfs") == 3


def test_custom_bands_from_tuple():
    bands = DistanceBands.from_tuple((0, 1, 5))
    assert bands.max_distance("") == 0
    assert bands.max_distance("abcd") == 1
    assert bands.max_distance("abcdefghij") == 5


def test_within_boundary():
    # "abcd" is a 4-char term: global tolerates 3, scoped tolerates 2.
    assert GLOBAL_BANDS.within("abcd", "axyz") == 3
    assert GLOBAL_BANDS.within("abcd", "wxyz") is None
    assert SCOPED_BANDS.within("abcd", "abyz") == 2
    assert SCOPED_BANDS.within("abcd", "axyz") is None
