"""Tests for keyword normalization and matching."""
import pytest

from showstart_monitor.matching import is_candidate, keyword_matches, normalize
from showstart_monitor.models import Activity


@pytest.mark.parametrize("text,expected", [
    ("Taylor Swift!", "taylorswift"),
    ("  LANY  ", "lany"),
    ("五月天", "五月天"),
    ("2024·五月天【巡演】", "2024五月天巡演"),
    ("!!!", ""),
])
def test_normalize(text, expected):
    assert normalize(text) == expected


def test_normalize_is_punctuation_insensitive():
    assert normalize("Taylor Swift!") == normalize("taylorswift")


def test_keyword_matches_mixed_latin_and_cjk():
    assert keyword_matches(normalize("五月天"), "2024五月天巡演")
    assert keyword_matches(normalize("LANY"), "LANY 2025 巡演")
    assert keyword_matches(normalize("taylor-swift"), "Taylor Swift | The Eras Tour")


def test_keyword_does_not_match_other_titles():
    assert not keyword_matches(normalize("LANY"), "五月天 巡演")


def test_empty_keyword_matches_nothing():
    assert not keyword_matches("", "Anything at all")


def test_is_candidate_skips_malformed_activities():
    keyword = normalize("LANY")

    assert is_candidate(Activity(activity_id=1, title="LANY live"), keyword)
    assert not is_candidate(Activity(activity_id=0, title="LANY live"), keyword)
    assert not is_candidate(Activity(activity_id=1, title=""), keyword)
