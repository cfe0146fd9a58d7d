import pytest

from smartfill.matching.ranges import parse_range
from smartfill.matching.similarity import combined_similarity, edit_similarity, keyword_overlap, token_jaccard


@pytest.mark.parametrize(
    ("text", "inside", "outside"),
    [
        ("18-24", [18, 24, 24.5], [17, 25]),
        ("25 to 34", [25, 34], [35]),
        ("$50k-$75k", [50_000, 75_000], [49_999, 76_000]),
        ("$50,000 - $74,999", [50_000, 74_999], [75_000]),
        ("Senior (6-10)", [6, 8, 10], [5, 11]),
        ("Between 3 and 5 years", [3, 5], [2, 6]),
        ("65+", [65, 90], [64]),
        ("55 and over", [55, 70], [54]),
        ("Under 18", [0, 17], [18]),
        ("Less than $25,000", [24_999], [25_000]),
        ("Up to 5", [0, 5], [6]),
        ("Over 50", [51], [50]),
        ("10–20", [10, 20], [21]),
    ],
)
def test_parse_range_bounds(text, inside, outside):
    bounds = parse_range(text)

    assert bounds is not None, text
    for value in inside:
        assert bounds.contains(value), (text, value)
    for value in outside:
        assert not bounds.contains(value), (text, value)


@pytest.mark.parametrize("text", [None, "", "Yes", "Technology", "Prefer not to say"])
def test_non_numeric_text_has_no_range(text):
    assert parse_range(text) is None


def test_reversed_bounds_are_sorted():
    bounds = parse_range("40-30")

    assert bounds.low == 30
    assert bounds.high == 40


def test_similarity_measures():
    assert edit_similarity("United States", "united states") == 1.0
    assert edit_similarity("", "anything") == 0.0
    assert 0.0 < edit_similarity("Canada", "Canadian") < 1.0

    assert token_jaccard("new york city", "New York") == pytest.approx(2 / 3)
    assert token_jaccard("alpha", "beta") == 0.0

    assert keyword_overlap("I enjoy landscape photography", "Photography") == 1.0
    assert combined_similarity("Photography", "photography") == 1.0
