"""Unit tests for competitor and match validation."""

import pytest

from pongrank.exceptions import ValidationError
from pongrank.validation import normalize_name, validate_competitor_name, validate_match


def test_name_is_trimmed():
    assert normalize_name("  Ana  ") == "Ana"


@pytest.mark.parametrize("name", [None, "", "   ", "x" * 101])
def test_invalid_names_rejected(name):
    with pytest.raises(ValidationError):
        normalize_name(name)


def test_duplicate_name_is_case_insensitive():
    with pytest.raises(ValidationError, match="already exists"):
        validate_competitor_name("  ANA ", ["Ana", "Ben"])


def test_unique_name_passes():
    assert validate_competitor_name("Cleo", ["Ana", "Ben"]) == "Cleo"


def test_valid_match_without_scores():
    validate_match(1, 2, 2)


def test_valid_match_with_scores():
    validate_match(1, 2, 1, score_a=11, score_b=8)
    validate_match(1, 2, 2, score_a=5, score_b=11)


@pytest.mark.parametrize(
    "args, message",
    [
        ((None, 2, 2, None, None), "required"),
        ((1, 1, 1, None, None), "against themself"),
        ((1, 2, 3, None, None), "one of the match participants"),
        ((1, 2, 1, 11, None), "both sides"),
        ((1, 2, 1, -1, 3), ">= 0"),
        ((1, 2, 1, 7, 7), "tied"),
        ((1, 2, 1, 3, 11), "higher score"),
        ((1, 2, 1, True, 0), "integer"),
    ],
)
def test_invalid_matches_rejected(args, message):
    with pytest.raises(ValidationError, match=message):
        validate_match(*args)
