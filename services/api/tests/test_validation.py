import pytest

from leaderboard.services.errors import ValidationError
from leaderboard.services.validation import (
    sanitize_username,
    validate_context_size,
    validate_page,
    validate_rating,
    validate_user_id,
    validate_username,
)


@pytest.mark.parametrize("rating", [100, 101, 2500, 4999, 5000])
def test_rating_in_range(rating: int):
    assert validate_rating(rating) == rating


@pytest.mark.parametrize("rating,bound", [(99, "100"), (5001, "5000"), (-5, "100")])
def test_rating_out_of_range_names_bound(rating: int, bound: str):
    with pytest.raises(ValidationError) as exc_info:
        validate_rating(rating)
    assert bound in exc_info.value.message
    assert exc_info.value.code == "VALIDATION_ERROR"


@pytest.mark.parametrize("rating", [True, 1000.5, "1000", None])
def test_rating_must_be_int(rating):
    with pytest.raises(ValidationError):
        validate_rating(rating)


def test_username_trimmed():
    assert validate_username("  good_name-1 ") == "good_name-1"


@pytest.mark.parametrize("username", ["", "ab", "   ab  ", "a" * 51, "has space", "dot.name", "emoji🙂"])
def test_username_rejected(username: str):
    with pytest.raises(ValidationError):
        validate_username(username)


def test_username_length_bounds():
    assert validate_username("abc") == "abc"
    assert validate_username("a" * 50) == "a" * 50


def test_sanitize_username():
    assert sanitize_username("  MiXeD ") == "mixed"


def test_page_bounds():
    validate_page(1, 1)
    validate_page(99, 1000)
    with pytest.raises(ValidationError):
        validate_page(0, 10)
    with pytest.raises(ValidationError):
        validate_page(1, 1001)


def test_context_size_bounds():
    validate_context_size(1)
    validate_context_size(100)
    for bad in (0, 101):
        with pytest.raises(ValidationError):
            validate_context_size(bad)


def test_user_id_trimmed():
    assert validate_user_id("  p-1 ") == "p-1"
    assert validate_user_id("x" * 255) == "x" * 255


@pytest.mark.parametrize("user_id", ["", "   ", "x" * 256])
def test_user_id_rejected(user_id: str):
    with pytest.raises(ValidationError):
        validate_user_id(user_id)
