"""Input bounds enforced by the service layer regardless of upstream checks."""

from leaderboard.services.errors import ValidationError

MIN_RATING = 100
MAX_RATING = 5000
MIN_USERNAME = 3
MAX_USERNAME = 50
MAX_USER_ID = 255

MAX_PAGE_SIZE = 1000
MAX_CONTEXT_SIZE = 100


def validate_rating(rating: int) -> int:
    """Check rating is an integer within [MIN_RATING, MAX_RATING].

    Raises:
        ValidationError: Naming the violated bound.
    """
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise ValidationError(
            f"rating must be an integer, got {rating!r}",
            detail={"rating": rating},
        )
    if rating < MIN_RATING:
        raise ValidationError(
            f"rating must be at least {MIN_RATING}, got {rating}",
            detail={"rating": rating, "min": MIN_RATING},
        )
    if rating > MAX_RATING:
        raise ValidationError(
            f"rating must be at most {MAX_RATING}, got {rating}",
            detail={"rating": rating, "max": MAX_RATING},
        )
    return rating


def _is_username_char(ch: str) -> bool:
    return ch.isalpha() or ch.isdigit() or ch in "_-"


def validate_username(username: str) -> str:
    """Validate a username and return it with surrounding whitespace trimmed.

    Rules: 3-50 characters; letters, digits, underscore and hyphen only.
    """
    username = username.strip()

    if len(username) < MIN_USERNAME:
        raise ValidationError(
            f"username must be at least {MIN_USERNAME} characters",
            detail={"username": username},
        )
    if len(username) > MAX_USERNAME:
        raise ValidationError(
            f"username must not exceed {MAX_USERNAME} characters",
            detail={"username": username[:MAX_USERNAME]},
        )

    for ch in username:
        if not _is_username_char(ch):
            raise ValidationError(
                f"username contains invalid character: {ch!r}",
                detail={"username": username},
            )

    return username


def validate_user_id(user_id: str) -> str:
    """Validate a caller-supplied user id and return it trimmed (1-255 characters)."""
    user_id = user_id.strip()
    if not user_id or len(user_id) > MAX_USER_ID:
        raise ValidationError(
            f"user_id must be 1-{MAX_USER_ID} characters",
            detail={"user_id": user_id[:MAX_USER_ID]},
        )
    return user_id


def sanitize_username(username: str) -> str:
    """Normalized form used for case-insensitive comparisons."""
    return username.strip().lower()


def validate_page(page: int, page_size: int) -> None:
    if page < 1:
        raise ValidationError(f"page must be at least 1, got {page}", detail={"page": page})
    if page_size < 1 or page_size > MAX_PAGE_SIZE:
        raise ValidationError(
            f"page_size must be between 1 and {MAX_PAGE_SIZE}, got {page_size}",
            detail={"page_size": page_size},
        )


def validate_context_size(context_size: int) -> None:
    if context_size < 1 or context_size > MAX_CONTEXT_SIZE:
        raise ValidationError(
            f"context_size must be between 1 and {MAX_CONTEXT_SIZE}, got {context_size}",
            detail={"context_size": context_size},
        )
