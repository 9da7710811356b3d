"""
Input validation for competitors and matches.

Everything here runs before a write is attempted, so a ValidationError
never leaves partial state behind.
"""

from typing import Iterable, Optional

from pongrank.exceptions import ValidationError

MAX_NAME_LENGTH = 100


def normalize_name(name: Optional[str]) -> str:
    """Trim a display name and reject blank or oversized names."""
    if name is None or not isinstance(name, str):
        raise ValidationError("Competitor name is required.")
    cleaned = name.strip()
    if not cleaned:
        raise ValidationError("Competitor name is required.")
    if len(cleaned) > MAX_NAME_LENGTH:
        raise ValidationError(
            f"Competitor name must be at most {MAX_NAME_LENGTH} characters."
        )
    return cleaned


def validate_competitor_name(name: Optional[str], existing_names: Iterable[str]) -> str:
    """
    Validate a new or changed display name against the names already taken.

    Names are compared case-insensitively after trimming. Pass the other
    competitors' names only; when renaming, leave the competitor's own
    current name out so a change of case is allowed.

    Returns:
        The trimmed name to store.
    """
    cleaned = normalize_name(name)
    folded = cleaned.casefold()
    for existing in existing_names:
        if existing.strip().casefold() == folded:
            raise ValidationError(f"A competitor named '{cleaned}' already exists.")
    return cleaned


def _validate_score(label: str, value: object) -> int:
    # bool is a subclass of int; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{label} must be an integer.")
    if value < 0:
        raise ValidationError(f"{label} must be >= 0.")
    return value


def validate_match(
    participant_a: Optional[int],
    participant_b: Optional[int],
    winner: Optional[int],
    score_a: Optional[int] = None,
    score_b: Optional[int] = None,
) -> None:
    """
    Validate the fields of a match result.

    Rules:
    - Both participants and the winner are required
    - A competitor cannot play against themself
    - The winner must be one of the two participants
    - Scores are optional but come in pairs
    - Scores must be integers >= 0 and cannot be tied
    - The side with the higher score must be the winner
    """
    if participant_a is None or participant_b is None or winner is None:
        raise ValidationError("Both participants and the winner are required.")
    if participant_a == participant_b:
        raise ValidationError("A competitor cannot play against themself.")
    if winner not in (participant_a, participant_b):
        raise ValidationError("The winner must be one of the match participants.")

    if score_a is None and score_b is None:
        return
    if score_a is None or score_b is None:
        raise ValidationError("Scores must be given for both sides or for neither.")

    a = _validate_score("Score A", score_a)
    b = _validate_score("Score B", score_b)
    if a == b:
        raise ValidationError("Scores cannot be tied.")

    high_side = participant_a if a > b else participant_b
    if high_side != winner:
        raise ValidationError("The winner must hold the higher score.")
