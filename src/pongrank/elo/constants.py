"""
ELO rating system constants.

K factor: Controls rating volatility (how many points change hands per match)
  - Higher K = bigger rating swings
  - Lower K = more stable ratings

S factor: Controls the spread (how rating differences translate to win
probability). With S = 400 a 400-point gap means the stronger player is
expected to win ten times as often as they lose.

Both values are conventional chess-club defaults. They are exposed through
settings so they can be validated against previously recorded ratings.
"""

# Starting rating for every competitor, and the value a rebuild resets to
DEFAULT_RATING = 1200

# Points exchanged when two equal players meet is K / 2
DEFAULT_K_FACTOR = 32

DEFAULT_SPREAD = 400


# Skill tiers shown next to a rating on the leaderboard.
# Ordered highest threshold first; the first tier whose floor is <= rating wins.
RANK_TIERS: tuple[tuple[int, str], ...] = (
    (1800, "Master"),
    (1600, "Expert"),
    (1400, "Advanced"),
    (1200, "Intermediate"),
)
BOTTOM_TIER = "Beginner"


def rank_tier(rating: int) -> str:
    """
    Map a rating to its skill tier name.

    Example:
        rank_tier(1650)  # "Expert"
        rank_tier(1100)  # "Beginner"
    """
    for floor, name in RANK_TIERS:
        if rating >= floor:
            return name
    return BOTTOM_TIER
