"""
ELO rating calculator for head-to-head matches.

Implements the standard ELO formula with integer ratings:

  Expected score: E_W = 1 / (1 + 10^((R_L - R_W) / S))
  Rating delta:   D   = round(K * (1 - E_W))
  New ratings:    R'_W = R_W + D,  R'_L = R_L - D

Where:
  R_W, R_L = Current ratings of the winner and the loser
  K = How much ratings change (volatility factor)
  S = Spread factor (how rating difference maps to win probability)

The delta is rounded half-up to a whole number before it is applied, so
ratings stay integers and every match is exactly zero-sum. The score of a
match never changes the delta: only who won matters.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from pongrank.elo.constants import DEFAULT_K_FACTOR, DEFAULT_SPREAD


@dataclass(frozen=True)
class EloUpdate:
    """
    Result of an ELO calculation for one match.

    Contains the ratings on both sides of the match and the
    pre-match expectation that produced the delta.
    """
    # Ratings before the match
    winner_before: int
    loser_before: int

    # Pre-match win probability of the eventual winner
    expected_winner: float

    # Points moved from the loser to the winner
    delta: int

    k_factor: int

    @property
    def winner_after(self) -> int:
        return self.winner_before + self.delta

    @property
    def loser_after(self) -> int:
        return self.loser_before - self.delta

    @property
    def was_upset(self) -> bool:
        """Whether the lower-rated player won."""
        return self.winner_before < self.loser_before

    def __repr__(self) -> str:
        return (
            f"<EloUpdate(W: {self.winner_before} -> {self.winner_after}, "
            f"L: {self.loser_before} -> {self.loser_after}, delta={self.delta})>"
        )


class EloCalculator:
    """
    Integer ELO rating calculator.

    Usage:
        calculator = EloCalculator(k_factor=32)

        result = calculator.calculate(rating_winner=1200, rating_loser=1200)
        print(result.delta)  # 16
    """

    def __init__(
        self,
        k_factor: int = DEFAULT_K_FACTOR,
        spread: int = DEFAULT_SPREAD,
    ):
        """
        Initialize the calculator.

        Args:
            k_factor: Maximum points that can change hands in one match.
            spread: Rating gap that corresponds to 10:1 odds.
        """
        if k_factor <= 0:
            raise ValueError(f"k_factor must be positive, got {k_factor}")
        if spread <= 0:
            raise ValueError(f"spread must be positive, got {spread}")
        self.k_factor = k_factor
        self.spread = spread

    def expected_score(self, rating: int, opponent_rating: int) -> float:
        """
        Probability that a player rated `rating` beats `opponent_rating`.

        Extreme rating gaps are clamped instead of overflowing.
        """
        try:
            return 1.0 / (1.0 + 10.0 ** ((opponent_rating - rating) / self.spread))
        except OverflowError:
            return 0.0 if opponent_rating > rating else 1.0

    def calculate(self, rating_winner: int, rating_loser: int) -> EloUpdate:
        """
        Calculate the rating exchange for a single decided match.

        A player gains more rating points for an upset (beating someone
        higher-rated) and fewer for beating a weaker opponent.

        Args:
            rating_winner: Winner's rating before the match
            rating_loser: Loser's rating before the match

        Returns:
            EloUpdate with the delta and the pre-match expectation

        Example:
            # Two fresh players: expectation 0.5, delta K/2
            result = calc.calculate(1200, 1200)
            # result.winner_after == 1216, result.loser_after == 1184
        """
        expected = self.expected_score(rating_winner, rating_loser)
        raw = Decimal(str(self.k_factor * (1.0 - expected)))
        delta = int(raw.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

        return EloUpdate(
            winner_before=rating_winner,
            loser_before=rating_loser,
            expected_winner=expected,
            delta=delta,
            k_factor=self.k_factor,
        )

    def win_probability(
        self,
        rating_a: int,
        rating_b: int,
        places: Optional[int] = 4,
    ) -> float:
        """
        Probability of player A beating player B, for display.

        Args:
            rating_a: Player A's rating
            rating_b: Player B's rating
            places: Decimal places to round to, or None for the raw value

        Example:
            calc.win_probability(1400, 1200)  # 0.7597
        """
        prob = self.expected_score(rating_a, rating_b)
        if places is None:
            return prob
        return float(
            Decimal(str(prob)).quantize(
                Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP
            )
        )
