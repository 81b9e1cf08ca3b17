"""Edge, expected value and stake for one (model probability, market price) pair.

Pure and stateless: safe to call from any number of request handlers at
once.  Composes :mod:`edgeloop.core.odds_math` and :mod:`edgeloop.core.kelly`;
nothing here touches the database.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from edgeloop.core.kelly import DEFAULT_KELLY_FRACTION, kelly_stake
from edgeloop.core.odds_math import decimal_from_american, implied_probability


@dataclass(frozen=True, slots=True)
class EdgeResult:
    """Derived pricing output.  Never persisted on its own.

    ``edge`` and ``ev`` keep their sign; negative means "no edge".
    ``kelly_stake`` is a bankroll fraction and is always ≥ 0.
    """

    model_prob: float
    market_odds: int | float
    implied_prob: float
    decimal_odds: float
    edge: float
    ev: float
    kelly_stake: float

    @property
    def has_edge(self) -> bool:
        return self.edge > 0.0 and self.ev > 0.0

    def to_dict(self) -> dict:
        return {
            "model_prob": self.model_prob,
            "market_odds": self.market_odds,
            "implied_prob": self.implied_prob,
            "decimal_odds": self.decimal_odds,
            "edge": self.edge,
            "ev": self.ev,
            "kelly_stake": self.kelly_stake,
        }


def edge(model_prob: float, market_odds: int | float) -> float:
    """Model probability minus the market's implied probability.

    A zero or missing price compares against 0.5, so the result is defined
    but uninformative.
    """
    return model_prob - implied_probability(market_odds)


def expected_value(model_prob: float, market_odds: int | float) -> float:
    """Expected return per unit staked: ``model_prob · decimal_odds − 1``."""
    return model_prob * decimal_from_american(market_odds) - 1.0


def evaluate_edge(
    model_prob: float,
    market_odds: int | float,
    kelly_fraction: float = DEFAULT_KELLY_FRACTION,
) -> EdgeResult:
    """Full edge breakdown for a single market side.

    Args:
        model_prob: Model-estimated win probability in ``(0, 1)``.
        market_odds: American odds for the same side.  Zero or non-finite
            prices resolve to the odds-math sentinels.
        kelly_fraction: Fractional Kelly multiplier (default quarter Kelly).

    Returns:
        :class:`EdgeResult`.  A non-finite ``model_prob`` produces edge, EV
        and stake of 0.0 rather than ``NaN``.

    Examples::

        evaluate_edge(0.60, -150).edge   →  0.0    (model agrees with market)
        evaluate_edge(0.55, +120).ev     →  0.21
    """
    implied = implied_probability(market_odds)
    decimal_odds = decimal_from_american(market_odds)

    if not math.isfinite(model_prob):
        return EdgeResult(
            model_prob=model_prob,
            market_odds=market_odds,
            implied_prob=implied,
            decimal_odds=decimal_odds,
            edge=0.0,
            ev=0.0,
            kelly_stake=0.0,
        )

    return EdgeResult(
        model_prob=model_prob,
        market_odds=market_odds,
        implied_prob=implied,
        decimal_odds=decimal_odds,
        edge=model_prob - implied,
        ev=model_prob * decimal_odds - 1.0,
        kelly_stake=kelly_stake(model_prob, decimal_odds, kelly_fraction),
    )
