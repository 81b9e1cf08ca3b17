"""Fundamental odds mathematics — the single source of truth.

Every function here is **pure**: no I/O, no logging, no side effects.
Import from this module; never reimplement locally in services or routes.

The pillars exposed are:

1. **Odds conversion** — American ↔ decimal ↔ implied probability.
2. **Vig removal** — proportional normalisation across a set of prices.

Design decisions
----------------
* Every conversion is **total**.  Upstream feeds hand us zero, ``None``-ish
  NaN and infinite prices often enough that raising would turn a single bad
  quote into a failed request.  Degenerate input resolves to a documented
  sentinel instead: probability 0.5, decimal 2.0 (even money), or American
  ``0`` ("no valid price").  Callers detect the sentinel and show
  "insufficient market data".
* Integer odds are produced with half-up rounding (``floor(x + 0.5)``) rather
  than Python's round-half-even, so a price sitting exactly on ``.5``
  always lands on the same integer regardless of its parity.
* Vig removal is proportional.  It is exact for symmetric two-way markets
  and well defined for any number of outcomes; a single-sided list is
  degenerate and normalises to ``[1.0]``.

Run tests with::

    pytest tests/test_odds_math.py -v
"""

from __future__ import annotations

import math
from typing import Final, Sequence

# ---------------------------------------------------------------------------
# Module-level constants
# ---------------------------------------------------------------------------

#: Probability returned for a zero or non-finite price.
NEUTRAL_PROBABILITY: Final[float] = 0.5

#: Decimal odds returned for a zero or non-finite American price.
EVEN_MONEY_DECIMAL: Final[float] = 2.0

#: American-odds sentinel meaning "no valid price could be derived".
NO_PRICE: Final[int] = 0

#: Implied probabilities are kept this far inside the open unit interval.
PROB_FLOOR: Final[float] = 1e-12


def _is_degenerate(value: float) -> bool:
    return not math.isfinite(value) or value == 0


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# ---------------------------------------------------------------------------
# Odds conversion
# ---------------------------------------------------------------------------


def implied_probability(american_odds: int | float) -> float:
    """Raw implied probability from American odds (vig-inclusive).

    Args:
        american_odds: American odds.  Positive = underdog (profit on a 100
            stake), negative = favourite (stake needed to profit 100).

    Returns:
        Implied probability, strictly inside (0, 1) even for extreme
        prices.  Zero or non-finite odds return
        :data:`NEUTRAL_PROBABILITY` (0.5).

    Examples::

        implied_probability(-110) → 0.5238
        implied_probability(+150) → 0.4000
        implied_probability(0)    → 0.5000   (degenerate price)
    """
    if _is_degenerate(american_odds):
        return NEUTRAL_PROBABILITY
    if american_odds > 0:
        prob = 100.0 / (american_odds + 100.0)
    else:
        prob = -american_odds / (-american_odds + 100.0)
    return min(max(prob, PROB_FLOOR), 1.0 - PROB_FLOOR)


def american_odds_from_probability(prob: float) -> int:
    """Convert a win probability to the nearest fair American price.

    Probabilities at or above 0.5 are priced as favourites (negative odds);
    below 0.5 as underdogs (positive odds).  Exactly 0.5 yields ``-100``.

    Returns:
        American odds, or :data:`NO_PRICE` (0) when ``prob`` is non-finite or
        outside the open interval ``(0, 1)``.

    Examples::

        american_odds_from_probability(0.60) → -150
        american_odds_from_probability(0.40) → +150
        american_odds_from_probability(1.00) →    0   (no valid price)
    """
    if not math.isfinite(prob) or prob <= 0.0 or prob >= 1.0:
        return NO_PRICE
    if prob >= 0.5:
        return _round_half_up(-100.0 * prob / (1.0 - prob))
    return _round_half_up(100.0 * (1.0 - prob) / prob)


def decimal_from_american(american_odds: int | float) -> float:
    """Convert American odds to decimal (European) format.

    Decimal odds are the total payout per unit staked, stake included::

        decimal_from_american(-110) → 1.9091
        decimal_from_american(+150) → 2.5000
        decimal_from_american(0)    → 2.0000   (even-money default)
    """
    if _is_degenerate(american_odds):
        return EVEN_MONEY_DECIMAL
    if american_odds > 0:
        return american_odds / 100.0 + 1.0
    return 100.0 / -american_odds + 1.0


def american_from_decimal(decimal_odds: float) -> int:
    """Convert decimal odds to the nearest American integer.

    Inverse of :func:`decimal_from_american`.  Values ≥ 2.0 map to positive
    (underdog) odds, values in ``(1, 2)`` to negative (favourite) odds.

    Returns:
        American odds, or :data:`NO_PRICE` when ``decimal_odds`` is
        non-finite or ≤ 1.0 (a price that can never return a profit).
    """
    if not math.isfinite(decimal_odds) or decimal_odds <= 1.0:
        return NO_PRICE
    if decimal_odds >= 2.0:
        return _round_half_up((decimal_odds - 1.0) * 100.0)
    return _round_half_up(-100.0 / (decimal_odds - 1.0))


def format_american_odds(american_odds: int) -> str:
    """Display form with an explicit sign: ``+150``, ``-110``, ``0``."""
    if american_odds > 0:
        return f"+{american_odds}"
    return str(american_odds)


# ---------------------------------------------------------------------------
# Vig removal
# ---------------------------------------------------------------------------


def remove_vig(odds_list: Sequence[int | float]) -> list[float]:
    """Fair (no-vig) probabilities for every outcome of one market.

    Each price is mapped through :func:`implied_probability` and the raw
    probabilities are divided by their sum (the overround), so the result
    always sums to 1.0.

    Args:
        odds_list: American odds for every outcome of the market, in any
            order.  Degenerate prices contribute the 0.5 sentinel.

    Returns:
        Fair probabilities in the same order as ``odds_list``.  A single
        price normalises to ``[1.0]`` regardless of its value.

    Raises:
        ValueError: If ``odds_list`` is empty.

    Examples::

        remove_vig([-110, -110])      → [0.5, 0.5]
        remove_vig([-150, +130])      → [0.5798, 0.4202]
        remove_vig([+120])            → [1.0]
    """
    if not odds_list:
        raise ValueError("remove_vig requires at least one price.")

    raw = [implied_probability(odds) for odds in odds_list]
    overround = sum(raw)
    return [p / overround for p in raw]
