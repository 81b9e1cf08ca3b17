"""Kelly criterion sizing — the single source of truth for stake sizing math.

All functions here are **pure**: no I/O, no database, no logging.
Import from this module; never reimplement Kelly locally in services.

Design decisions
----------------
* **Fractional Kelly** (a multiplier on full Kelly) is the universal practice
  in quantitative sports betting.  Full Kelly maximises long-run log-wealth
  only when the edge estimate is exact; model probabilities are not, and
  overbetting is punished asymmetrically (geometric ruin vs. forgone EV).
  The default multiplier is 0.25 ("quarter Kelly").
* The stake is **never negative**.  A negative full Kelly means the market
  side is favoured over the model side; we recommend nothing rather than
  implicitly recommending the other side.
* Degenerate prices never propagate ``NaN`` or ``inf``.  Decimal odds of
  1.0 (a failed conversion upstream, or a price so short it rounds to no
  profit) make the Kelly denominator zero and size to 0.

Run tests with::

    pytest tests/test_edge.py -v
"""

from __future__ import annotations

import math
from typing import Final

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

#: Default fractional Kelly multiplier (quarter Kelly).
DEFAULT_KELLY_FRACTION: Final[float] = 0.25

#: Upper bound on the multiplier; anything above full Kelly is clamped.
MAX_KELLY_FRACTION: Final[float] = 1.0


def full_kelly(model_prob: float, decimal_odds: float) -> float:
    """Unclamped full-Kelly fraction for a win/loss bet.

    Uses the platform's decimal-odds form, with ``p`` the model probability,
    ``q = 1 − p`` and ``d`` the decimal odds::

        f*  =  (p · d − q) / (d − 1)                             (1)

    (1) exceeds the textbook ``(p·b − q) / b`` (with ``b = d − 1``) by
    ``p / b``; stakes already shown to users were sized with (1).

    Returns:
        ``f*`` (may be negative), or 0.0 when ``decimal_odds ≤ 1`` or either
        input is non-finite.
    """
    if not (math.isfinite(model_prob) and math.isfinite(decimal_odds)):
        return 0.0
    profit_per_unit = decimal_odds - 1.0
    if profit_per_unit <= 0.0:
        return 0.0

    loss_prob = 1.0 - model_prob
    result = (model_prob * decimal_odds - loss_prob) / profit_per_unit
    return result if math.isfinite(result) else 0.0


def kelly_stake(
    model_prob: float,
    decimal_odds: float,
    kelly_fraction: float = DEFAULT_KELLY_FRACTION,
) -> float:
    """Fractional Kelly stake as a fraction of bankroll.

    Args:
        model_prob: Model-estimated probability of the bet winning, in
            ``(0, 1)``.
        decimal_odds: Decimal odds offered.  Use
            :func:`~edgeloop.core.odds_math.decimal_from_american` to convert.
        kelly_fraction: Safety multiplier in ``(0, 1]``.  Values above 1 are
            clamped to full Kelly; non-finite or non-positive values size to
            0.

    Returns:
        Stake in ``[0, kelly_fraction · f*]``, always ≥ 0.

    Examples::

        kelly_stake(0.55, 1.9091)        →  0.1650  (quarter Kelly on -110)
        kelly_stake(0.30, 1.9091)        →  0.0000  (negative full Kelly → 0)
        kelly_stake(0.60, 1.0)           →  0.0000  (degenerate price)
        kelly_stake(0.55, 1.9091, 0.5)   →  0.3300
    """
    if not math.isfinite(kelly_fraction) or kelly_fraction <= 0.0:
        return 0.0
    multiplier = min(kelly_fraction, MAX_KELLY_FRACTION)

    stake = full_kelly(model_prob, decimal_odds) * multiplier
    return max(0.0, stake)


# ---------------------------------------------------------------------------
# Utility — unit conversion
# ---------------------------------------------------------------------------


def kelly_to_units(stake: float) -> float:
    """Convert a Kelly stake to units for display and logging.

    The platform uses the convention 1 unit = 1% of bankroll, so a stake of
    0.025 (2.5% of bankroll) is 2.5 units.
    """
    return stake * 100.0
