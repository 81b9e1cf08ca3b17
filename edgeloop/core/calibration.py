"""Probability-calibration metrics for evaluating a model version.

Every function takes paired sequences of predicted win probabilities and
binary outcomes (``True`` / 1 = the predicted side won) and is pure.

* :func:`brier_score`: mean squared error of the probabilities.
* :func:`log_loss`: binary cross-entropy, predictions clipped to
  ``[eps, 1 − eps]`` so a confident miss is large but finite.
* :func:`calibration_bins` / :func:`expected_calibration_error`: equal-width
  reliability bins over [0, 1] and the count-weighted mean gap between
  predicted and observed win rates::

      ECE  =  Σ_b (n_b / N) · |mean_pred_b − win_rate_b|

A probability of exactly 1.0 falls in the last bin.  Mismatched lengths and
empty inputs raise ``ValueError``.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, Final, List, Sequence, Tuple

import numpy as np

DEFAULT_CALIBRATION_BINS: Final[int] = 10
LOG_LOSS_EPS: Final[float] = 1e-15


@dataclass(frozen=True)
class CalibrationBin:
    bin_start: float
    bin_end: float
    predicted_prob: float
    actual_prob: float
    count: int

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def _as_arrays(
    predictions: Sequence[float], outcomes: Sequence[float]
) -> Tuple[np.ndarray, np.ndarray]:
    p = np.asarray(predictions, dtype=float)
    y = np.asarray(outcomes, dtype=float)
    if p.shape != y.shape:
        raise ValueError(
            f"predictions and outcomes differ in length ({p.size} vs {y.size})"
        )
    if p.size == 0:
        raise ValueError("calibration metrics need at least one prediction")
    return p, y


def brier_score(predictions: Sequence[float], outcomes: Sequence[float]) -> float:
    """Mean of ``(p − y)²``.  0 is perfect; always guessing 0.5 scores 0.25."""
    p, y = _as_arrays(predictions, outcomes)
    return float(np.mean((p - y) ** 2))


def log_loss(
    predictions: Sequence[float],
    outcomes: Sequence[float],
    eps: float = LOG_LOSS_EPS,
) -> float:
    p, y = _as_arrays(predictions, outcomes)
    p = np.clip(p, eps, 1.0 - eps)
    return float(-np.mean(y * np.log(p) + (1.0 - y) * np.log(1.0 - p)))


def accuracy(
    predictions: Sequence[float],
    outcomes: Sequence[float],
    threshold: float = 0.5,
) -> float:
    """Share of games where ``p >= threshold`` matches the outcome."""
    p, y = _as_arrays(predictions, outcomes)
    return float(np.mean((p >= threshold) == (y >= 0.5)))


def calibration_bins(
    predictions: Sequence[float],
    outcomes: Sequence[float],
    bins: int = DEFAULT_CALIBRATION_BINS,
) -> List[CalibrationBin]:
    """Non-empty reliability bins, lowest first.

    Bin ``i`` covers ``[i/bins, (i+1)/bins)``.

    Examples::

        calibration_bins([0.12, 0.18, 0.91], [0, 1, 1])
        → [CalibrationBin(0.1, 0.2, 0.15, 0.5, 2),
           CalibrationBin(0.9, 1.0, 0.91, 1.0, 1)]
    """
    if bins < 1:
        raise ValueError("bins must be >= 1")
    p, y = _as_arrays(predictions, outcomes)

    idx = np.clip(np.floor(p * bins).astype(int), 0, bins - 1)
    result = []
    for i in range(bins):
        mask = idx == i
        count = int(mask.sum())
        if count == 0:
            continue
        result.append(CalibrationBin(
            bin_start=i / bins,
            bin_end=(i + 1) / bins,
            predicted_prob=float(p[mask].mean()),
            actual_prob=float(y[mask].mean()),
            count=count,
        ))
    return result


def expected_calibration_error(
    predictions: Sequence[float],
    outcomes: Sequence[float],
    bins: int = DEFAULT_CALIBRATION_BINS,
) -> float:
    table = calibration_bins(predictions, outcomes, bins)
    total = sum(b.count for b in table)
    return float(sum(b.count / total * abs(b.predicted_prob - b.actual_prob) for b in table))


def evaluate_predictions(
    predictions: Sequence[float],
    outcomes: Sequence[float],
    bins: int = DEFAULT_CALIBRATION_BINS,
) -> Dict[str, float]:
    """The metrics dict stored on a model version after evaluation."""
    return {
        "brier_score": brier_score(predictions, outcomes),
        "log_loss": log_loss(predictions, outcomes),
        "calibration": expected_calibration_error(predictions, outcomes, bins),
        "accuracy": accuracy(predictions, outcomes),
        "sample_size": len(predictions),
    }
