"""Distribution-drift statistics and the drift verdict reduction.

Two layers, both pure:

1. **PSI estimation** — :func:`calculate_psi` compares a reference sample of
   a feature (training window) with a current sample (live window) using
   equal-width bins over the joint range::

       PSI  =  Σ_i (c_i − r_i) · ln(c_i / r_i)

   where ``r_i`` / ``c_i`` are the reference / current bin proportions, each
   padded by a small epsilon so empty bins never produce ``log(0)``.
   Conventional reading: < 0.1 stable, 0.1–0.2 moderate, > 0.2 drifted.

2. **Verdict reduction** — :func:`summarize_drift` turns the stored metric
   history for one model version into a single :class:`DriftVerdict`.

Only PSI rows drive the verdict.  KS and Wasserstein rows are stored and
deduplicated like any other metric but contribute to neither the mean nor
the drifted-feature list.

Nothing in this module imports from ``edgeloop.services`` or
``edgeloop.models``; stored rows are consumed through the
:class:`DriftObservation` protocol.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final, Iterable, Mapping, Optional, Protocol, Sequence

import numpy as np

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

PSI: Final[str] = "psi"
KS: Final[str] = "ks"
WASSERSTEIN: Final[str] = "wasserstein"
METRIC_TYPES: Final[tuple[str, ...]] = (PSI, KS, WASSERSTEIN)

#: Feature key for metrics recorded against the whole model (feature_name NULL).
OVERALL_KEY: Final[str] = "__overall__"

DEFAULT_PSI_THRESHOLD: Final[float] = 0.2
DEFAULT_BINS: Final[int] = 10

_EPSILON: Final[float] = 1e-4


# ---------------------------------------------------------------------------
# PSI estimation
# ---------------------------------------------------------------------------


def calculate_psi(
    reference: Sequence[float],
    current: Sequence[float],
    bins: int = DEFAULT_BINS,
) -> float:
    """Population stability index between two samples of one feature.

    Args:
        reference: Baseline sample (e.g. the training window).
        current: Sample to compare (e.g. the last week of live inputs).
        bins: Number of equal-width bins spanning ``[min, max]`` of both
            samples combined.  The maximum value falls in the last bin.

    Returns:
        PSI ≥ 0.  Returns 0.0 when either sample is empty (after dropping
        non-finite values) or both samples are a single constant value.
    """
    ref = np.asarray(reference, dtype=float)
    cur = np.asarray(current, dtype=float)
    ref = ref[np.isfinite(ref)]
    cur = cur[np.isfinite(cur)]

    if ref.size == 0 or cur.size == 0 or bins < 1:
        return 0.0

    lo = min(ref.min(), cur.min())
    hi = max(ref.max(), cur.max())
    if lo == hi:
        return 0.0

    width = (hi - lo) / bins
    ref_props = _bin_proportions(ref, lo, width, bins)
    cur_props = _bin_proportions(cur, lo, width, bins)

    return float(np.sum((cur_props - ref_props) * np.log(cur_props / ref_props)))


def _bin_proportions(sample: np.ndarray, lo: float, width: float, bins: int) -> np.ndarray:
    idx = np.minimum(np.floor((sample - lo) / width).astype(int), bins - 1)
    counts = np.bincount(idx, minlength=bins)
    return counts / sample.size + _EPSILON


def is_drifted(psi: float, threshold: float = DEFAULT_PSI_THRESHOLD) -> bool:
    """Strictly-greater-than comparison: a PSI equal to the threshold is stable."""
    return psi > threshold


@dataclass(frozen=True)
class FeatureDriftReport:
    feature_name: str
    psi: float
    threshold: float
    is_drifted: bool


def detect_drift(
    feature_name: str,
    reference: Sequence[float],
    current: Sequence[float],
    threshold: float = DEFAULT_PSI_THRESHOLD,
) -> FeatureDriftReport:
    psi = calculate_psi(reference, current)
    return FeatureDriftReport(
        feature_name=feature_name,
        psi=psi,
        threshold=threshold,
        is_drifted=is_drifted(psi, threshold),
    )


def batch_detect_drift(
    features: Mapping[str, tuple[Sequence[float], Sequence[float]]],
    threshold: float = DEFAULT_PSI_THRESHOLD,
) -> list[FeatureDriftReport]:
    """Run :func:`detect_drift` over ``{name: (reference, current)}``."""
    return [
        detect_drift(name, reference, current, threshold)
        for name, (reference, current) in features.items()
    ]


# ---------------------------------------------------------------------------
# Verdict reduction
# ---------------------------------------------------------------------------


class DriftObservation(Protocol):
    """Shape of one stored drift-metric row as seen by the reduction."""

    metric_type: str
    feature_name: Optional[str]
    value: float
    is_drifted: bool


@dataclass(frozen=True)
class DriftVerdict:
    """Overall drift status of one model version.

    Attributes:
        model_version: Version string the metrics were recorded against.
        is_drifted: True iff at least one current PSI row is flagged drifted.
        overall_psi: Arithmetic mean of the current PSI values (0.0 when
            there are none: no evidence means no drift).
        drifted_features: Feature keys of the drifted PSI rows, newest row
            first.  Whole-model rows use :data:`OVERALL_KEY`.
        feature_psi: ``{feature key: PSI value}`` for every current PSI row.
    """

    model_version: str
    is_drifted: bool
    overall_psi: float
    drifted_features: list[str] = field(default_factory=list)
    feature_psi: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "model_version": self.model_version,
            "is_drifted": self.is_drifted,
            "overall_psi": self.overall_psi,
            "drifted_features": list(self.drifted_features),
            "feature_psi": dict(self.feature_psi),
        }


def feature_key(feature_name: Optional[str]) -> str:
    return feature_name if feature_name is not None else OVERALL_KEY


def latest_per_feature(metrics: Iterable[DriftObservation]) -> list[DriftObservation]:
    """Keep the first row seen for each feature key.

    ``metrics`` must be ordered newest-first; rows are append-only, so
    first-wins is last-write-wins per feature without re-sorting by time.
    """
    latest: dict[str, DriftObservation] = {}
    for metric in metrics:
        latest.setdefault(feature_key(metric.feature_name), metric)
    return list(latest.values())


def summarize_drift(model_version: str, metrics: Iterable[DriftObservation]) -> DriftVerdict:
    """Reduce newest-first metric history to a :class:`DriftVerdict`.

    Example — three PSI features plus an older duplicate of ``a``::

        rows = [a=0.30 drifted, b=0.10, c=0.30 drifted, a=0.05 (older)]
        summarize_drift("v3", rows)
        → is_drifted=True, overall_psi≈0.2333, drifted_features=["a", "c"]
    """
    current = latest_per_feature(metrics)
    psi_rows = [m for m in current if m.metric_type == PSI]

    feature_psi = {feature_key(m.feature_name): float(m.value) for m in psi_rows}
    drifted = [feature_key(m.feature_name) for m in psi_rows if m.is_drifted]
    overall = sum(feature_psi.values()) / len(psi_rows) if psi_rows else 0.0

    return DriftVerdict(
        model_version=model_version,
        is_drifted=bool(drifted),
        overall_psi=overall,
        drifted_features=drifted,
        feature_psi=feature_psi,
    )
