"""
Model drift monitor.

Records per-feature distribution-distance metrics against a model version
and reduces the recent history to a single verdict.

Public API:
  DriftMonitor.record_metric(...)        → DriftMetric   (append-only)
  DriftMonitor.record_feature_psi(...)   → DriftMetric   (computes PSI from samples)
  DriftMonitor.latest_metrics(version)   → List[DriftMetric]  (newest per feature)
  DriftMonitor.check_for_drift(version)  → DriftVerdict

Verdicts are a pure function of stored history, so concurrent or repeated
checks are harmless.  The reduction itself lives in ``edgeloop.core.drift``.
"""

import logging
from datetime import datetime
from typing import List, Optional, Sequence

from edgeloop.core.drift import (
    DEFAULT_PSI_THRESHOLD,
    METRIC_TYPES,
    PSI,
    DriftVerdict,
    calculate_psi,
    latest_per_feature,
    summarize_drift,
)
from edgeloop.database import Database
from edgeloop.models import DriftMetric

logger = logging.getLogger(__name__)

# Most recent rows scanned per verdict (bounds query cost)
DEFAULT_WINDOW = 100


class DriftMonitor:
    def __init__(
        self,
        database: Database,
        window: int = DEFAULT_WINDOW,
        psi_threshold: float = DEFAULT_PSI_THRESHOLD,
    ):
        self._db = database
        self.window = window
        self.psi_threshold = psi_threshold

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record_metric(
        self,
        model_version: str,
        metric_type: str,
        value: float,
        threshold: float,
        window_start: datetime,
        window_end: datetime,
        feature_name: Optional[str] = None,
        is_drifted: Optional[bool] = None,
    ) -> DriftMetric:
        """
        Append one observation.

        ``is_drifted`` defaults to ``value > threshold`` when the caller does
        not supply its own judgement.
        """
        if metric_type not in METRIC_TYPES:
            raise ValueError(
                f"Unknown drift metric type {metric_type!r}; expected one of {METRIC_TYPES}"
            )
        if window_end < window_start:
            raise ValueError("window_end must not precede window_start")

        if is_drifted is None:
            is_drifted = value > threshold

        metric = DriftMetric(
            model_version=model_version,
            metric_type=metric_type,
            feature_name=feature_name,
            value=float(value),
            threshold=float(threshold),
            is_drifted=bool(is_drifted),
            window_start=window_start,
            window_end=window_end,
        )
        with self._db.session() as db:
            db.add(metric)
            db.flush()

        logger.debug(
            "Drift metric %s/%s[%s] = %.4f (threshold %.4f, drifted=%s)",
            model_version, metric_type, feature_name or "overall",
            value, threshold, is_drifted,
        )
        return metric

    def record_feature_psi(
        self,
        model_version: str,
        feature_name: Optional[str],
        reference: Sequence[float],
        current: Sequence[float],
        window_start: datetime,
        window_end: datetime,
        threshold: Optional[float] = None,
    ) -> DriftMetric:
        """Compute PSI between a reference and a current sample and record it."""
        threshold = self.psi_threshold if threshold is None else threshold
        psi = calculate_psi(reference, current)
        return self.record_metric(
            model_version=model_version,
            metric_type=PSI,
            value=psi,
            threshold=threshold,
            window_start=window_start,
            window_end=window_end,
            feature_name=feature_name,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def recent_metrics(self, model_version: str) -> List[DriftMetric]:
        """Newest-first history for one version, bounded to ``window`` rows."""
        with self._db.session() as db:
            return (
                db.query(DriftMetric)
                .filter(DriftMetric.model_version == model_version)
                .order_by(DriftMetric.created_at.desc(), DriftMetric.id.desc())
                .limit(self.window)
                .all()
            )

    def latest_metrics(self, model_version: str) -> List[DriftMetric]:
        """Most recent row per feature (whole-model rows share one key)."""
        return latest_per_feature(self.recent_metrics(model_version))

    def check_for_drift(self, model_version: str) -> DriftVerdict:
        verdict = summarize_drift(model_version, self.recent_metrics(model_version))
        if verdict.is_drifted:
            logger.warning(
                "Drift detected for %s: mean PSI %.4f, drifted features: %s",
                model_version, verdict.overall_psi, ", ".join(verdict.drifted_features),
            )
        else:
            logger.info("No drift for %s (mean PSI %.4f)", model_version, verdict.overall_psi)
        return verdict
