"""Tests for drift_monitor.py — storage-backed drift metrics and verdicts."""

from datetime import datetime, timedelta

import pytest

from edgeloop.core.drift import OVERALL_KEY
from edgeloop.services.drift_monitor import DriftMonitor


WINDOW_START = datetime(2026, 3, 1)
WINDOW_END = datetime(2026, 3, 8)


def _record(monitor, feature, value, drifted=None, version="v3", metric_type="psi", threshold=0.2):
    return monitor.record_metric(
        model_version=version,
        metric_type=metric_type,
        value=value,
        threshold=threshold,
        window_start=WINDOW_START,
        window_end=WINDOW_END,
        feature_name=feature,
        is_drifted=drifted,
    )


# ---------------------------------------------------------------------------
# Recording
# ---------------------------------------------------------------------------

class TestRecordMetric:
    def test_is_drifted_defaults_to_threshold_comparison(self, monitor):
        assert _record(monitor, "a", 0.25).is_drifted is True
        assert _record(monitor, "b", 0.2).is_drifted is False

    def test_explicit_judgement_kept(self, monitor):
        assert _record(monitor, "a", 0.05, drifted=True).is_drifted is True

    def test_unknown_metric_type_rejected(self, monitor):
        with pytest.raises(ValueError):
            _record(monitor, "a", 0.1, metric_type="kl")

    def test_inverted_window_rejected(self, monitor):
        with pytest.raises(ValueError):
            monitor.record_metric(
                model_version="v3",
                metric_type="psi",
                value=0.1,
                threshold=0.2,
                window_start=WINDOW_END,
                window_end=WINDOW_START,
            )

    def test_record_feature_psi(self, monitor):
        reference = [i / 100 for i in range(100)]
        current = [0.9 + i / 1000 for i in range(100)]
        metric = monitor.record_feature_psi(
            "v3", "pace", reference, current, WINDOW_START, WINDOW_END
        )
        assert metric.metric_type == "psi"
        assert metric.threshold == 0.2
        assert metric.value > 0.2
        assert metric.is_drifted is True


# ---------------------------------------------------------------------------
# Verdicts
# ---------------------------------------------------------------------------

class TestCheckForDrift:
    def test_latest_value_per_feature(self, monitor):
        _record(monitor, "a", 0.05)            # older duplicate of a
        _record(monitor, "c", 0.30, True)
        _record(monitor, "b", 0.10, False)
        _record(monitor, "a", 0.30, True)

        verdict = monitor.check_for_drift("v3")
        assert verdict.is_drifted
        assert verdict.overall_psi == pytest.approx(0.2333, abs=1e-4)
        assert set(verdict.drifted_features) == {"a", "c"}
        assert verdict.feature_psi["a"] == pytest.approx(0.30)

    def test_no_metrics_no_drift(self, monitor):
        verdict = monitor.check_for_drift("v3")
        assert not verdict.is_drifted
        assert verdict.overall_psi == 0.0

    def test_versions_are_isolated(self, monitor):
        _record(monitor, "a", 0.9, True, version="v2")
        assert not monitor.check_for_drift("v3").is_drifted

    def test_ks_rows_do_not_drive_verdict(self, monitor):
        _record(monitor, "a", 0.9, True, metric_type="ks", threshold=0.1)
        _record(monitor, "b", 0.05)
        verdict = monitor.check_for_drift("v3")
        assert not verdict.is_drifted
        assert verdict.overall_psi == pytest.approx(0.05)

    def test_whole_model_metric(self, monitor):
        _record(monitor, None, 0.35, True)
        verdict = monitor.check_for_drift("v3")
        assert verdict.drifted_features == [OVERALL_KEY]

    def test_window_bounds_history(self, database):
        monitor = DriftMonitor(database, window=2)
        _record(monitor, "old", 0.9, True)
        _record(monitor, "a", 0.1)
        _record(monitor, "b", 0.1)

        verdict = monitor.check_for_drift("v3")
        assert not verdict.is_drifted
        assert set(verdict.feature_psi) == {"a", "b"}

    def test_repeated_checks_agree(self, monitor):
        _record(monitor, "a", 0.3, True)
        assert monitor.check_for_drift("v3") == monitor.check_for_drift("v3")


class TestLatestMetrics:
    def test_one_row_per_feature(self, monitor):
        _record(monitor, "a", 0.05)
        _record(monitor, "a", 0.30, True)
        _record(monitor, None, 0.1)

        latest = monitor.latest_metrics("v3")
        assert sorted((m.feature_name or "", m.value) for m in latest) == [("", 0.1), ("a", 0.30)]
