"""Tests for PSI estimation and the drift verdict reduction."""

from types import SimpleNamespace

import pytest

from edgeloop.core.drift import (
    OVERALL_KEY,
    batch_detect_drift,
    calculate_psi,
    detect_drift,
    is_drifted,
    latest_per_feature,
    summarize_drift,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _row(feature, value, drifted, metric_type="psi"):
    """Synthetic stored drift-metric row."""
    return SimpleNamespace(
        metric_type=metric_type,
        feature_name=feature,
        value=value,
        is_drifted=drifted,
    )


REFERENCE = [i / 100 for i in range(100)]


# ---------------------------------------------------------------------------
# PSI
# ---------------------------------------------------------------------------

class TestCalculatePsi:
    def test_identical_samples(self):
        assert calculate_psi(REFERENCE, list(REFERENCE)) == pytest.approx(0.0, abs=1e-12)

    def test_shifted_sample_drifts(self):
        shifted = [0.9 + i / 1000 for i in range(100)]
        psi = calculate_psi(REFERENCE, shifted)
        assert psi > 0.2
        assert is_drifted(psi)

    def test_psi_is_non_negative(self):
        skewed = [x ** 2 for x in REFERENCE]
        assert calculate_psi(REFERENCE, skewed) >= 0.0

    @pytest.mark.parametrize("reference,current", [
        ([], [1.0, 2.0]),
        ([1.0, 2.0], []),
        ([3.0, 3.0], [3.0, 3.0, 3.0]),
        ([float("nan")], [1.0]),
    ])
    def test_uninformative_samples(self, reference, current):
        assert calculate_psi(reference, current) == 0.0

    def test_threshold_is_strict(self):
        assert not is_drifted(0.2)
        assert is_drifted(0.2000001)


class TestDetectDrift:
    def test_single_feature_report(self):
        report = detect_drift("pace", REFERENCE, REFERENCE)
        assert report.feature_name == "pace"
        assert report.threshold == 0.2
        assert not report.is_drifted

    def test_batch(self):
        shifted = [0.9 + i / 1000 for i in range(100)]
        reports = batch_detect_drift({
            "stable": (REFERENCE, REFERENCE),
            "moved": (REFERENCE, shifted),
        })
        assert [r.feature_name for r in reports] == ["stable", "moved"]
        assert [r.is_drifted for r in reports] == [False, True]


# ---------------------------------------------------------------------------
# Verdict reduction
# ---------------------------------------------------------------------------

class TestSummarizeDrift:
    def test_newest_row_per_feature_wins(self):
        rows = [
            _row("a", 0.30, True),
            _row("b", 0.10, False),
            _row("c", 0.30, True),
            _row("a", 0.05, False),  # older duplicate, ignored
        ]
        verdict = summarize_drift("v3", rows)

        assert verdict.model_version == "v3"
        assert verdict.is_drifted
        assert verdict.overall_psi == pytest.approx(0.7 / 3)
        assert verdict.drifted_features == ["a", "c"]
        assert verdict.feature_psi == {"a": 0.30, "b": 0.10, "c": 0.30}

    def test_no_rows_is_not_drifted(self):
        verdict = summarize_drift("v1", [])
        assert not verdict.is_drifted
        assert verdict.overall_psi == 0.0
        assert verdict.drifted_features == []

    def test_non_psi_rows_ignored(self):
        rows = [
            _row("a", 0.9, True, metric_type="ks"),
            _row("b", 0.1, False),
        ]
        verdict = summarize_drift("v1", rows)
        assert not verdict.is_drifted
        assert verdict.overall_psi == pytest.approx(0.1)
        assert verdict.feature_psi == {"b": 0.1}

    def test_whole_model_rows_share_one_key(self):
        rows = [
            _row(None, 0.4, True),
            _row(None, 0.01, False),
        ]
        verdict = summarize_drift("v1", rows)
        assert verdict.drifted_features == [OVERALL_KEY]
        assert verdict.overall_psi == pytest.approx(0.4)

    def test_latest_per_feature(self):
        rows = [_row("a", 0.3, True), _row("a", 0.1, False), _row(None, 0.2, False)]
        latest = latest_per_feature(rows)
        assert [(r.feature_name, r.value) for r in latest] == [("a", 0.3), (None, 0.2)]

    def test_to_dict(self):
        d = summarize_drift("v3", [_row("a", 0.3, True)]).to_dict()
        assert d == {
            "model_version": "v3",
            "is_drifted": True,
            "overall_psi": 0.3,
            "drifted_features": ["a"],
            "feature_psi": {"a": 0.3},
        }
