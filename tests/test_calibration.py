"""Tests for calibration metrics and model evaluation."""

import math

import pytest

from edgeloop.core.calibration import (
    CalibrationBin,
    accuracy,
    brier_score,
    calibration_bins,
    evaluate_predictions,
    expected_calibration_error,
    log_loss,
)


class TestScores:
    def test_brier(self):
        assert brier_score([0.8, 0.3], [True, False]) == pytest.approx(0.065)

    def test_brier_coin_flip(self):
        assert brier_score([0.5] * 4, [1, 0, 1, 0]) == pytest.approx(0.25)

    def test_log_loss(self):
        expected = -(math.log(0.8) + math.log(0.7)) / 2
        assert log_loss([0.8, 0.3], [1, 0]) == pytest.approx(expected)

    def test_log_loss_confident_miss_is_finite(self):
        loss = log_loss([0.0, 1.0], [1, 0])
        assert math.isfinite(loss)
        assert loss == pytest.approx(-math.log(1e-15))

    def test_accuracy(self):
        assert accuracy([0.8, 0.3, 0.6, 0.5], [1, 0, 0, 0]) == pytest.approx(0.5)

    @pytest.mark.parametrize("metric", [brier_score, log_loss, accuracy, expected_calibration_error])
    def test_length_mismatch_rejected(self, metric):
        with pytest.raises(ValueError):
            metric([0.6, 0.4], [1])

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            brier_score([], [])


class TestCalibrationBins:
    def test_non_empty_bins_only(self):
        table = calibration_bins([0.12, 0.18, 0.91], [0, 1, 1])
        assert len(table) == 2
        low, high = table
        assert isinstance(low, CalibrationBin)
        assert (low.bin_start, low.bin_end, low.count) == (pytest.approx(0.1), pytest.approx(0.2), 2)
        assert low.predicted_prob == pytest.approx(0.15)
        assert low.actual_prob == pytest.approx(0.5)
        assert high.count == 1

    def test_certain_prediction_lands_in_last_bin(self):
        (only,) = calibration_bins([1.0], [1])
        assert only.bin_start == pytest.approx(0.9)
        assert only.bin_end == pytest.approx(1.0)

    def test_custom_bin_count(self):
        table = calibration_bins([0.1, 0.4, 0.6, 0.9], [0, 0, 1, 1], bins=2)
        assert [b.count for b in table] == [2, 2]

    def test_invalid_bin_count(self):
        with pytest.raises(ValueError):
            calibration_bins([0.5], [1], bins=0)

    def test_expected_calibration_error(self):
        # 2/3 · |0.15 − 0.5| + 1/3 · |0.91 − 1.0|
        ece = expected_calibration_error([0.12, 0.18, 0.91], [0, 1, 1])
        assert ece == pytest.approx(2 / 3 * 0.35 + 1 / 3 * 0.09)

    def test_perfectly_calibrated(self):
        assert expected_calibration_error([0.25] * 4, [1, 0, 0, 0]) == pytest.approx(0.0)


class TestEvaluatePredictions:
    def test_metric_keys(self):
        metrics = evaluate_predictions([0.8, 0.3], [True, False])
        assert set(metrics) == {"brier_score", "log_loss", "calibration", "accuracy", "sample_size"}
        assert metrics["sample_size"] == 2
        assert metrics["accuracy"] == 1.0


class TestRegistryEvaluate:
    def test_metrics_stored_on_version(self, registry):
        registry.create_version("v1", model_type="xgboost")
        registry.record_metrics("v1", {"roi": 0.04})

        model = registry.evaluate("v1", [0.8, 0.3], [True, False])

        assert model.metrics["brier_score"] == pytest.approx(0.065)
        assert model.metrics["sample_size"] == 2
        assert model.metrics["roi"] == 0.04
        assert registry.get_by_version("v1").metrics == model.metrics

    def test_unknown_version(self, registry):
        assert registry.evaluate("missing", [0.6], [True]) is None

    def test_mismatch_writes_nothing(self, registry):
        registry.create_version("v1", model_type="xgboost")
        with pytest.raises(ValueError):
            registry.evaluate("v1", [0.6, 0.4], [True])
        assert registry.get_by_version("v1").metrics is None
