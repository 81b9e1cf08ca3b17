"""
Tests for odds conversion and vig removal
Run with: pytest tests/test_odds_math.py -v
"""

import math

import pytest

from edgeloop.core.odds_math import (
    american_from_decimal,
    american_odds_from_probability,
    decimal_from_american,
    format_american_odds,
    implied_probability,
    remove_vig,
)


class TestImpliedProbability:
    def test_favourite(self):
        assert implied_probability(-110) == pytest.approx(110 / 210)

    def test_underdog(self):
        assert implied_probability(150) == pytest.approx(0.4)

    def test_even_money_both_signs(self):
        assert implied_probability(100) == pytest.approx(0.5)
        assert implied_probability(-100) == pytest.approx(0.5)

    @pytest.mark.parametrize("odds", [0, float("nan"), float("inf"), float("-inf")])
    def test_degenerate_price_is_neutral(self, odds):
        assert implied_probability(odds) == 0.5

    @pytest.mark.parametrize("odds", [-100000, -5000, -110, -101, 101, 120, 5000, 100000])
    def test_always_inside_unit_interval(self, odds):
        p = implied_probability(odds)
        assert 0.0 < p < 1.0

    @pytest.mark.parametrize("odds", [-1e20, -1e17, 1e-20, 1e17, 1e20])
    def test_extreme_prices_stay_strictly_inside_unit_interval(self, odds):
        p = implied_probability(odds)
        assert 0.0 < p < 1.0


class TestAmericanFromProbability:
    def test_favourite(self):
        assert american_odds_from_probability(0.6) == -150

    def test_underdog(self):
        assert american_odds_from_probability(0.4) == 150

    def test_coin_flip_prices_as_favourite(self):
        assert american_odds_from_probability(0.5) == -100

    @pytest.mark.parametrize("odds", [-10000, -333, -150, -110, -101, 101, 115, 150, 275, 10000])
    def test_round_trip_within_one_unit(self, odds):
        assert abs(american_odds_from_probability(implied_probability(odds)) - odds) <= 1

    def test_plus_100_prices_as_minus_100(self):
        assert american_odds_from_probability(implied_probability(100)) == -100

    @pytest.mark.parametrize("prob", [0.0, 1.0, -0.2, 1.5, float("nan")])
    def test_out_of_range_has_no_price(self, prob):
        assert american_odds_from_probability(prob) == 0


class TestDecimalConversion:
    def test_decimal_from_american(self):
        assert decimal_from_american(-110) == pytest.approx(1.909091, abs=1e-6)
        assert decimal_from_american(150) == pytest.approx(2.5)

    def test_degenerate_price_is_even_money(self):
        assert decimal_from_american(0) == 2.0
        assert decimal_from_american(float("nan")) == 2.0

    def test_american_from_decimal(self):
        assert american_from_decimal(2.5) == 150
        assert american_from_decimal(1.909091) == -110
        assert american_from_decimal(2.0) == 100

    @pytest.mark.parametrize("decimal_odds", [1.0, 0.5, 0.0, -2.0, float("inf"), float("nan")])
    def test_unprofitable_decimal_has_no_price(self, decimal_odds):
        assert american_from_decimal(decimal_odds) == 0

    @pytest.mark.parametrize("odds", [-10000, -250, -110, -100, -50, 50, 100, 101, 150, 10000])
    def test_round_trip_preserves_decimal(self, odds):
        dec = decimal_from_american(odds)
        assert decimal_from_american(american_from_decimal(dec)) == pytest.approx(dec)

    def test_plus_and_minus_100_are_the_same_price(self):
        assert american_from_decimal(decimal_from_american(-100)) == 100


class TestFormatting:
    @pytest.mark.parametrize("odds,expected", [(150, "+150"), (-110, "-110"), (0, "0")])
    def test_format(self, odds, expected):
        assert format_american_odds(odds) == expected


class TestRemoveVig:
    def test_symmetric_market(self):
        fair = remove_vig([-110, -110])
        assert fair == [0.5, 0.5]
        assert sum(fair) == 1.0

    def test_asymmetric_market(self):
        fair = remove_vig([-150, 130])
        assert fair[0] == pytest.approx(0.5798, abs=1e-4)
        assert fair[1] == pytest.approx(0.4202, abs=1e-4)
        assert math.fsum(fair) == pytest.approx(1.0)

    def test_three_way_market_sums_to_one(self):
        fair = remove_vig([250, 230, -105])
        assert len(fair) == 3
        assert math.fsum(fair) == pytest.approx(1.0)
        assert fair[2] == max(fair)

    def test_single_price_normalises_to_one(self):
        assert remove_vig([120]) == [1.0]

    def test_empty_market_rejected(self):
        with pytest.raises(ValueError):
            remove_vig([])
