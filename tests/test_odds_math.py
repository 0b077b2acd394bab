"""Tests for core.odds_math."""

import math

import pytest

from propedge.core.odds_math import (
    american_to_decimal,
    implied_prob,
    normalize_prob_pair,
    prob_to_american,
    remove_vig_proportional,
    safe_implied_prob,
)


class TestImpliedProb:

    @pytest.mark.parametrize("odds, expected", [
        (-110, 0.5238),
        (+120, 0.4545),
        (-150, 0.6000),
        (+100, 0.5000),
    ])
    def test_known_prices(self, odds, expected):
        assert implied_prob(odds) == pytest.approx(expected, abs=1e-4)

    @pytest.mark.parametrize("bad", [0, float("nan"), float("inf")])
    def test_rejects_unusable_prices(self, bad):
        with pytest.raises(ValueError):
            implied_prob(bad)

    @pytest.mark.parametrize("bad", [None, 0, float("nan"), "abc"])
    def test_safe_variant_returns_none(self, bad):
        assert safe_implied_prob(bad) is None

    def test_safe_variant_passes_good_price(self):
        assert safe_implied_prob(-150) == pytest.approx(0.6)


class TestConversions:

    def test_american_to_decimal(self):
        assert american_to_decimal(+150) == pytest.approx(2.5)
        assert american_to_decimal(-110) == pytest.approx(1.9091, abs=1e-4)

    @pytest.mark.parametrize("prob, expected", [
        (0.6, -150.0),
        (0.4, 150.0),
        (0.5, 100.0),
    ])
    def test_prob_to_american(self, prob, expected):
        assert prob_to_american(prob) == pytest.approx(expected)

    @pytest.mark.parametrize("price", [-300, -110, 100, 145, 450])
    def test_price_survives_probability_round_trip(self, price):
        assert prob_to_american(implied_prob(price)) == pytest.approx(price, abs=1e-6)

    def test_prob_to_american_rejects_certainty(self):
        with pytest.raises(ValueError):
            prob_to_american(1.0)


class TestVigRemoval:

    def test_symmetric_market_is_even(self):
        a, b = remove_vig_proportional(-110, -110)
        assert a == pytest.approx(0.5)
        assert b == pytest.approx(0.5)

    def test_pair_sums_to_one(self):
        a, b = remove_vig_proportional(-120, 100)
        assert a + b == pytest.approx(1.0)
        assert a > b

    def test_degenerate_pair_is_neutral(self):
        assert normalize_prob_pair(0.0, 0.0) == (0.5, 0.5)
        assert normalize_prob_pair(math.nan, 0.5) == (0.5, 0.5)
