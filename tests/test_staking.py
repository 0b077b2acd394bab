"""Tests for core.staking: decision labels, unit stakes and Kelly."""

import pytest

from propedge.core.staking import (
    LEAN,
    LOCK,
    LOW_CONFIDENCE,
    PASS,
    STRONG_LEAN,
    classify_confidence,
    kelly_fraction,
    suggested_stake,
)


@pytest.mark.parametrize("confidence, label", [
    (72.0, LOCK),
    (70.0, LOCK),
    (68.0, STRONG_LEAN),
    (67.5, STRONG_LEAN),
    (66.0, LEAN),
    (65.0, LEAN),
    (58.0, LOW_CONFIDENCE),
    (55.0, LOW_CONFIDENCE),
    (54.9, PASS),
    (49.9, PASS),
])
def test_classify_confidence(confidence, label):
    assert classify_confidence(confidence) == label


@pytest.mark.parametrize("confidence, label", [
    (72.0, LOCK),
    (66.0, LEAN),
    (60.0, PASS),
    (55.0, PASS),
])
def test_moneyline_has_no_low_confidence_band(confidence, label):
    assert classify_confidence(confidence, low_confidence_band=False) == label


def test_low_confidence_label_text():
    assert LOW_CONFIDENCE == "OVER/UNDER (Low Confidence)"


class TestSuggestedStake:

    def test_below_lean_stakes_nothing(self):
        assert suggested_stake(60.0) == 0.0

    def test_bounds(self):
        assert suggested_stake(65.0) == 1.0
        assert suggested_stake(100.0) == 5.0

    def test_linear_midpoint(self):
        assert suggested_stake(82.5) == 3.0

    def test_half_unit_steps(self):
        units = suggested_stake(71.3)
        assert units * 2 == int(units * 2)

    def test_house_bias_halves(self):
        assert suggested_stake(82.5, house_bias=0.05) == 1.5
        assert suggested_stake(82.5, house_bias=0.04) == 3.0


class TestKelly:

    def test_capped(self):
        assert kelly_fraction(0.6, 2.0) == pytest.approx(0.05)

    def test_quarter_kelly(self):
        assert kelly_fraction(0.55, 2.0) == pytest.approx(0.025)

    def test_negative_edge_is_zero(self):
        assert kelly_fraction(0.4, 2.0) == 0.0

    def test_unusable_odds(self):
        assert kelly_fraction(0.6, 1.0) == 0.0
