"""Tests for TIME-model disposition classification."""

import pytest

from portfolio_register.classifier import HEALTH_THRESHOLD, classify, tone_for
from portfolio_register.schema import BusinessValue, DispositionLabel


class TestClassify:
    """Tests for classify()."""

    @pytest.mark.parametrize("value,health,expected", [
        (BusinessValue.CRITICAL, 70, DispositionLabel.INVEST),
        (BusinessValue.HIGH, 100, DispositionLabel.INVEST),
        (BusinessValue.HIGH, 69, DispositionLabel.MIGRATE),
        (BusinessValue.CRITICAL, 0, DispositionLabel.MIGRATE),
        (BusinessValue.STANDARD, 70, DispositionLabel.TOLERATE),
        (BusinessValue.STANDARD, 69, DispositionLabel.ELIMINATE),
        (BusinessValue.DEPRECATED, 100, DispositionLabel.ELIMINATE),
        (BusinessValue.DEPRECATED, 0, DispositionLabel.ELIMINATE),
    ])
    def test_quadrants(self, value, health, expected):
        assert classify(value, health).label == expected

    def test_threshold_is_inclusive(self):
        assert HEALTH_THRESHOLD == 70
        assert classify(BusinessValue.HIGH, HEALTH_THRESHOLD).label == DispositionLabel.INVEST
        assert classify(BusinessValue.HIGH, HEALTH_THRESHOLD - 1).label == DispositionLabel.MIGRATE

    def test_deprecated_is_never_tolerated(self):
        """A healthy deprecated app is still eliminated."""
        result = classify(BusinessValue.DEPRECATED, 95)
        assert result.label == DispositionLabel.ELIMINATE
        assert result.rationale == "deprecated"

    def test_rationales(self):
        assert classify(BusinessValue.HIGH, 90).rationale == "high-value/high-health"
        assert classify(BusinessValue.HIGH, 10).rationale == "high-value/low-health"
        assert classify(BusinessValue.STANDARD, 90).rationale == "standard-value/high-health"
        assert classify(BusinessValue.STANDARD, 10).rationale == "standard-value/low-health"

    def test_total_over_all_inputs(self):
        for value in BusinessValue:
            for health in range(0, 101):
                assert classify(value, health).label in DispositionLabel


class TestTone:
    """Tests for display tones."""

    def test_tones(self):
        assert tone_for(classify(BusinessValue.HIGH, 90)) == "green"
        assert tone_for(classify(BusinessValue.HIGH, 10)) == "red"
        assert tone_for(classify(BusinessValue.STANDARD, 90)) == "blue"
        assert tone_for(classify(BusinessValue.DEPRECATED, 90)) == "gray"
