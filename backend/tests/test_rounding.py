"""
Rounding Tests - luxury price steps and supplement rounding

Tests:
1. Retail prices land on xx00 / xx90, never negative, idempotent
2. Ties resolve to the lower candidate
3. Supplement strategies: step and luxury-ceil, with minimum
"""

import math

import pytest

from bijou_pricing.rounding import (
    apply_percentage,
    round_supplement_value,
    round_to_luxury_step,
)


class TestLuxuryStep:
    """Test nearest xx00 / xx90 rounding"""

    @pytest.mark.parametrize("value,expected", [
        (1540, 1500),
        (1560, 1590),
        (1500, 1500),
        (1590, 1590),
        (1650, 1690),
        (1596, 1600),
        (0, 0),
    ])
    def test_known_values(self, value, expected):
        assert round_to_luxury_step(value) == expected

    def test_tie_goes_to_lower_candidate(self):
        """1995 is 5 away from both 1990 and 2000"""
        assert round_to_luxury_step(1995) == 1990
        assert round_to_luxury_step(1545) == 1500

    def test_result_shape_over_range(self):
        for value in range(0, 6000, 7):
            rounded = round_to_luxury_step(value)
            assert rounded >= 0
            assert rounded % 100 in (0, 90), f"{value} → {rounded}"
            assert round_to_luxury_step(rounded) == rounded

    def test_negative_clamped_to_zero(self):
        assert round_to_luxury_step(-50) == 0
        assert round_to_luxury_step(-1234) == 0

    def test_non_finite_is_zero(self):
        assert round_to_luxury_step(math.nan) == 0
        assert round_to_luxury_step(math.inf) == 0
        assert round_to_luxury_step(None) == 0

    def test_apply_percentage(self):
        assert apply_percentage(1000, 10) == 1100
        assert apply_percentage(1500, 5) == 1590
        assert apply_percentage(1500, 0) == 1500
        assert apply_percentage(1000, -10) == 900


class TestSupplementRounding:
    """Test admin supplement rounding"""

    def test_default_is_luxury_ceil(self):
        assert round_supplement_value(123) == 150
        assert round_supplement_value(151) == 190
        assert round_supplement_value(191) == 200
        assert round_supplement_value(50) == 50
        assert round_supplement_value(0) == 0

    def test_luxury_ceil_floors_fractions_first(self):
        assert round_supplement_value(150.7) == 150

    def test_step_strategy(self):
        assert round_supplement_value(123, step=10, strategy="step") == 130
        assert round_supplement_value(120, step=10, strategy="step") == 120
        assert round_supplement_value(22.3, step=1, strategy="step") == 23

    def test_minimum_applies(self):
        assert round_supplement_value(-20) == 0
        assert round_supplement_value(5, minimum=50) == 50
        assert round_supplement_value(math.nan, minimum=10) == 10

    def test_unknown_strategy_rejected(self):
        with pytest.raises(ValueError):
            round_supplement_value(100, strategy="nearest")

    def test_step_must_be_positive(self):
        with pytest.raises(ValueError):
            round_supplement_value(100, step=0, strategy="step")
