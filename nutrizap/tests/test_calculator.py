"""Unit tests for the weight projection formulas."""

import math

import pytest

from nutrizap.core import logic
from nutrizap.core.schema import BMICategory, Sex


def test_compute_bmi_reference_value():
    assert logic.compute_bmi(70, 170) == pytest.approx(24.22, abs=0.01)


@pytest.mark.parametrize(
    "weight,height",
    [(0, 170), (70, 0), (-1, 170), (70, -170), (math.nan, 170), (70, math.inf)],
)
def test_compute_bmi_rejects_invalid_input(weight, height):
    with pytest.raises(logic.InvalidInputError):
        logic.compute_bmi(weight, height)


@pytest.mark.parametrize(
    "bmi,category",
    [
        (18.49, BMICategory.UNDERWEIGHT),
        (18.5, BMICategory.NORMAL),
        (24.99, BMICategory.NORMAL),
        (25.0, BMICategory.OVERWEIGHT),
        (29.99, BMICategory.OVERWEIGHT),
        (30.0, BMICategory.OBESE),
    ],
)
def test_bmi_category_boundaries(bmi, category):
    assert logic.bmi_category(bmi) is category


def test_evaluate_bmi_combines_value_and_category():
    result = logic.evaluate_bmi(90, 170)
    assert result.value == pytest.approx(31.14, abs=0.01)
    assert result.category is BMICategory.OBESE


@pytest.mark.parametrize("height", [100, 150.5, 170, 199.9])
def test_ideal_weight_formula(height):
    assert logic.compute_ideal_weight(height) == pytest.approx(21.5 * (height / 100) ** 2)


def test_ideal_weight_sentinel_and_display():
    assert logic.compute_ideal_weight(0) == 0.0
    assert logic.compute_ideal_weight(-10) == 0.0
    assert logic.format_kg(logic.compute_ideal_weight(170)) == "62.1 kg"


@pytest.mark.parametrize(
    "bmi,multiplier", [(35, 1.2), (30.01, 1.2), (30, 1.0), (25, 1.0), (24.9, 0.8)]
)
def test_rate_multiplier(bmi, multiplier):
    assert logic.rate_multiplier(bmi) == multiplier


def test_timeframe_uses_minimum_rate_for_small_differences():
    estimate = logic.compute_timeframe(20, 28)
    assert estimate.days == 150
    assert estimate.daily_loss_kg == pytest.approx(20 / 150)
    assert estimate.label == "150 dias"


def test_timeframe_high_bmi_allows_faster_rate():
    # 8% of 100 kg is 8 kg per month, under the 9.6 kg cap for BMI > 30
    assert logic.compute_timeframe(100, 35).days == 375


def test_timeframe_gain_has_negative_daily_change():
    estimate = logic.compute_timeframe(-10, 20)
    assert estimate.days == 75
    assert estimate.daily_loss_kg < 0


def test_timeframe_at_goal():
    estimate = logic.compute_timeframe(0, 22)
    assert estimate.days == 0
    assert estimate.daily_loss_kg == 0
    assert estimate.label == logic.AT_GOAL_LABEL


def test_timeframe_minimum_one_day():
    assert logic.compute_timeframe(0.01, 22).days == 1


def test_timeframe_rejects_non_finite():
    with pytest.raises(logic.InvalidInputError):
        logic.compute_timeframe(math.nan, 22)
    with pytest.raises(logic.InvalidInputError):
        logic.compute_timeframe(10, math.inf)


@pytest.mark.parametrize("bmi", [20, 27, 33])
def test_timeframe_is_monotonic(bmi):
    days = [logic.compute_timeframe(diff / 10, bmi).days for diff in range(1, 1501)]
    assert days == sorted(days)


@pytest.mark.parametrize("bmi", [20, 27, 40])
def test_timeframe_flat_band_has_no_rounding_bump(bmi):
    assert logic.compute_timeframe(54.8, bmi).days == 375
    assert logic.compute_timeframe(150.0 - 95.2, bmi).days == 375
    assert logic.compute_timeframe(150.0 - 95.1, bmi).days == 375


def test_compute_bmr_male_reference():
    assert logic.compute_bmr(80, 180, 30, Sex.MALE) == pytest.approx(1858)


def test_compute_bmr_female_accepts_plain_string():
    assert logic.compute_bmr(60, 165, 30, "female") == pytest.approx(1387)


def test_compute_bmr_rejects_unknown_sex_and_age():
    with pytest.raises(logic.InvalidInputError):
        logic.compute_bmr(60, 165, 30, "other")
    with pytest.raises(logic.InvalidInputError):
        logic.compute_bmr(60, 165, 0, Sex.FEMALE)


def test_calculations_are_repeatable():
    first = (
        logic.compute_bmi(82.5, 171),
        logic.compute_ideal_weight(171),
        logic.compute_bmr(82.5, 171, 41, Sex.FEMALE),
        logic.compute_timeframe(12.5, 28.2),
    )
    second = (
        logic.compute_bmi(82.5, 171),
        logic.compute_ideal_weight(171),
        logic.compute_bmr(82.5, 171, 41, Sex.FEMALE),
        logic.compute_timeframe(12.5, 28.2),
    )
    assert first == second
