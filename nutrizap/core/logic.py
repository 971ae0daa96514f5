"""Weight projection calculations.

This module contains the formulas shared by every screen of the funnel:
body mass index, ideal weight, basal metabolic rate, the time needed to
reach a target weight and the synthetic progress curve shown in charts.
All functions are pure and deterministic except for the cosmetic noise in
:func:`generate_projection`, which can be seeded through ``rng``.  Values
are indicative only and must not replace professional advice.
"""

from __future__ import annotations

import math
import random
from datetime import date, timedelta
from typing import Optional

from pydantic import ValidationError

from .schema import (
    BMICategory,
    BMIResult,
    ColorTag,
    Milestones,
    ProfileInput,
    ProfileReport,
    ProjectionPoint,
    Sex,
    TimeframeEstimate,
    WeightGoal,
    WeightLossSummary,
)

IDEAL_BMI = 21.5

# Safe weight-loss band, in kilograms per period
MIN_KG_PER_PERIOD = 4.0
MAX_KG_PER_PERIOD = 8.0
PERIOD_DAYS = 30

# Maximum absolute noise applied to interior chart points
PROJECTION_NOISE_KG = 0.2

TODAY_LABEL = "Seu peso hoje"
AT_GOAL_LABEL = "Você já está no seu peso meta"

_PT_MONTHS = (
    "jan", "fev", "mar", "abr", "mai", "jun",
    "jul", "ago", "set", "out", "nov", "dez",
)


class InvalidInputError(ValueError):
    """Raised when a biometric value is non-finite or out of range."""


class ZeroRateError(ZeroDivisionError):
    """Raised when the modelled loss rate collapses to zero."""


def _require_positive(name: str, value: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidInputError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(number):
        raise InvalidInputError(f"{name} must be finite, got {value!r}")
    if number <= 0:
        raise InvalidInputError(f"{name} must be positive, got {value!r}")
    return number


def _require_finite(name: str, value: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidInputError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(number):
        raise InvalidInputError(f"{name} must be finite, got {value!r}")
    return number


def _require_age(age: int) -> int:
    if isinstance(age, bool) or not isinstance(age, (int, float)):
        raise InvalidInputError(f"age must be a number, got {age!r}")
    if not math.isfinite(age) or not 1 <= age <= 120:
        raise InvalidInputError(f"age must be between 1 and 120, got {age!r}")
    return int(age)


def compute_bmi(weight_kg: float, height_cm: float) -> float:
    """Return the body mass index for ``weight_kg`` and ``height_cm``.

    Raises:
        InvalidInputError: if either value is non-positive or non-finite.
    """
    weight = _require_positive("weight_kg", weight_kg)
    height_m = _require_positive("height_cm", height_cm) / 100
    return weight / (height_m * height_m)


def bmi_category(bmi: float) -> BMICategory:
    """Map a BMI value onto its category.

    Thresholds use an inclusive lower bound: ``18.5`` is already normal,
    ``25`` overweight and ``30`` obese.
    """
    bmi = _require_finite("bmi", bmi)
    if bmi < 18.5:
        return BMICategory.UNDERWEIGHT
    if bmi < 25:
        return BMICategory.NORMAL
    if bmi < 30:
        return BMICategory.OVERWEIGHT
    return BMICategory.OBESE


def evaluate_bmi(weight_kg: float, height_cm: float) -> BMIResult:
    """Return BMI value and category in one record."""
    value = compute_bmi(weight_kg, height_cm)
    return BMIResult(value=value, category=bmi_category(value))


def compute_ideal_weight(height_cm: float) -> float:
    """Return the weight matching ``IDEAL_BMI`` for ``height_cm``.

    ``0.0`` is returned when the height is not positive; callers must check
    for it before displaying a value.  The result is not rounded, use
    :func:`format_kg` for display.
    """
    height = _require_finite("height_cm", height_cm)
    if height <= 0:
        return 0.0
    height_m = height / 100
    return IDEAL_BMI * height_m * height_m


def rate_multiplier(current_bmi: float) -> float:
    """Return the loss-rate multiplier for ``current_bmi``.

    Higher BMI values are modelled as able to lose weight faster at first.
    """
    bmi = _require_finite("current_bmi", current_bmi)
    if bmi > 30:
        return 1.2
    if bmi >= 25:
        return 1.0
    return 0.8


def compute_timeframe(weight_diff_kg: float, current_bmi: float) -> TimeframeEstimate:
    """Estimate how many days are needed to change weight by ``weight_diff_kg``.

    A positive difference means losing weight, a negative one gaining.  The
    monthly rate is 8% of the total difference clamped to the safe band
    (4 kg to 8 kg times the BMI multiplier).

    Raises:
        InvalidInputError: if an argument is not finite.
        ZeroRateError: if the resulting rate is zero.
    """
    diff = _require_finite("weight_diff_kg", weight_diff_kg)
    multiplier = rate_multiplier(current_bmi)
    if diff == 0:
        return TimeframeEstimate(days=0, daily_loss_kg=0.0, label=AT_GOAL_LABEL)
    magnitude = abs(diff)
    safe_rate = min(
        MAX_KG_PER_PERIOD * multiplier,
        max(MIN_KG_PER_PERIOD, magnitude * 0.08),
    )
    if safe_rate <= 0:
        raise ZeroRateError("safe weight-loss rate collapsed to zero")
    # Rounded before ceil so 375.00000000000006 stays 375.
    days = max(1, math.ceil(round(magnitude * PERIOD_DAYS / safe_rate, 9)))
    return TimeframeEstimate(
        days=days,
        daily_loss_kg=diff / days,
        label=f"{days} dias",
    )


def compute_bmr(weight_kg: float, height_cm: float, age_years: int, sex: Sex | str) -> float:
    """Compute basal metabolic rate with the Harris-Benedict equation.

    Args:
        weight_kg: Weight in kilograms.
        height_cm: Height in centimetres.
        age_years: Age in years, between 1 and 120.
        sex: ``Sex.FEMALE`` or ``Sex.MALE`` (plain strings are accepted).

    Returns:
        Estimated BMR in kilocalories per day.  Pathological inputs may give
        a negative value, which is returned as is.
    """
    weight = _require_positive("weight_kg", weight_kg)
    height = _require_positive("height_cm", height_cm)
    age = _require_age(age_years)
    try:
        sex = Sex(sex)
    except ValueError:
        raise InvalidInputError(f"Unsupported sex: {sex}")
    if sex is Sex.FEMALE:
        return 655 + 9.6 * weight + 1.8 * height - 4.7 * age
    return 66 + 13.7 * weight + 5 * height - 6.8 * age


def _progress(index: int, count: int) -> float:
    if index == 0:
        return 0.0
    return (1 - math.exp(-3 * index / (count - 1))) / (1 - math.exp(-3))


def _color_tag(index: int, count: int) -> ColorTag:
    if index == 0:
        return ColorTag.START
    if index == count - 1:
        return ColorTag.GOAL
    if index == 1:
        return ColorTag.EARLY
    return ColorTag.MID


def date_label(day: date) -> str:
    """Return a short pt-BR label such as ``"19 out"``."""
    return f"{day.day} {_PT_MONTHS[day.month - 1]}"


def generate_projection(
    current_weight_kg: float,
    target_weight_kg: float,
    timeframe_days: int,
    point_count: int = 4,
    *,
    start: Optional[date] = None,
    rng: Optional[random.Random] = None,
) -> list[ProjectionPoint]:
    """Return chart points from the current weight to the target.

    Points are evenly spaced in time.  Most of the change happens early
    and tapers near the goal.  Interior points receive up to
    ``PROJECTION_NOISE_KG`` of random noise so the line looks natural;
    pass a seeded ``rng`` for reproducible output.
    """
    current = _require_positive("current_weight_kg", current_weight_kg)
    target = _require_positive("target_weight_kg", target_weight_kg)
    days = _require_finite("timeframe_days", timeframe_days)
    if days < 0:
        raise InvalidInputError(f"timeframe_days must not be negative, got {timeframe_days!r}")
    if point_count < 2:
        raise InvalidInputError(f"point_count must be at least 2, got {point_count!r}")
    rng = rng or random.Random()
    start = start or date.today()
    interval = days / (point_count - 1)
    diff = current - target

    points: list[ProjectionPoint] = []
    for i in range(point_count):
        day = start + timedelta(days=round(interval * i))
        weight = current - diff * _progress(i, point_count)
        if 0 < i < point_count - 1:
            weight += rng.uniform(-PROJECTION_NOISE_KG, PROJECTION_NOISE_KG)
        points.append(
            ProjectionPoint(
                label=TODAY_LABEL if i == 0 else date_label(day),
                date=day,
                weight_kg=round(weight, 1),
                color_tag=_color_tag(i, point_count),
            )
        )
    return points


def weight_loss_summary(
    current_weight_kg: float, target_weight_kg: float, height_cm: float
) -> WeightLossSummary:
    """Summarise the requested change relative to the current weight."""
    current = _require_positive("current_weight_kg", current_weight_kg)
    target = _require_positive("target_weight_kg", target_weight_kg)
    loss = current - target
    percentage = loss / current * 100
    timeframe = compute_timeframe(loss, compute_bmi(current, height_cm))
    return WeightLossSummary(
        percentage=abs(percentage),
        is_reasonable=0 < percentage <= 20,
        weight_loss_kg=loss,
        extra_weight_loss_kg=loss * 1.1,
        timeframe=timeframe,
    )


def intermediate_weights(current_weight_kg: float, target_weight_kg: float) -> Milestones:
    """Return rounded milestones at one and two thirds of the way."""
    current = _require_positive("current_weight_kg", current_weight_kg)
    target = _require_positive("target_weight_kg", target_weight_kg)
    diff = current - target
    return Milestones(
        start=current,
        first=round(current - diff * 0.33),
        second=round(current - diff * 0.66),
        target=target,
    )


def weight_goal(weight_kg: float, height_cm: float) -> WeightGoal:
    """Compare ``weight_kg`` with the ideal weight for ``height_cm``."""
    weight = _require_positive("weight_kg", weight_kg)
    ideal = compute_ideal_weight(height_cm)
    if ideal == 0:
        raise InvalidInputError(f"height_cm must be positive, got {height_cm!r}")
    return WeightGoal(
        ideal_weight_kg=ideal,
        difference_kg=abs(weight - ideal),
        is_gain=weight < ideal,
    )


def age_risk_factor(age_years: int, bmi: float) -> int:
    """Return the percentage used by the age-related risk copy."""
    age = _require_age(age_years)
    bmi = _require_finite("bmi", bmi)
    bmi_factor = 2 if bmi >= 30 else 1.5 if bmi >= 25 else 1
    if age < 30:
        base = 2
    elif age < 40:
        base = 4
    elif age < 50:
        base = 8
    else:
        base = 12
    return int(round(base * bmi_factor))


def bmi_gauge_position(bmi: float) -> float:
    """Return the marker position (0-100) on a 0-40 BMI gauge."""
    bmi = _require_finite("bmi", bmi)
    return min(max(bmi / 40 * 100, 0.0), 100.0)


def target_date(days: int, start: Optional[date] = None) -> date:
    """Return the calendar date ``days`` after ``start`` (today by default)."""
    return (start or date.today()) + timedelta(days=int(days))


def format_kg(value: float) -> str:
    """Format a weight for display with one decimal place."""
    return f"{value:.1f} kg"


def make_profile(
    *,
    current_weight_kg: float,
    height_cm: float,
    age_years: int,
    target_weight_kg: float,
    sex: Sex | str,
) -> ProfileInput:
    """Build a validated ``ProfileInput``.

    Raises:
        InvalidInputError: if any value is missing, non-finite or out of range.
    """
    try:
        return ProfileInput(
            current_weight_kg=current_weight_kg,
            height_cm=height_cm,
            age_years=age_years,
            target_weight_kg=target_weight_kg,
            sex=sex,
        )
    except ValidationError as exc:
        raise InvalidInputError(str(exc)) from exc


def build_report(
    profile: ProfileInput,
    *,
    point_count: int = 4,
    start: Optional[date] = None,
    rng: Optional[random.Random] = None,
) -> ProfileReport:
    """Compute every metric shown for ``profile`` in one pass.

    Screens use this instead of calling the formulas themselves so the
    numbers stay consistent across the funnel.
    """
    bmi = evaluate_bmi(profile.current_weight_kg, profile.height_cm)
    timeframe = compute_timeframe(profile.weight_diff_kg, bmi.value)
    projection = generate_projection(
        profile.current_weight_kg,
        profile.target_weight_kg,
        timeframe.days,
        point_count,
        start=start,
        rng=rng,
    )
    return ProfileReport(
        profile=profile,
        bmi=bmi,
        target_bmi=evaluate_bmi(profile.target_weight_kg, profile.height_cm),
        ideal_weight_kg=compute_ideal_weight(profile.height_cm),
        bmr_kcal=compute_bmr(
            profile.current_weight_kg,
            profile.height_cm,
            profile.age_years,
            profile.sex,
        ),
        timeframe=timeframe,
        projection=projection,
    )
