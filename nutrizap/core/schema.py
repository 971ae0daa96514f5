"""Pydantic models shared across the funnel.

The calculator records are derived values: they are rebuilt from a
``ProfileInput`` whenever a screen needs them and are frozen so nothing
can mutate them in between.
"""

from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class Sex(str, Enum):
    FEMALE = "female"
    MALE = "male"


class BMICategory(str, Enum):
    UNDERWEIGHT = "underweight"
    NORMAL = "normal"
    OVERWEIGHT = "overweight"
    OBESE = "obese"


class ColorTag(str, Enum):
    START = "start"
    EARLY = "early"
    MID = "mid"
    GOAL = "goal"


class ProfileInput(BaseModel):
    """Biometrics collected by the quiz."""

    model_config = ConfigDict(frozen=True)

    current_weight_kg: float = Field(gt=0, allow_inf_nan=False)
    height_cm: float = Field(gt=0, allow_inf_nan=False)
    age_years: int = Field(ge=1, le=120)
    target_weight_kg: float = Field(gt=0, allow_inf_nan=False)
    sex: Sex

    @property
    def weight_diff_kg(self) -> float:
        """Positive when the visitor wants to lose weight."""
        return self.current_weight_kg - self.target_weight_kg


class BMIResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: float
    category: BMICategory


class TimeframeEstimate(BaseModel):
    model_config = ConfigDict(frozen=True)

    days: int = Field(ge=0)
    daily_loss_kg: float
    label: str


class ProjectionPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    date: dt.date
    weight_kg: float
    color_tag: ColorTag


class WeightLossSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    percentage: float
    is_reasonable: bool
    weight_loss_kg: float
    extra_weight_loss_kg: float
    timeframe: TimeframeEstimate


class Milestones(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: float
    first: float
    second: float
    target: float


class WeightGoal(BaseModel):
    model_config = ConfigDict(frozen=True)

    ideal_weight_kg: float
    difference_kg: float
    is_gain: bool


class ProfileReport(BaseModel):
    """Every derived metric a screen may display for one profile."""

    model_config = ConfigDict(frozen=True)

    profile: ProfileInput
    bmi: BMIResult
    target_bmi: BMIResult
    ideal_weight_kg: float
    bmr_kcal: float
    timeframe: TimeframeEstimate
    projection: List[ProjectionPoint] = Field(default_factory=list)
