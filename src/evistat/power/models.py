"""Models for sample-size and power requests."""

from __future__ import annotations

from enum import Enum
from typing import Literal, Union

from pydantic import BaseModel, Field


class StudyType(str, Enum):
    """Study designs with a closed-form sample-size formula."""

    TWO_MEANS = "two_means"
    TWO_PROPORTIONS = "two_proportions"
    CORRELATION = "correlation"
    ONE_SAMPLE_MEAN = "one_sample_mean"
    PAIRED = "paired"


class SampleSizeRequest(BaseModel):
    """Parameters for a sample-size calculation.

    ``effect_size`` is Cohen's d for the mean designs, Cohen's h for
    two proportions and Pearson's r for correlation.  ``ratio`` is the
    allocation ratio n_control / n_treatment and only affects the
    two-group designs.  ``study_type`` is kept as given when it does not
    name a known design so the calculator can report it.
    """

    study_type: Union[StudyType, str]
    effect_size: float = Field(allow_inf_nan=False)
    power: float = Field(0.8, gt=0.0, lt=1.0)
    alpha: float = Field(0.05, gt=0.0, lt=1.0)
    ratio: float = Field(1.0, gt=0.0)
    tails: Literal[1, 2] = 2
