"""Models for meta-analysis inputs and results.

A :class:`Study` is one row of extracted data as handed over by the
persistence layer: an effect size on a common scale together with its
sampling uncertainty.  Studies are frozen for the duration of a
computation.  Result models (:class:`PooledResult`, :class:`EggerResult`
and :class:`SubgroupTest`) are derived fresh on every call and never
cached by the engine.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class EffectSizeType(str, Enum):
    """Scale on which a study's effect size is expressed.

    Ratio measures (``OR``, ``RR``, ``HR``) are expected on the log
    scale before pooling.
    """

    SMD = "smd"
    OR = "or"
    RR = "rr"
    MD = "md"
    HR = "hr"
    CORRELATION = "correlation"


class Study(BaseModel):
    """A single study entering a meta-analysis."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    effect_size: float = Field(allow_inf_nan=False)
    effect_size_type: EffectSizeType = EffectSizeType.SMD
    standard_error: float = Field(gt=0, allow_inf_nan=False)
    variance: float = Field(gt=0, allow_inf_nan=False)

    sample_size_treatment: Optional[int] = Field(None, ge=1)
    sample_size_control: Optional[int] = Field(None, ge=1)
    mean_treatment: Optional[float] = None
    sd_treatment: Optional[float] = None
    mean_control: Optional[float] = None
    sd_control: Optional[float] = None
    events_treatment: Optional[int] = Field(None, ge=0)
    events_control: Optional[int] = Field(None, ge=0)

    subgroup: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _fill_uncertainty(cls, data: Any) -> Any:
        """Derive whichever of standard error / variance is missing."""
        if not isinstance(data, dict):
            return data
        se = data.get("standard_error")
        var = data.get("variance")
        if se is None and var is None:
            raise ValueError("either standard_error or variance is required")
        data = dict(data)
        if se is None:
            var = float(var)
            data["standard_error"] = math.sqrt(var) if var > 0 else var
        elif var is None:
            # overflows to inf, which the variance field rejects
            se = float(se)
            data["variance"] = se * se
        return data


class StudyResult(BaseModel):
    """Per-study row of a pooled result."""

    name: str
    effect_size: float
    lower_ci: float
    upper_ci: float
    weight_percent: float


class PooledResult(BaseModel):
    """Random-effects pooled estimate with heterogeneity statistics."""

    pooled_effect: float
    pooled_se: float
    lower_ci: float
    upper_ci: float
    z_value: float
    p_value: float
    i_squared: float = Field(ge=0.0, le=100.0)
    q_statistic: float
    q_df: int
    q_p_value: float
    tau_squared: float = Field(ge=0.0)
    n_studies: int
    heterogeneity: str
    studies: List[StudyResult] = Field(default_factory=list)

    @property
    def is_significant(self) -> bool:
        return self.p_value < 0.05


class EggerResult(BaseModel):
    """Egger's regression test for funnel-plot asymmetry."""

    intercept: float
    slope: float
    se: float
    t_value: float
    p_value: float
    df: int
    bias_detected: bool
    interpretation: str


class SubgroupTest(BaseModel):
    """Test for differences between subgroup pooled estimates."""

    q_between: float
    df: int
    p_value: float
    subgroups: Dict[str, PooledResult]
