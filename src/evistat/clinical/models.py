"""Result types returned by the clinical calculators.

Every result carries the numeric score together with its categorical
interpretation so callers can render it without re-deriving the
breakpoints.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List


@dataclass(frozen=True)
class ConfidenceInterval:
    lower: float
    upper: float


@dataclass(frozen=True)
class NNTResult:
    nnt: float                   # math.inf when there is no risk difference
    arr: float                   # Absolute Risk Reduction
    rrr: float                   # Relative Risk Reduction
    ci95: ConfidenceInterval
    interpretation: str


@dataclass(frozen=True)
class EGFRResult:
    egfr: float                  # mL/min/1.73m²
    ckd_stage: str
    interpretation: str
    formula: str


@dataclass(frozen=True)
class CURB65Result:
    score: int
    mortality_30_day: str
    recommendation: str
    details: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class WellsDVTResult:
    score: int
    probability: str             # Low | Moderate | High
    prevalence: str
    recommendation: str


@dataclass(frozen=True)
class CHADSVAScResult:
    score: int
    annual_stroke_risk: str
    recommendation: str


@dataclass(frozen=True)
class APACHEIIResult:
    score: int
    mortality_estimate: str
    category: str


@dataclass(frozen=True)
class ProportionCIResult:
    proportion: float
    lower: float
    upper: float
    method: str = "Wilson Score Interval"


@dataclass(frozen=True)
class DiagnosticTestResult:
    sensitivity: float
    specificity: float
    ppv: float                   # Positive Predictive Value
    npv: float                   # Negative Predictive Value
    plr: float                   # Positive Likelihood Ratio
    nlr: float                   # Negative Likelihood Ratio
    accuracy: float
    prevalence: float
