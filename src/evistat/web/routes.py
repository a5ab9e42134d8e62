"""API routes for the statistics engine.

Each endpoint validates its request body with a Pydantic model, calls
the matching engine function and returns the result as JSON.  Results
are marked ``"ai_generated": false`` so the UI can label them as
deterministic output.  Non-finite floats (an infinite NNT, a likelihood
ratio at perfect specificity) are returned as ``null``.
"""

from __future__ import annotations

import dataclasses
import math
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..clinical import (
    calculate_apache_ii,
    calculate_chads_vasc,
    calculate_curb65,
    calculate_diagnostic_test,
    calculate_egfr,
    calculate_nnt,
    calculate_proportion_ci,
    calculate_wells_dvt,
)
from ..meta import MetaAnalyzer, Study
from ..power import SampleSizeRequest, StudyType, power, sample_size, sample_size_per_group
from ..utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()
analyzer = MetaAnalyzer()


def to_jsonable(value: Any) -> Any:
    """Convert engine results into plain JSON-safe structures."""
    if isinstance(value, BaseModel):
        return to_jsonable(value.model_dump(mode="python"))
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return to_jsonable(dataclasses.asdict(value))
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


def respond(result: Any) -> JSONResponse:
    return JSONResponse(content={"ai_generated": False, "result": to_jsonable(result)})


class StudiesRequest(BaseModel):
    """A list of studies on a common effect-size scale."""

    studies: List[Study]


class PowerRequest(BaseModel):
    n: float = Field(gt=0)
    effect_size: float
    alpha: float = Field(0.05, gt=0.0, lt=1.0)
    study_type: StudyType
    ratio: float = Field(1.0, gt=0.0)
    tails: Literal[1, 2] = 2


class NNTRequest(BaseModel):
    control_rate: float = Field(ge=0.0, le=1.0)
    treatment_rate: float = Field(ge=0.0, le=1.0)
    n_control: Optional[int] = Field(None, ge=1)
    n_treatment: Optional[int] = Field(None, ge=1)


class EGFRRequest(BaseModel):
    creatinine: float = Field(gt=0)
    age: float = Field(ge=18, le=120)
    sex: Literal["male", "female"]
    cystatin_c: Optional[float] = Field(None, gt=0)


class CURB65Request(BaseModel):
    confusion: bool
    urea: float = Field(ge=0)
    respiratory_rate: float = Field(ge=0)
    systolic_bp: float = Field(ge=0)
    diastolic_bp: float = Field(ge=0)
    age: float = Field(ge=0)
    urea_is_bun: bool = False


class WellsDVTRequest(BaseModel):
    active_cancer: bool = False
    paralysis_paresis: bool = False
    bedridden_3_days: bool = False
    localized_tenderness: bool = False
    entire_leg_swollen: bool = False
    calf_swelling_3cm: bool = False
    pitting_edema: bool = False
    collateral_veins: bool = False
    previous_dvt: bool = False
    alternative_diagnosis_likely: bool = False


class CHADSVAScRequest(BaseModel):
    age: float = Field(ge=0)
    sex: Literal["male", "female"]
    chf: bool = False
    hypertension: bool = False
    diabetes: bool = False
    stroke: bool = False
    vascular_disease: bool = False


class APACHEIIRequest(BaseModel):
    temperature: float
    mean_arterial_pressure: float = Field(ge=0)
    heart_rate: float = Field(ge=0)
    respiratory_rate: float = Field(ge=0)
    gcs: int = Field(ge=3, le=15)
    age: float = Field(ge=0)
    chronic_health: Literal["none", "elective", "emergency"] = "none"
    oxygenation: Optional[float] = Field(None, ge=0)
    fio2_high: bool = False
    arterial_ph: Optional[float] = Field(None, gt=0)
    sodium: Optional[float] = Field(None, gt=0)
    potassium: Optional[float] = Field(None, gt=0)
    creatinine: Optional[float] = Field(None, gt=0)
    acute_renal_failure: bool = False
    hematocrit: Optional[float] = Field(None, ge=0, le=100)
    wbc: Optional[float] = Field(None, ge=0)


class ProportionCIRequest(BaseModel):
    successes: int = Field(ge=0)
    total: int = Field(gt=0)
    confidence_level: float = Field(0.95, gt=0.0, lt=1.0)


class DiagnosticTestRequest(BaseModel):
    true_positive: int = Field(ge=0)
    false_positive: int = Field(ge=0)
    false_negative: int = Field(ge=0)
    true_negative: int = Field(ge=0)


@router.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


# -----------------------------------------------------------------------------
# Meta-analysis
# -----------------------------------------------------------------------------

@router.post("/api/meta/pool")
def meta_pool(req: StudiesRequest) -> JSONResponse:
    """Random-effects pooled estimate for the submitted studies."""
    return respond(analyzer.pool(req.studies))


@router.post("/api/meta/egger")
def meta_egger(req: StudiesRequest) -> JSONResponse:
    """Egger's regression test for funnel-plot asymmetry."""
    return respond(analyzer.eggers_regression(req.studies))


@router.post("/api/meta/leave-one-out")
def meta_leave_one_out(req: StudiesRequest) -> JSONResponse:
    results = analyzer.leave_one_out(req.studies)
    return respond([
        {"omitted": study.name, **result.model_dump()}
        for study, result in zip(req.studies, results)
    ])


@router.post("/api/meta/subgroups")
def meta_subgroups(req: StudiesRequest) -> JSONResponse:
    """Pool each subgroup and test for differences between them."""
    return respond(analyzer.subgroup_difference(req.studies))


# -----------------------------------------------------------------------------
# Sample size and power
# -----------------------------------------------------------------------------

@router.post("/api/sample-size")
def sample_size_endpoint(req: SampleSizeRequest) -> JSONResponse:
    n_treatment, n_control = sample_size_per_group(req)
    return respond({
        "total": sample_size(req),
        "n_treatment": n_treatment,
        "n_control": n_control,
    })


@router.post("/api/power")
def power_endpoint(req: PowerRequest) -> JSONResponse:
    achieved = power(req.n, req.effect_size, req.alpha, req.study_type, ratio=req.ratio, tails=req.tails)
    return respond({"power": achieved})


# -----------------------------------------------------------------------------
# Clinical calculators
# -----------------------------------------------------------------------------

@router.post("/api/clinical/nnt")
def nnt_endpoint(req: NNTRequest) -> JSONResponse:
    return respond(calculate_nnt(**req.model_dump()))


@router.post("/api/clinical/egfr")
def egfr_endpoint(req: EGFRRequest) -> JSONResponse:
    return respond(calculate_egfr(**req.model_dump()))


@router.post("/api/clinical/curb65")
def curb65_endpoint(req: CURB65Request) -> JSONResponse:
    return respond(calculate_curb65(**req.model_dump()))


@router.post("/api/clinical/wells-dvt")
def wells_dvt_endpoint(req: WellsDVTRequest) -> JSONResponse:
    return respond(calculate_wells_dvt(**req.model_dump()))


@router.post("/api/clinical/chads-vasc")
def chads_vasc_endpoint(req: CHADSVAScRequest) -> JSONResponse:
    return respond(calculate_chads_vasc(**req.model_dump()))


@router.post("/api/clinical/apache-ii")
def apache_ii_endpoint(req: APACHEIIRequest) -> JSONResponse:
    return respond(calculate_apache_ii(**req.model_dump()))


@router.post("/api/clinical/proportion-ci")
def proportion_ci_endpoint(req: ProportionCIRequest) -> JSONResponse:
    return respond(calculate_proportion_ci(**req.model_dump()))


@router.post("/api/clinical/diagnostic-test")
def diagnostic_test_endpoint(req: DiagnosticTestRequest) -> JSONResponse:
    return respond(calculate_diagnostic_test(**req.model_dump()))
