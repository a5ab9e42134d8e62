"""Bedside clinical scores for internal medicine.

Each calculator is a pure function mapping its inputs through the
published point tables.  Inputs are not range-checked: out-of-range
numbers yield a well-defined but possibly meaningless score.

References:
    Inker LA et al. NEJM 2021;385:1737-1749 (CKD-EPI 2021)
    Lim WS et al. Thorax 2003;58:377-382 (CURB-65)
    Wells PS et al. NEJM 2003;349:1227-1235 (Wells DVT)
    Lip GY et al. Chest 2010;137:263-272 (CHA2DS2-VASc)
    Knaus WA et al. Crit Care Med 1985;13:818-829 (APACHE II)
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from ..core.errors import InvalidInputError
from .models import APACHEIIResult, CHADSVAScResult, CURB65Result, EGFRResult, WellsDVTResult

_SEXES = ("male", "female")


def _check_sex(sex: str) -> str:
    if sex not in _SEXES:
        raise InvalidInputError(f"sex must be 'male' or 'female', got {sex!r}")
    return sex


# ---------------------------------------------------------------------------
# eGFR (CKD-EPI 2021, race-free)
# ---------------------------------------------------------------------------

def _ckd_stage(egfr: float) -> str:
    if egfr >= 90:
        return "G1 (Normal or high)"
    elif egfr >= 60:
        return "G2 (Mildly decreased)"
    elif egfr >= 45:
        return "G3a (Mildly to moderately decreased)"
    elif egfr >= 30:
        return "G3b (Moderately to severely decreased)"
    elif egfr >= 15:
        return "G4 (Severely decreased)"
    return "G5 (Kidney failure)"


def calculate_egfr(
    creatinine: float,
    age: float,
    sex: str,
    cystatin_c: Optional[float] = None,
) -> EGFRResult:
    """Estimate GFR with the CKD-EPI 2021 equations.

    Args:
        creatinine: Serum creatinine in mg/dL.
        age: Age in years.
        sex: ``"male"`` or ``"female"``.
        cystatin_c: Serum cystatin C in mg/L.  When given, the combined
            creatinine–cystatin C equation is used.

    Returns:
        An :class:`EGFRResult` with eGFR in mL/min/1.73m² rounded to one
        decimal and the KDIGO G stage.
    """
    female = _check_sex(sex) == "female"
    kappa = 0.7 if female else 0.9
    scr = creatinine / kappa

    if cystatin_c is None:
        alpha = -0.241 if female else -0.302
        egfr = 142 * min(scr, 1) ** alpha * max(scr, 1) ** -1.200 * 0.9938 ** age
        if female:
            egfr *= 1.012
        formula = "CKD-EPI 2021 (race-free)"
    else:
        alpha = -0.219 if female else -0.144
        scys = cystatin_c / 0.8
        egfr = (
            135
            * min(scr, 1) ** alpha
            * max(scr, 1) ** -0.544
            * min(scys, 1) ** -0.323
            * max(scys, 1) ** -0.778
            * 0.9961 ** age
        )
        if female:
            egfr *= 0.963
        formula = "CKD-EPI 2021 creatinine-cystatin C (race-free)"

    egfr = round(egfr, 1)
    if egfr >= 60:
        interpretation = "Normal or mildly reduced kidney function"
    elif egfr >= 30:
        interpretation = "Moderate CKD - Consider nephrology referral"
    else:
        interpretation = "Severe CKD - Nephrology referral recommended"

    return EGFRResult(egfr=egfr, ckd_stage=_ckd_stage(egfr), interpretation=interpretation, formula=formula)


# ---------------------------------------------------------------------------
# CURB-65
# ---------------------------------------------------------------------------

CURB65_MORTALITY = {
    0: "0.6%",
    1: "2.7%",
    2: "6.8%",
    3: "14.0%",
    4: "27.8%",
    5: "27.8%",
}

CURB65_RECOMMENDATION = {
    0: "Low risk - Consider outpatient treatment",
    1: "Low risk - Consider outpatient treatment",
    2: "Moderate risk - Consider short inpatient stay or hospital-supervised outpatient treatment",
    3: "Severe pneumonia - Hospitalize, consider ICU",
    4: "Severe pneumonia - Hospitalize, consider ICU",
    5: "Severe pneumonia - Hospitalize, consider ICU",
}


def calculate_curb65(
    confusion: bool,
    urea: float,
    respiratory_rate: float,
    systolic_bp: float,
    diastolic_bp: float,
    age: float,
    urea_is_bun: bool = False,
) -> CURB65Result:
    """CURB-65 pneumonia severity score.

    ``urea`` is in mmol/L (positive above 7) unless ``urea_is_bun`` is
    set, in which case it is BUN in mg/dL (positive above 19).
    """
    details: List[str] = []
    score = 0

    if confusion:
        score += 1
        details.append("Confusion: +1")

    urea_threshold = 19 if urea_is_bun else 7
    if urea > urea_threshold:
        score += 1
        details.append(f"Urea/{'BUN' if urea_is_bun else 'mmol/L'} > {urea_threshold}: +1")

    if respiratory_rate >= 30:
        score += 1
        details.append("Respiratory Rate ≥30: +1")

    if systolic_bp < 90 or diastolic_bp <= 60:
        score += 1
        details.append("BP <90 systolic or ≤60 diastolic: +1")

    if age >= 65:
        score += 1
        details.append("Age ≥65: +1")

    return CURB65Result(
        score=score,
        mortality_30_day=CURB65_MORTALITY[score],
        recommendation=CURB65_RECOMMENDATION[score],
        details=details,
    )


# ---------------------------------------------------------------------------
# Wells score for DVT
# ---------------------------------------------------------------------------

def calculate_wells_dvt(
    active_cancer: bool = False,
    paralysis_paresis: bool = False,
    bedridden_3_days: bool = False,
    localized_tenderness: bool = False,
    entire_leg_swollen: bool = False,
    calf_swelling_3cm: bool = False,
    pitting_edema: bool = False,
    collateral_veins: bool = False,
    previous_dvt: bool = False,
    alternative_diagnosis_likely: bool = False,
) -> WellsDVTResult:
    """Wells pre-test probability score for deep vein thrombosis."""
    score = sum([
        active_cancer,
        paralysis_paresis,
        bedridden_3_days,
        localized_tenderness,
        entire_leg_swollen,
        calf_swelling_3cm,
        pitting_edema,
        collateral_veins,
        previous_dvt,
    ])
    if alternative_diagnosis_likely:
        score -= 2

    if score <= 0:
        return WellsDVTResult(
            score=score,
            probability="Low",
            prevalence="5%",
            recommendation="D-dimer testing. If negative, DVT excluded. If positive, ultrasound.",
        )
    elif score <= 2:
        return WellsDVTResult(
            score=score,
            probability="Moderate",
            prevalence="17%",
            recommendation="D-dimer testing. If negative, DVT excluded. If positive, ultrasound.",
        )
    return WellsDVTResult(
        score=score,
        probability="High",
        prevalence="53%",
        recommendation="Proceed directly to ultrasound. D-dimer not reliable to exclude.",
    )


# ---------------------------------------------------------------------------
# CHA2DS2-VASc
# ---------------------------------------------------------------------------

CHADS_VASC_STROKE_RISK = {
    0: "0%",
    1: "1.3%",
    2: "2.2%",
    3: "3.2%",
    4: "4.0%",
    5: "6.7%",
    6: "9.8%",
    7: "9.6%",
    8: "6.7%",
    9: "15.2%",
}


def calculate_chads_vasc(
    age: float,
    sex: str,
    chf: bool = False,
    hypertension: bool = False,
    diabetes: bool = False,
    stroke: bool = False,
    vascular_disease: bool = False,
) -> CHADSVAScResult:
    """CHA₂DS₂-VASc stroke risk score for atrial fibrillation.

    ``stroke`` covers prior stroke, TIA or thromboembolism (2 points);
    ``vascular_disease`` covers prior MI, PAD or aortic plaque.
    """
    female = _check_sex(sex) == "female"
    score = 0
    if chf:
        score += 1
    if hypertension:
        score += 1
    if age >= 75:
        score += 2
    elif age >= 65:
        score += 1
    if diabetes:
        score += 1
    if stroke:
        score += 2
    if vascular_disease:
        score += 1
    if female:
        score += 1

    if score == 0 and not female:
        recommendation = "No anticoagulation recommended"
    elif score == 1 and not female:
        recommendation = "Consider anticoagulation (weak indication)"
    elif score == 1 and female:
        recommendation = "No anticoagulation (score driven by female sex alone)"
    else:
        recommendation = "Oral anticoagulation recommended (DOAC preferred over warfarin)"

    return CHADSVAScResult(
        score=score,
        annual_stroke_risk=CHADS_VASC_STROKE_RISK[min(score, 9)],
        recommendation=recommendation,
    )


# ---------------------------------------------------------------------------
# APACHE II
# ---------------------------------------------------------------------------

# (lower bound, points) pairs scanned top-down; the first bound the
# value reaches wins, otherwise the trailing default applies.
Breakpoints = Tuple[Sequence[Tuple[float, int]], int]

TEMPERATURE: Breakpoints = (((41, 4), (39, 3), (38.5, 1), (36, 0), (34, 1), (32, 2), (30, 3)), 4)
MEAN_ARTERIAL_PRESSURE: Breakpoints = (((160, 4), (130, 3), (110, 2), (70, 0), (50, 2)), 4)
HEART_RATE: Breakpoints = (((180, 4), (140, 3), (110, 2), (70, 0), (55, 2), (40, 3)), 4)
RESPIRATORY_RATE: Breakpoints = (((50, 4), (35, 3), (25, 1), (12, 0), (10, 1), (6, 2)), 4)
A_A_GRADIENT: Breakpoints = (((500, 4), (350, 3), (200, 2)), 0)
ARTERIAL_PH: Breakpoints = (((7.7, 4), (7.6, 3), (7.5, 1), (7.33, 0), (7.25, 2), (7.15, 3)), 4)
SODIUM: Breakpoints = (((180, 4), (160, 3), (155, 2), (150, 1), (130, 0), (120, 2), (111, 3)), 4)
POTASSIUM: Breakpoints = (((7, 4), (6, 3), (5.5, 1), (3.5, 0), (3, 1), (2.5, 2)), 4)
CREATININE: Breakpoints = (((3.5, 4), (2, 3), (1.5, 2), (0.6, 0)), 2)
HEMATOCRIT: Breakpoints = (((60, 4), (50, 2), (46, 1), (30, 0), (20, 2)), 4)
WHITE_BLOOD_COUNT: Breakpoints = (((40, 4), (20, 2), (15, 1), (3, 0), (1, 2)), 4)
AGE: Breakpoints = (((75, 6), (65, 5), (55, 3), (45, 2)), 0)

CHRONIC_HEALTH_POINTS = {"none": 0, "elective": 2, "emergency": 5}


def _points(value: float, table: Breakpoints) -> int:
    bounds, default = table
    for lower, points in bounds:
        if value >= lower:
            return points
    return default


def _oxygenation_points(oxygenation: float, fio2_high: bool) -> int:
    if fio2_high:
        return _points(oxygenation, A_A_GRADIENT)
    # PaO2 (mmHg) when FiO2 < 0.5
    if oxygenation > 70:
        return 0
    elif oxygenation >= 61:
        return 1
    elif oxygenation >= 55:
        return 3
    return 4


def _apache_mortality(score: int) -> str:
    if score <= 4:
        return "~4%"
    elif score <= 9:
        return "~8%"
    elif score <= 14:
        return "~15%"
    elif score <= 19:
        return "~25%"
    elif score <= 24:
        return "~40%"
    elif score <= 29:
        return "~55%"
    elif score <= 34:
        return "~75%"
    return ">85%"


def _apache_category(score: int) -> str:
    if score <= 10:
        return "Low severity"
    elif score <= 20:
        return "Moderate severity"
    elif score <= 30:
        return "High severity"
    return "Very high severity"


def calculate_apache_ii(
    temperature: float,
    mean_arterial_pressure: float,
    heart_rate: float,
    respiratory_rate: float,
    gcs: int,
    age: float,
    chronic_health: str = "none",
    oxygenation: Optional[float] = None,
    fio2_high: bool = False,
    arterial_ph: Optional[float] = None,
    sodium: Optional[float] = None,
    potassium: Optional[float] = None,
    creatinine: Optional[float] = None,
    acute_renal_failure: bool = False,
    hematocrit: Optional[float] = None,
    wbc: Optional[float] = None,
) -> APACHEIIResult:
    """APACHE II severity score.

    Vital signs, GCS, age and chronic health are always scored.
    Laboratory variables contribute only when supplied; ``oxygenation``
    is A-aDO2 when ``fio2_high`` (FiO2 ≥ 0.5) and PaO2 otherwise.
    Creatinine points double with acute renal failure.

    Args:
        temperature: Core temperature in °C.
        mean_arterial_pressure: MAP in mmHg.
        gcs: Glasgow Coma Scale (3-15).
        chronic_health: ``"none"``, ``"elective"`` (elective postoperative)
            or ``"emergency"`` (non-operative or emergency postoperative).
        sodium: mEq/L.
        potassium: mEq/L.
        creatinine: mg/dL.
        hematocrit: Percent.
        wbc: ×1000/mm³.
    """
    if chronic_health not in CHRONIC_HEALTH_POINTS:
        raise InvalidInputError(f"chronic_health must be one of {sorted(CHRONIC_HEALTH_POINTS)}")

    score = (
        _points(temperature, TEMPERATURE)
        + _points(mean_arterial_pressure, MEAN_ARTERIAL_PRESSURE)
        + _points(heart_rate, HEART_RATE)
        + _points(respiratory_rate, RESPIRATORY_RATE)
        + (15 - gcs)
        + _points(age, AGE)
        + CHRONIC_HEALTH_POINTS[chronic_health]
    )
    if oxygenation is not None:
        score += _oxygenation_points(oxygenation, fio2_high)
    if arterial_ph is not None:
        score += _points(arterial_ph, ARTERIAL_PH)
    if sodium is not None:
        score += _points(sodium, SODIUM)
    if potassium is not None:
        score += _points(potassium, POTASSIUM)
    if creatinine is not None:
        creatinine_points = _points(creatinine, CREATININE)
        score += creatinine_points * 2 if acute_renal_failure else creatinine_points
    if hematocrit is not None:
        score += _points(hematocrit, HEMATOCRIT)
    if wbc is not None:
        score += _points(wbc, WHITE_BLOOD_COUNT)

    return APACHEIIResult(
        score=int(score),
        mortality_estimate=_apache_mortality(score),
        category=_apache_category(score),
    )
