"""Treatment-effect and test-accuracy calculators.

All calculations are deterministic arithmetic; nothing here calls a
language model.

References:
    Sackett DL. BMJ 1996;313:1232-1233 (NNT)
    Newcombe RG. Stat Med 1998;17:857-872 (Wilson score interval)
"""

from __future__ import annotations

import math
from typing import Optional

from scipy import stats

from ..core.errors import InvalidInputError
from .models import ConfidenceInterval, DiagnosticTestResult, NNTResult, ProportionCIResult


def calculate_nnt(
    control_rate: float,
    treatment_rate: float,
    n_control: Optional[int] = None,
    n_treatment: Optional[int] = None,
) -> NNTResult:
    """Number needed to treat (or harm) from two event rates.

    Args:
        control_rate: Event rate in the control group (0-1).
        treatment_rate: Event rate in the treatment group (0-1).
        n_control: Control group size, enables the Wald CI.
        n_treatment: Treatment group size, enables the Wald CI.

    Returns:
        An :class:`NNTResult`.  ``nnt`` is ``math.inf`` when the rates
        are equal; the CI defaults to ``(0, inf)`` without sample sizes.
    """
    arr = control_rate - treatment_rate
    rrr = arr / control_rate if control_rate != 0 else 0.0
    nnt = abs(1 / arr) if arr != 0 else math.inf

    ci95 = ConfidenceInterval(lower=0.0, upper=math.inf)
    if n_control and n_treatment and arr != 0:
        se = math.sqrt(
            control_rate * (1 - control_rate) / n_control
            + treatment_rate * (1 - treatment_rate) / n_treatment
        )
        arr_lower = arr - 1.96 * se
        arr_upper = arr + 1.96 * se
        bounds = [abs(1 / b) if b != 0 else math.inf for b in (arr_lower, arr_upper)]
        ci95 = ConfidenceInterval(lower=min(bounds), upper=max(bounds))

    if nnt == math.inf:
        interpretation = "No difference between groups"
    else:
        # rounding first keeps float noise (0.3 - 0.2) from bumping the ceiling
        k = math.ceil(round(nnt, 9))
        if arr > 0:
            interpretation = f"NNT = {k}: Treat {k} patients to prevent 1 event"
        else:
            interpretation = f"NNH = {k}: Treating {k} patients causes 1 additional event"

    return NNTResult(nnt=nnt, arr=arr, rrr=rrr, ci95=ci95, interpretation=interpretation)


def calculate_proportion_ci(
    successes: int,
    total: int,
    confidence_level: float = 0.95,
) -> ProportionCIResult:
    """Wilson score interval for a binomial proportion.

    Raises:
        InvalidInputError: If ``total`` is not positive or ``successes``
            falls outside ``[0, total]``.
    """
    if total <= 0:
        raise InvalidInputError("total must be positive")
    if not 0 <= successes <= total:
        raise InvalidInputError("successes must lie between 0 and total")
    p = successes / total
    z = float(stats.norm.ppf(1 - (1 - confidence_level) / 2))

    denominator = 1 + z * z / total
    center = (p + z * z / (2 * total)) / denominator
    offset = (z / denominator) * math.sqrt(p * (1 - p) / total + z * z / (4 * total * total))

    # the interval always contains p; min/max only absorb rounding at p = 0 or 1
    return ProportionCIResult(
        proportion=p,
        lower=max(0.0, min(center - offset, p)),
        upper=min(1.0, max(center + offset, p)),
    )


def calculate_diagnostic_test(
    true_positive: int,
    false_positive: int,
    false_negative: int,
    true_negative: int,
) -> DiagnosticTestResult:
    """Accuracy metrics from a 2×2 contingency table.

    Empty denominators yield 0.  Likelihood ratios become ``math.inf``
    when their denominator vanishes (PLR at perfect specificity, NLR at
    zero specificity).
    """
    total = true_positive + false_positive + false_negative + true_negative
    diseased = true_positive + false_negative
    healthy = false_positive + true_negative
    test_positive = true_positive + false_positive
    test_negative = false_negative + true_negative

    sensitivity = true_positive / diseased if diseased > 0 else 0.0
    specificity = true_negative / healthy if healthy > 0 else 0.0
    ppv = true_positive / test_positive if test_positive > 0 else 0.0
    npv = true_negative / test_negative if test_negative > 0 else 0.0
    plr = sensitivity / (1 - specificity) if specificity < 1 else math.inf
    nlr = (1 - sensitivity) / specificity if specificity > 0 else math.inf
    accuracy = (true_positive + true_negative) / total if total > 0 else 0.0
    prevalence = diseased / total if total > 0 else 0.0

    return DiagnosticTestResult(
        sensitivity=round(sensitivity, 3),
        specificity=round(specificity, 3),
        ppv=round(ppv, 3),
        npv=round(npv, 3),
        plr=round(plr, 2),
        nlr=round(nlr, 3),
        accuracy=round(accuracy, 3),
        prevalence=round(prevalence, 3),
    )
