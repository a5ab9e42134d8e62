"""Effect sizes and standard errors from summary data.

Helpers used to turn the raw numbers extracted from a primary study
(group means and SDs, or 2×2 event counts) into a :class:`Study` ready
for pooling.  Ratio measures are returned on the log scale so that all
effect sizes entering :func:`evistat.meta.analyzer.pool` share an
additive, directionally-consistent scale.
"""

from __future__ import annotations

import math
from typing import Optional

from ..core.errors import InvalidInputError
from .models import EffectSizeType, Study


def cohen_d(mean1: float, mean2: float, sd1: float, sd2: float, n1: int, n2: int) -> float:
    """Standardised mean difference using the pooled standard deviation."""
    pooled_sd = math.sqrt(((n1 - 1) * sd1 ** 2 + (n2 - 1) * sd2 ** 2) / (n1 + n2 - 2))
    return (mean1 - mean2) / pooled_sd


def hedges_g(d: float, n1: int, n2: int) -> float:
    """Apply the small-sample correction ``J = 1 - 3/(4N - 9)`` to Cohen's d."""
    correction = 1 - 3 / (4 * (n1 + n2) - 9)
    return d * correction


def odds_ratio(events1: int, total1: int, events2: int, total2: int) -> float:
    a = events1
    b = total1 - events1
    c = events2
    d = total2 - events2
    if b * c == 0:
        return math.inf if a * d > 0 else math.nan
    return (a * d) / (b * c)


def risk_ratio(events1: int, total1: int, events2: int, total2: int) -> float:
    risk1 = events1 / total1
    risk2 = events2 / total2
    if risk2 == 0:
        return math.inf if risk1 > 0 else math.nan
    return risk1 / risk2


def _effect_type(value) -> EffectSizeType:
    try:
        return EffectSizeType(value)
    except ValueError:
        raise InvalidInputError(f"Unknown effect size type: {value!r}") from None


def approximate_standard_error(
    effect_size: float,
    n1: int,
    n2: int,
    effect_size_type: EffectSizeType,
) -> float:
    """Rough standard error when only group sizes are known.

    The odds-ratio branch assumes balanced events and is only a
    placeholder until counts are available; prefer
    :func:`log_odds_ratio_se` when they are.
    """
    effect_size_type = _effect_type(effect_size_type)
    if effect_size_type is EffectSizeType.SMD:
        return math.sqrt((n1 + n2) / (n1 * n2) + effect_size ** 2 / (2 * (n1 + n2)))
    if effect_size_type is EffectSizeType.OR:
        return math.sqrt(4 / n1 + 4 / n2)
    if effect_size_type is EffectSizeType.RR:
        return math.sqrt(1 / n1 + 1 / n2)
    if effect_size_type in (EffectSizeType.MD, EffectSizeType.HR, EffectSizeType.CORRELATION):
        return math.sqrt((n1 + n2) / (n1 * n2))
    raise InvalidInputError(f"No standard error approximation for {effect_size_type.value!r}")


def _continuity(*cells: float) -> tuple:
    # Haldane–Anscombe correction when any cell is empty
    if any(c == 0 for c in cells):
        return tuple(c + 0.5 for c in cells)
    return cells


def log_odds_ratio_se(a: float, b: float, c: float, d: float) -> float:
    """Woolf standard error of the log odds ratio."""
    a, b, c, d = _continuity(a, b, c, d)
    return math.sqrt(1 / a + 1 / b + 1 / c + 1 / d)


def log_risk_ratio_se(events1: float, total1: float, events2: float, total2: float) -> float:
    """Katz standard error of the log risk ratio."""
    return math.sqrt(1 / events1 - 1 / total1 + 1 / events2 - 1 / total2)


def study_from_means(
    study_id: str,
    name: str,
    mean_treatment: float,
    sd_treatment: float,
    n_treatment: int,
    mean_control: float,
    sd_control: float,
    n_control: int,
    small_sample_correction: bool = True,
    subgroup: Optional[str] = None,
) -> Study:
    """Build an SMD study (Hedges' g by default) from group summaries."""
    d = cohen_d(mean_treatment, mean_control, sd_treatment, sd_control, n_treatment, n_control)
    if small_sample_correction:
        d = hedges_g(d, n_treatment, n_control)
    se = approximate_standard_error(d, n_treatment, n_control, EffectSizeType.SMD)
    return Study(
        id=study_id,
        name=name,
        effect_size=d,
        effect_size_type=EffectSizeType.SMD,
        standard_error=se,
        sample_size_treatment=n_treatment,
        sample_size_control=n_control,
        mean_treatment=mean_treatment,
        sd_treatment=sd_treatment,
        mean_control=mean_control,
        sd_control=sd_control,
        subgroup=subgroup,
    )


def study_from_events(
    study_id: str,
    name: str,
    events_treatment: int,
    n_treatment: int,
    events_control: int,
    n_control: int,
    measure: EffectSizeType = EffectSizeType.OR,
    subgroup: Optional[str] = None,
) -> Study:
    """Build a log-OR or log-RR study from 2×2 counts.

    Zero cells receive a 0.5 continuity correction so that the log
    ratio and its standard error stay finite.
    """
    measure = _effect_type(measure)
    a = events_treatment
    b = n_treatment - events_treatment
    c = events_control
    d = n_control - events_control
    a, b, c, d = _continuity(a, b, c, d)
    if measure is EffectSizeType.OR:
        effect = math.log(odds_ratio(a, a + b, c, c + d))
        se = log_odds_ratio_se(a, b, c, d)
    elif measure is EffectSizeType.RR:
        effect = math.log(risk_ratio(a, a + b, c, c + d))
        se = log_risk_ratio_se(a, a + b, c, c + d)
    else:
        raise InvalidInputError(f"study_from_events supports 'or' and 'rr', got {measure.value!r}")
    return Study(
        id=study_id,
        name=name,
        effect_size=effect,
        effect_size_type=measure,
        standard_error=se,
        sample_size_treatment=n_treatment,
        sample_size_control=n_control,
        events_treatment=events_treatment,
        events_control=events_control,
        subgroup=subgroup,
    )
