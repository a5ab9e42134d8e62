"""Sample size and power calculations.

Closed-form normal-approximation formulas for five study designs:

- two independent means (Cohen's d)
- two independent proportions (Cohen's h, arcsine scale)
- correlation (Fisher z transform)
- one-sample mean
- paired means

:func:`power` inverts each formula through the noncentral-normal
approximation ``Φ(λ − zα)``.
"""

from __future__ import annotations

import math
from typing import Tuple, Union

from scipy import stats

from ..core.errors import InvalidInputError, UnsupportedStudyTypeError
from ..utils.logging import get_logger
from .models import SampleSizeRequest, StudyType

logger = get_logger(__name__)


def resolve_study_type(study_type: Union[StudyType, str]) -> StudyType:
    try:
        return StudyType(study_type)
    except ValueError:
        raise UnsupportedStudyTypeError(study_type) from None


def critical_values(alpha: float, power: float, tails: int = 2) -> Tuple[float, float]:
    """Return ``(z_alpha, z_beta)`` for the given error rates."""
    if tails == 2:
        z_alpha = stats.norm.ppf(1 - alpha / 2)
    else:
        z_alpha = stats.norm.ppf(1 - alpha)
    z_beta = stats.norm.ppf(power)
    return float(z_alpha), float(z_beta)


def fisher_z(r: float) -> float:
    return 0.5 * math.log((1 + r) / (1 - r))


def _round_up(numerator: float, denominator: float, offset: float = 0.0) -> int:
    """Smallest whole sample size of at least ``numerator / denominator + offset``."""
    n = numerator / denominator + offset if denominator != 0 else math.inf
    if not math.isfinite(n):
        raise InvalidInputError("Required sample size is not finite; effect_size is too small")
    return max(1, math.ceil(n))


def sample_size_per_group(request: SampleSizeRequest) -> Tuple[int, int]:
    """Return ``(n_treatment, n_control)`` for a two-group design.

    Single-group designs report their whole sample as the first element
    and zero for the second.
    """
    study_type = resolve_study_type(request.study_type)
    z_alpha, z_beta = critical_values(request.alpha, request.power, request.tails)
    z_sum_sq = (z_alpha + z_beta) ** 2
    d = request.effect_size
    if d == 0:
        raise InvalidInputError("effect_size must be non-zero")
    if study_type is StudyType.CORRELATION and abs(d) >= 1:
        raise InvalidInputError("correlation effect_size must lie strictly between -1 and 1")

    if study_type is StudyType.TWO_MEANS:
        n1 = _round_up(2 * z_sum_sq, d * d)
        return n1, _round_up(n1 * request.ratio, 1.0)
    if study_type is StudyType.TWO_PROPORTIONS:
        n1 = _round_up(z_sum_sq, 2 * d * d)
        return n1, _round_up(n1 * request.ratio, 1.0)
    if study_type is StudyType.CORRELATION:
        return _round_up(z_sum_sq, fisher_z(d) ** 2, offset=3), 0
    if study_type is StudyType.ONE_SAMPLE_MEAN:
        return _round_up(z_sum_sq, d * d), 0
    if study_type is StudyType.PAIRED:
        return _round_up(2 * z_sum_sq, d * d), 0
    raise UnsupportedStudyTypeError(study_type)


def sample_size(request: SampleSizeRequest) -> int:
    """Total sample size required to detect ``request.effect_size``.

    Raises:
        UnsupportedStudyTypeError: If ``request.study_type`` is unknown.
    """
    n_treatment, n_control = sample_size_per_group(request)
    total = n_treatment + n_control
    logger.debug(
        "Sample size for %s (effect=%s, power=%s, alpha=%s): %d",
        request.study_type,
        request.effect_size,
        request.power,
        request.alpha,
        total,
    )
    return total


def power(
    n: float,
    effect_size: float,
    alpha: float,
    study_type: Union[StudyType, str],
    ratio: float = 1.0,
    tails: int = 2,
) -> float:
    """Statistical power achieved by a total sample of ``n``.

    ``n`` is the total across groups, matching what :func:`sample_size`
    returns.  The direction of the effect is ignored.

    Raises:
        UnsupportedStudyTypeError: If ``study_type`` is unknown.
    """
    study_type = resolve_study_type(study_type)
    if study_type is StudyType.CORRELATION and abs(effect_size) >= 1:
        raise InvalidInputError("correlation effect_size must lie strictly between -1 and 1")
    z_alpha = float(stats.norm.ppf(1 - alpha / 2) if tails == 2 else stats.norm.ppf(1 - alpha))
    effect = abs(effect_size)
    n = max(float(n), 0.0)

    if study_type is StudyType.TWO_MEANS:
        lam = effect * math.sqrt(n / (1 + ratio) / 2)
    elif study_type is StudyType.TWO_PROPORTIONS:
        lam = effect * math.sqrt(2 * n / (1 + ratio))
    elif study_type is StudyType.CORRELATION:
        lam = abs(fisher_z(effect_size)) * math.sqrt(max(n - 3, 0.0))
    elif study_type is StudyType.ONE_SAMPLE_MEAN:
        lam = effect * math.sqrt(n)
    elif study_type is StudyType.PAIRED:
        lam = effect * math.sqrt(n / 2)
    else:
        raise UnsupportedStudyTypeError(study_type)

    result = float(stats.norm.cdf(lam - z_alpha))
    return min(1.0, max(0.0, result))
