"""Statistical meta‑analysis and synthesis.

This module defines the :class:`MetaAnalyzer` class for pooling a
collection of study effect sizes under a random-effects model using the
DerSimonian–Laird estimator for between‑study variance.  It also covers
heterogeneity assessment, Egger's regression test for small-study
effects, leave-one-out sensitivity analysis, subgroup decomposition and
generation of data frames suitable for forest plot visualisation.

The analyser is stateless: it only holds configuration, so a single
instance can be shared across threads.  Module-level :func:`pool`,
:func:`eggers_regression`, :func:`leave_one_out` and
:func:`subgroup_analysis` delegate to a default instance.
"""

from __future__ import annotations

import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import numpy as np
import pandas as pd
from pydantic import ValidationError
from scipy import stats

from ..config.settings import settings
from ..core.errors import InvalidInputError
from ..utils.logging import get_logger
from .models import EggerResult, PooledResult, Study, StudyResult, SubgroupTest

logger = get_logger(__name__)

StudyLike = Union[Study, Mapping[str, Any]]


def coerce_studies(studies: Iterable[StudyLike]) -> List[Study]:
    """Validate mappings into :class:`Study` objects.

    Raises:
        InvalidInputError: If any entry fails validation.
    """
    coerced: List[Study] = []
    for i, study in enumerate(studies):
        if isinstance(study, Study):
            coerced.append(study)
            continue
        try:
            coerced.append(Study.model_validate(study))
        except ValidationError as exc:
            raise InvalidInputError(f"Study {i} is malformed: {exc}") from exc
    return coerced


def heterogeneity_label(i_squared: float) -> str:
    """Cochrane handbook interpretation of I²."""
    if i_squared < 25:
        return "low heterogeneity"
    elif i_squared < 50:
        return "moderate heterogeneity"
    elif i_squared < 75:
        return "substantial heterogeneity"
    return "considerable heterogeneity"


class MetaAnalyzer:
    """Perform random-effects meta‑analysis on a set of studies.

    Args:
        z_critical: Critical value used for all 95% confidence intervals.
        default_subgroup: Label given to studies without a subgroup tag.
        bias_threshold: Egger intercept p-value below which asymmetry is
            flagged.
    """

    def __init__(
        self,
        z_critical: Optional[float] = None,
        default_subgroup: Optional[str] = None,
        bias_threshold: Optional[float] = None,
    ) -> None:
        self.z_critical = z_critical if z_critical is not None else settings.ci_z_critical
        self.default_subgroup = default_subgroup or settings.default_subgroup
        self.bias_threshold = bias_threshold if bias_threshold is not None else settings.egger_bias_threshold

    def pool(self, studies: Iterable[StudyLike]) -> PooledResult:
        """Compute the random-effects pooled effect across studies.

        Args:
            studies: Studies sharing a common effect-size scale.  A single
                study is accepted; its heterogeneity statistics are
                degenerate (Q = 0, df = 0, I² = 0).

        Returns:
            A :class:`PooledResult` with the pooled estimate, its
            confidence interval and significance, heterogeneity
            statistics and per-study random-effects weights.

        Raises:
            InvalidInputError: If no studies are provided or a study is
                malformed.
        """
        studies = coerce_studies(studies)
        if not studies:
            raise InvalidInputError("No studies provided")
        effects = np.array([s.effect_size for s in studies], dtype=float)
        variances = np.array([s.variance for s in studies], dtype=float)
        ses = np.array([s.standard_error for s in studies], dtype=float)
        if not (np.all(np.isfinite(variances)) and np.all(variances > 0)):
            raise InvalidInputError("Every study needs a finite, positive variance")

        # Fixed effect
        weights = 1.0 / variances
        total_weight = np.sum(weights)
        fixed_effect = np.sum(weights * effects) / total_weight

        # Heterogeneity
        q_statistic = float(np.sum(weights * (effects - fixed_effect) ** 2))
        df = len(studies) - 1
        q_p_value = float(1 - stats.chi2.cdf(q_statistic, df)) if df > 0 else 1.0
        tau_squared = self._tau_squared(q_statistic, df, weights)
        i_squared = max(0.0, (q_statistic - df) / q_statistic * 100.0) if q_statistic > 0 else 0.0

        # Random effects
        re_weights = 1.0 / (variances + tau_squared)
        total_re_weight = np.sum(re_weights)
        pooled_effect = float(np.sum(re_weights * effects) / total_re_weight)
        pooled_se = float(np.sqrt(1.0 / total_re_weight))
        z_crit = self.z_critical
        z_value = pooled_effect / pooled_se
        p_value = float(2 * (1 - stats.norm.cdf(abs(z_value))))

        weight_percent = re_weights / total_re_weight * 100.0
        study_results = [
            StudyResult(
                name=s.name,
                effect_size=s.effect_size,
                lower_ci=s.effect_size - z_crit * ses[i],
                upper_ci=s.effect_size + z_crit * ses[i],
                weight_percent=float(weight_percent[i]),
            )
            for i, s in enumerate(studies)
        ]
        logger.debug(
            "Pooled %d studies: effect=%.4f tau2=%.4f I2=%.1f",
            len(studies),
            pooled_effect,
            tau_squared,
            i_squared,
        )
        return PooledResult(
            pooled_effect=pooled_effect,
            pooled_se=pooled_se,
            lower_ci=pooled_effect - z_crit * pooled_se,
            upper_ci=pooled_effect + z_crit * pooled_se,
            z_value=float(z_value),
            p_value=p_value,
            i_squared=float(i_squared),
            q_statistic=q_statistic,
            q_df=df,
            q_p_value=q_p_value,
            tau_squared=tau_squared,
            n_studies=len(studies),
            heterogeneity=heterogeneity_label(i_squared),
            studies=study_results,
        )

    def _tau_squared(self, q_statistic: float, df: int, weights: np.ndarray) -> float:
        """Estimate between‑study variance (tau²) using DerSimonian–Laird."""
        c = np.sum(weights) - np.sum(weights ** 2) / np.sum(weights)
        tau_squared = max(0.0, (q_statistic - df) / c) if c > 0 else 0.0
        return float(tau_squared)

    def eggers_regression(self, studies: Iterable[StudyLike]) -> EggerResult:
        """Assess small-study effects using Egger's regression test.

        Regresses the standardised effect (effect / SE) on precision
        (1 / SE) by ordinary least squares and tests the intercept with
        a t-test on ``n - 2`` degrees of freedom.

        Raises:
            InvalidInputError: With fewer than 3 studies or when every
                study has the same precision.
        """
        studies = coerce_studies(studies)
        if len(studies) < 3:
            raise InvalidInputError("Need at least 3 studies for Egger's test")
        ses = np.array([s.standard_error for s in studies], dtype=float)
        effects = np.array([s.effect_size for s in studies], dtype=float)
        precision = 1.0 / ses
        standardized = effects / ses
        try:
            fit = stats.linregress(precision, standardized)
        except ValueError as exc:
            raise InvalidInputError(f"Egger's test is undefined: {exc}") from exc
        df = len(studies) - 2
        se_intercept = float(fit.intercept_stderr)
        if se_intercept > 0:
            t_value = fit.intercept / se_intercept
            p_value = float(2 * (1 - stats.t.cdf(abs(t_value), df)))
        else:
            # Perfect fit: the intercept carries no sampling error
            t_value = 0.0 if fit.intercept == 0 else math.copysign(math.inf, fit.intercept)
            p_value = 1.0 if fit.intercept == 0 else 0.0
        bias_detected = p_value < self.bias_threshold
        return EggerResult(
            intercept=float(fit.intercept),
            slope=float(fit.slope),
            se=se_intercept,
            t_value=float(t_value),
            p_value=p_value,
            df=df,
            bias_detected=bool(bias_detected),
            interpretation="Possible publication bias" if bias_detected else "No strong evidence of bias",
        )

    def leave_one_out(self, studies: Iterable[StudyLike]) -> List[PooledResult]:
        """Re-pool the studies once per study, omitting that study.

        Results are returned in input order: element ``i`` excludes
        study ``i``.

        Raises:
            InvalidInputError: If fewer than 3 studies are given, since
                each subset must keep at least two studies.
        """
        studies = coerce_studies(studies)
        if len(studies) < 3:
            raise InvalidInputError("Leave-one-out analysis needs at least 3 studies")
        return [self.pool(studies[:i] + studies[i + 1:]) for i in range(len(studies))]

    def sensitivity_table(self, studies: Iterable[StudyLike]) -> pd.DataFrame:
        """Leave-one-out results as a DataFrame, one row per omitted study."""
        studies = coerce_studies(studies)
        rows = []
        for study, result in zip(studies, self.leave_one_out(studies)):
            rows.append({
                "omitted": study.name,
                "pooled_effect": result.pooled_effect,
                "lower_ci": result.lower_ci,
                "upper_ci": result.upper_ci,
                "i_squared": result.i_squared,
                "p_value": result.p_value,
            })
        return pd.DataFrame(rows)

    def _partition(self, studies: List[Study]) -> Dict[str, List[Study]]:
        groups: Dict[str, List[Study]] = {}
        for study in studies:
            groups.setdefault(study.subgroup or self.default_subgroup, []).append(study)
        return groups

    def subgroup_analysis(self, studies: Iterable[StudyLike]) -> Dict[str, PooledResult]:
        """Pool each subgroup independently.

        Studies without a subgroup tag fall into the default group.
        Subgroups appear in the order they are first seen.
        """
        studies = coerce_studies(studies)
        if not studies:
            raise InvalidInputError("No studies provided")
        return {label: self.pool(members) for label, members in self._partition(studies).items()}

    def subgroup_difference(self, studies: Iterable[StudyLike]) -> SubgroupTest:
        """Test whether subgroup pooled estimates differ (Q-between)."""
        subgroups = self.subgroup_analysis(studies)
        effects = np.array([r.pooled_effect for r in subgroups.values()])
        weights = np.array([1.0 / r.pooled_se ** 2 for r in subgroups.values()])
        overall = np.sum(weights * effects) / np.sum(weights)
        q_between = float(np.sum(weights * (effects - overall) ** 2))
        df = len(subgroups) - 1
        p_value = float(1 - stats.chi2.cdf(q_between, df)) if df > 0 else 1.0
        return SubgroupTest(q_between=q_between, df=df, p_value=p_value, subgroups=subgroups)

    def forest_plot_data(self, studies: Iterable[StudyLike], pooled: Optional[PooledResult] = None) -> pd.DataFrame:
        """Create a DataFrame for forest plot visualisation."""
        studies = coerce_studies(studies)
        if pooled is None:
            pooled = self.pool(studies)
        rows = []
        for row in pooled.studies:
            rows.append({
                "study": row.name,
                "effect": row.effect_size,
                "ci_lower": row.lower_ci,
                "ci_upper": row.upper_ci,
                "weight": row.weight_percent,
                "type": "study",
            })
        rows.append({
            "study": "Pooled",
            "effect": pooled.pooled_effect,
            "ci_lower": pooled.lower_ci,
            "ci_upper": pooled.upper_ci,
            "weight": None,
            "type": "pooled",
        })
        return pd.DataFrame(rows)


_default = MetaAnalyzer()


def pool(studies: Iterable[StudyLike]) -> PooledResult:
    return _default.pool(studies)


def eggers_regression(studies: Iterable[StudyLike]) -> EggerResult:
    return _default.eggers_regression(studies)


def leave_one_out(studies: Iterable[StudyLike]) -> List[PooledResult]:
    return _default.leave_one_out(studies)


def subgroup_analysis(studies: Iterable[StudyLike]) -> Dict[str, PooledResult]:
    return _default.subgroup_analysis(studies)
