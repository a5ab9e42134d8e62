"""Unit tests for random-effects pooling and its sensitivity analyses."""

import math

import numpy as np
import pytest
from scipy import stats

from evistat.core.errors import InvalidInputError
from evistat.meta import (
    MetaAnalyzer,
    Study,
    eggers_regression,
    leave_one_out,
    pool,
    subgroup_analysis,
)


def make_study(idx: int, effect: float, se: float, subgroup: str = None) -> Study:
    return Study(
        id=str(idx),
        name=f"Study {idx}",
        effect_size=effect,
        standard_error=se,
        subgroup=subgroup,
    )


def make_studies(effects, ses, subgroups=None):
    subgroups = subgroups or [None] * len(effects)
    return [make_study(i, e, s, g) for i, (e, s, g) in enumerate(zip(effects, ses, subgroups))]


def random_studies(seed: int, k: int):
    rng = np.random.default_rng(seed)
    effects = rng.normal(0.4, 0.5, size=k)
    ses = rng.uniform(0.05, 0.6, size=k)
    return make_studies(effects.tolist(), ses.tolist())


HETEROGENEOUS = make_studies(
    [0.1, 0.9, 0.2, 1.2, 0.5],
    [0.1, 0.1, 0.15, 0.2, 0.12],
)


class TestPool:
    """Tests for DerSimonian–Laird pooling."""

    def test_two_consistent_studies(self) -> None:
        """Two positive studies pool to a significant effect between them."""
        result = pool(make_studies([0.5, 0.7], [0.1, 0.1]))
        assert result.pooled_effect == pytest.approx(0.6)
        assert 0.5 < result.pooled_effect < 0.7
        assert result.p_value < 0.05
        assert result.is_significant
        # Q = 2 on 1 df: heterogeneity is not significant
        assert result.q_statistic == pytest.approx(2.0)
        assert result.q_p_value > 0.05
        assert result.i_squared == pytest.approx(50.0)
        assert result.tau_squared == pytest.approx(0.01)
        assert result.pooled_se == pytest.approx(0.1)
        assert result.lower_ci == pytest.approx(0.6 - 1.96 * 0.1)
        assert result.upper_ci == pytest.approx(0.6 + 1.96 * 0.1)

    def test_hand_computed_heterogeneous_pair(self) -> None:
        result = pool(make_studies([0.0, 2.0], [0.5, 0.5]))
        assert result.q_statistic == pytest.approx(8.0)
        assert result.q_df == 1
        assert result.q_p_value == pytest.approx(1 - stats.chi2.cdf(8.0, 1))
        assert result.tau_squared == pytest.approx(1.75)
        assert result.i_squared == pytest.approx(87.5)
        assert result.pooled_effect == pytest.approx(1.0)
        assert result.pooled_se == pytest.approx(1.0)
        assert result.z_value == pytest.approx(1.0)
        assert result.p_value == pytest.approx(2 * (1 - stats.norm.cdf(1.0)))
        assert result.heterogeneity == "considerable heterogeneity"

    def test_q_below_df_truncates_tau_and_i_squared(self) -> None:
        result = pool(make_studies([0.0, 1.0], [1.0, 1.0]))
        assert result.q_statistic == pytest.approx(0.5)
        assert result.tau_squared == 0.0
        assert result.i_squared == 0.0
        assert result.pooled_effect == pytest.approx(0.5)
        assert result.pooled_se == pytest.approx(math.sqrt(0.5))
        assert result.heterogeneity == "low heterogeneity"

    def test_single_study(self) -> None:
        """A single study pools to itself with degenerate heterogeneity."""
        result = pool([make_study(1, 0.3, 0.2)])
        assert result.pooled_effect == pytest.approx(0.3)
        assert result.pooled_se == pytest.approx(0.2)
        assert result.q_statistic == 0.0
        assert result.q_df == 0
        assert result.q_p_value == 1.0
        assert result.i_squared == 0.0
        assert result.tau_squared == 0.0
        assert result.n_studies == 1
        assert result.studies[0].weight_percent == pytest.approx(100.0)

    def test_empty_list_rejected(self) -> None:
        with pytest.raises(InvalidInputError):
            pool([])

    def test_mappings_are_validated(self) -> None:
        result = pool([
            {"id": "a", "name": "A", "effect_size": 0.2, "standard_error": 0.1},
            {"id": "b", "name": "B", "effect_size": 0.4, "variance": 0.04},
        ])
        assert result.n_studies == 2
        assert [row.name for row in result.studies] == ["A", "B"]

    def test_malformed_mapping_rejected(self) -> None:
        with pytest.raises(InvalidInputError):
            pool([{"id": "a", "name": "A", "effect_size": 0.2, "standard_error": -0.1}])

    def test_overflowing_standard_error_rejected(self) -> None:
        with pytest.raises(InvalidInputError):
            pool([
                {"id": "a", "name": "A", "effect_size": 0.2, "standard_error": 1e200},
                {"id": "b", "name": "B", "effect_size": 0.4, "standard_error": 0.1},
            ])

    def test_missing_uncertainty_rejected(self) -> None:
        with pytest.raises(InvalidInputError):
            pool([{"id": "a", "name": "A", "effect_size": 0.2}])

    def test_per_study_rows_keep_input_order(self) -> None:
        result = pool(HETEROGENEOUS)
        assert [row.name for row in result.studies] == [s.name for s in HETEROGENEOUS]
        for row, study in zip(result.studies, HETEROGENEOUS):
            assert row.lower_ci == pytest.approx(study.effect_size - 1.96 * study.standard_error)
            assert row.upper_ci == pytest.approx(study.effect_size + 1.96 * study.standard_error)

    def test_deterministic(self) -> None:
        assert pool(HETEROGENEOUS).model_dump() == pool(HETEROGENEOUS).model_dump()

    def test_input_is_not_mutated(self) -> None:
        before = [s.model_dump() for s in HETEROGENEOUS]
        pool(HETEROGENEOUS)
        assert [s.model_dump() for s in HETEROGENEOUS] == before

    def test_custom_z_critical(self) -> None:
        analyzer = MetaAnalyzer(z_critical=2.576)
        result = analyzer.pool(make_studies([0.5, 0.7], [0.1, 0.1]))
        assert result.upper_ci - result.lower_ci == pytest.approx(2 * 2.576 * result.pooled_se)

    @pytest.mark.parametrize("seed", range(10))
    def test_invariants_hold_for_random_inputs(self, seed: int) -> None:
        studies = random_studies(seed, k=2 + seed)
        result = pool(studies)
        assert sum(row.weight_percent for row in result.studies) == pytest.approx(100.0)
        assert result.lower_ci <= result.pooled_effect <= result.upper_ci
        assert result.tau_squared >= 0
        assert 0 <= result.i_squared <= 100
        assert 0 <= result.p_value <= 1
        assert 0 <= result.q_p_value <= 1
        for row in result.studies:
            assert row.lower_ci <= row.effect_size <= row.upper_ci

    @pytest.mark.parametrize("seed", range(5))
    def test_pooled_effect_within_study_range(self, seed: int) -> None:
        studies = random_studies(seed + 100, k=6)
        result = pool(studies)
        effects = [s.effect_size for s in studies]
        assert min(effects) <= result.pooled_effect <= max(effects)


class TestEggersRegression:
    """Tests for Egger's funnel-asymmetry test."""

    EFFECTS = [0.3, 0.5, 0.4, 0.8, 0.9, 1.1]
    SES = [0.05, 0.1, 0.08, 0.2, 0.25, 0.3]

    def test_matches_ordinary_least_squares(self) -> None:
        result = eggers_regression(make_studies(self.EFFECTS, self.SES))
        x = 1 / np.array(self.SES)
        y = np.array(self.EFFECTS) / np.array(self.SES)
        slope, intercept = np.polyfit(x, y, 1)
        n = len(x)
        residuals = y - (intercept + slope * x)
        mse = np.sum(residuals ** 2) / (n - 2)
        sxx = np.sum((x - x.mean()) ** 2)
        se_intercept = math.sqrt(mse * (1 / n + x.mean() ** 2 / sxx))

        assert result.df == n - 2
        assert result.intercept == pytest.approx(intercept)
        assert result.slope == pytest.approx(slope)
        assert result.se == pytest.approx(se_intercept)
        assert result.t_value == pytest.approx(intercept / se_intercept)
        expected_p = 2 * (1 - stats.t.cdf(abs(intercept / se_intercept), n - 2))
        assert result.p_value == pytest.approx(expected_p)

    def test_small_studies_with_larger_effects_give_positive_intercept(self) -> None:
        result = eggers_regression(make_studies(self.EFFECTS, self.SES))
        assert result.intercept > 0

    def test_bias_flag_follows_threshold(self) -> None:
        studies = make_studies(self.EFFECTS, self.SES)
        p = eggers_regression(studies).p_value
        strict = MetaAnalyzer(bias_threshold=min(p / 2, 0.5)).eggers_regression(studies)
        loose = MetaAnalyzer(bias_threshold=min(p * 2, 0.99)).eggers_regression(studies)
        assert not strict.bias_detected
        assert strict.interpretation == "No strong evidence of bias"
        if p * 2 < 0.99:
            assert loose.bias_detected
            assert loose.interpretation == "Possible publication bias"

    def test_requires_three_studies(self) -> None:
        with pytest.raises(InvalidInputError):
            eggers_regression(make_studies([0.1, 0.2], [0.1, 0.2]))

    def test_identical_precision_rejected(self) -> None:
        with pytest.raises(InvalidInputError):
            eggers_regression(make_studies([0.1, 0.2, 0.3], [0.1, 0.1, 0.1]))


class TestLeaveOneOut:
    """Tests for leave-one-out sensitivity analysis."""

    def test_one_result_per_study(self) -> None:
        results = leave_one_out(HETEROGENEOUS)
        assert len(results) == len(HETEROGENEOUS)
        assert all(r.n_studies == len(HETEROGENEOUS) - 1 for r in results)

    def test_results_follow_input_order(self) -> None:
        results = leave_one_out(HETEROGENEOUS)
        for i, result in enumerate(results):
            subset = HETEROGENEOUS[:i] + HETEROGENEOUS[i + 1:]
            assert result.model_dump() == pool(subset).model_dump()
            assert HETEROGENEOUS[i].name not in [row.name for row in result.studies]

    def test_requires_three_studies(self) -> None:
        with pytest.raises(InvalidInputError):
            leave_one_out(make_studies([0.1, 0.2], [0.1, 0.2]))

    def test_sensitivity_table(self) -> None:
        df = MetaAnalyzer().sensitivity_table(HETEROGENEOUS)
        assert list(df.columns) == ["omitted", "pooled_effect", "lower_ci", "upper_ci", "i_squared", "p_value"]
        assert list(df["omitted"]) == [s.name for s in HETEROGENEOUS]
        assert (df["lower_ci"] <= df["upper_ci"]).all()


class TestSubgroups:
    """Tests for subgroup pooling and the Q-between test."""

    STUDIES = make_studies(
        [0.2, 0.8, 0.3, 0.9, 0.5],
        [0.1, 0.1, 0.12, 0.15, 0.2],
        ["Adults", "Children", "Adults", "Children", None],
    )

    def test_groups_in_first_seen_order(self) -> None:
        groups = subgroup_analysis(self.STUDIES)
        assert list(groups) == ["Adults", "Children", "Overall"]
        assert groups["Adults"].n_studies == 2
        assert groups["Children"].n_studies == 2
        assert groups["Overall"].n_studies == 1

    def test_subgroup_matches_direct_pool(self) -> None:
        groups = subgroup_analysis(self.STUDIES)
        adults = [s for s in self.STUDIES if s.subgroup == "Adults"]
        assert groups["Adults"].model_dump() == pool(adults).model_dump()

    def test_custom_default_label(self) -> None:
        groups = MetaAnalyzer(default_subgroup="Untagged").subgroup_analysis(self.STUDIES)
        assert "Untagged" in groups

    def test_empty_list_rejected(self) -> None:
        with pytest.raises(InvalidInputError):
            subgroup_analysis([])

    def test_difference_between_subgroups(self) -> None:
        test = MetaAnalyzer().subgroup_difference(self.STUDIES)
        assert test.df == 2
        assert test.q_between > 0
        assert 0 <= test.p_value <= 1
        assert list(test.subgroups) == ["Adults", "Children", "Overall"]

    def test_single_subgroup_has_no_difference(self) -> None:
        test = MetaAnalyzer().subgroup_difference(HETEROGENEOUS)
        assert test.df == 0
        assert test.q_between == pytest.approx(0.0)
        assert test.p_value == 1.0


class TestForestPlotData:
    def test_rows_and_pooled_summary(self) -> None:
        df = MetaAnalyzer().forest_plot_data(HETEROGENEOUS)
        assert len(df) == len(HETEROGENEOUS) + 1
        assert list(df["type"]) == ["study"] * len(HETEROGENEOUS) + ["pooled"]
        pooled = df.iloc[-1]
        assert pooled["study"] == "Pooled"
        assert pooled["effect"] == pytest.approx(pool(HETEROGENEOUS).pooled_effect)
        assert df.iloc[:-1]["weight"].sum() == pytest.approx(100.0)
