"""Unit tests for the Study model and effect-size helpers."""

import math

import pytest
from pydantic import ValidationError

from evistat.core.errors import InvalidInputError
from evistat.meta import EffectSizeType, Study, study_from_events, study_from_means
from evistat.meta.effect_sizes import (
    approximate_standard_error,
    cohen_d,
    hedges_g,
    log_odds_ratio_se,
    odds_ratio,
    risk_ratio,
)


class TestStudyModel:
    """Tests for Study validation and derived uncertainty."""

    def test_variance_derived_from_standard_error(self) -> None:
        study = Study(id="1", name="Smith 2020", effect_size=0.4, standard_error=0.2)
        assert study.variance == pytest.approx(0.04)
        assert study.effect_size_type is EffectSizeType.SMD
        assert study.subgroup is None

    def test_standard_error_derived_from_variance(self) -> None:
        study = Study(id="1", name="Smith 2020", effect_size=0.4, variance=0.09)
        assert study.standard_error == pytest.approx(0.3)

    def test_uncertainty_required(self) -> None:
        with pytest.raises(ValidationError):
            Study(id="1", name="Smith 2020", effect_size=0.4)

    @pytest.mark.parametrize("se", [0.0, -0.1, float("inf"), float("nan")])
    def test_invalid_standard_error(self, se: float) -> None:
        with pytest.raises(ValidationError):
            Study(id="1", name="Smith 2020", effect_size=0.4, standard_error=se)

    def test_standard_error_whose_square_overflows(self) -> None:
        with pytest.raises(ValidationError):
            Study(id="1", name="Smith 2020", effect_size=0.4, standard_error=1e200)

    def test_non_finite_effect_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Study(id="1", name="Smith 2020", effect_size=float("nan"), standard_error=0.1)

    def test_frozen(self) -> None:
        study = Study(id="1", name="Smith 2020", effect_size=0.4, standard_error=0.2)
        with pytest.raises(ValidationError):
            study.effect_size = 1.0

    def test_effect_type_from_string(self) -> None:
        study = Study(id="1", name="Trial", effect_size=-0.2, standard_error=0.1, effect_size_type="or")
        assert study.effect_size_type is EffectSizeType.OR


class TestEffectSizes:
    """Tests for effect-size and standard-error helpers."""

    def test_cohen_d(self) -> None:
        assert cohen_d(10, 8, 2, 2, 20, 20) == pytest.approx(1.0)

    def test_hedges_g_shrinks_d(self) -> None:
        assert hedges_g(1.0, 20, 20) == pytest.approx(1 - 3 / 151)

    def test_ratios(self) -> None:
        assert odds_ratio(10, 50, 20, 50) == pytest.approx(0.375)
        assert risk_ratio(10, 50, 20, 50) == pytest.approx(0.5)

    def test_ratio_with_empty_reference(self) -> None:
        assert odds_ratio(5, 10, 0, 10) == math.inf
        assert risk_ratio(5, 10, 0, 10) == math.inf
        assert math.isnan(risk_ratio(0, 10, 0, 10))

    def test_woolf_standard_error(self) -> None:
        assert log_odds_ratio_se(10, 40, 20, 30) == pytest.approx(math.sqrt(0.1 + 0.025 + 0.05 + 1 / 30))

    def test_zero_cell_gets_continuity_correction(self) -> None:
        assert log_odds_ratio_se(0, 10, 5, 5) == pytest.approx(math.sqrt(1 / 0.5 + 1 / 10.5 + 1 / 5.5 + 1 / 5.5))

    @pytest.mark.parametrize(
        "effect_type, expected",
        [
            (EffectSizeType.SMD, math.sqrt(0.1 + 0.25 / 80)),
            (EffectSizeType.OR, math.sqrt(0.4)),
            (EffectSizeType.RR, math.sqrt(0.1)),
            (EffectSizeType.MD, math.sqrt(0.1)),
            (EffectSizeType.HR, math.sqrt(0.1)),
            (EffectSizeType.CORRELATION, math.sqrt(0.1)),
        ],
    )
    def test_approximate_standard_error(self, effect_type: EffectSizeType, expected: float) -> None:
        assert approximate_standard_error(0.5, 20, 20, effect_type) == pytest.approx(expected)

    def test_approximate_standard_error_unknown_type(self) -> None:
        with pytest.raises(InvalidInputError):
            approximate_standard_error(0.5, 20, 20, "cohen_q")


class TestStudyBuilders:
    """Tests for building studies from extracted summary data."""

    def test_from_means_uses_hedges_g(self) -> None:
        study = study_from_means("1", "Trial A", 10, 2, 20, 8, 2, 20)
        assert study.effect_size == pytest.approx(1 - 3 / 151)
        assert study.effect_size_type is EffectSizeType.SMD
        assert study.sample_size_treatment == 20
        assert study.standard_error > 0

    def test_from_means_without_correction(self) -> None:
        study = study_from_means("1", "Trial A", 10, 2, 20, 8, 2, 20, small_sample_correction=False)
        assert study.effect_size == pytest.approx(1.0)

    def test_from_events_log_odds_ratio(self) -> None:
        study = study_from_events("1", "Trial B", 10, 50, 20, 50)
        assert study.effect_size == pytest.approx(math.log(0.375))
        assert study.standard_error == pytest.approx(math.sqrt(1 / 10 + 1 / 40 + 1 / 20 + 1 / 30))
        assert study.effect_size_type is EffectSizeType.OR
        assert study.events_control == 20

    def test_from_events_log_risk_ratio(self) -> None:
        study = study_from_events("1", "Trial B", 10, 50, 20, 50, measure=EffectSizeType.RR)
        assert study.effect_size == pytest.approx(math.log(0.5))
        assert study.standard_error == pytest.approx(math.sqrt(0.11))

    def test_from_events_with_zero_cell_stays_finite(self) -> None:
        study = study_from_events("1", "Trial C", 0, 30, 6, 30)
        assert math.isfinite(study.effect_size)
        assert math.isfinite(study.standard_error)
        assert study.events_treatment == 0

    def test_from_events_rejects_continuous_measure(self) -> None:
        with pytest.raises(InvalidInputError):
            study_from_events("1", "Trial D", 5, 30, 6, 30, measure="smd")

    def test_from_events_rejects_unknown_measure(self) -> None:
        with pytest.raises(InvalidInputError):
            study_from_events("1", "Trial D", 5, 30, 6, 30, measure="ratio")
