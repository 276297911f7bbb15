from __future__ import annotations

import pytest

from neurovol.analysis.deviation import DeviationAnalyzer
from neurovol.parsers.models import AnalysisResult, Asymmetry, MeasurementRecord, Status


@pytest.fixture()
def analyzer() -> DeviationAnalyzer:
    return DeviationAnalyzer(z_threshold=2.0, asymmetry_threshold_pct=10.0)


def test_z_score_is_rounded_to_two_decimals(analyzer: DeviationAnalyzer) -> None:
    assert analyzer.z_score(3.3, 4.2, 0.4) == -2.25
    assert analyzer.z_score(0.18, 0.25, 0.03) == -2.33


@pytest.mark.parametrize(
    ("total", "normative", "sd"),
    [(None, 4.2, 0.4), (4.4, None, 0.4), (4.4, 4.2, None), (4.4, 4.2, 0.0)],
)
def test_z_score_requires_all_inputs_and_positive_sd(
    analyzer: DeviationAnalyzer, total: float, normative: float, sd: float
) -> None:
    assert analyzer.z_score(total, normative, sd) is None


@pytest.mark.parametrize(
    ("z_score", "expected"),
    [
        (-2.0, Status.ATROPHIED),
        (-3.5, Status.ATROPHIED),
        (-1.99, Status.NORMAL),
        (0.0, Status.NORMAL),
        (1.99, Status.NORMAL),
        (2.0, Status.ENLARGED),
        (4.1, Status.ENLARGED),
    ],
)
def test_classification_thresholds_are_inclusive(
    analyzer: DeviationAnalyzer, z_score: float, expected: Status
) -> None:
    assert analyzer.classify(z_score) is expected


def test_custom_threshold() -> None:
    strict = DeviationAnalyzer(z_threshold=1.5, asymmetry_threshold_pct=10.0)
    assert strict.classify(-1.5) is Status.ATROPHIED
    assert strict.classify(1.49) is Status.NORMAL


def test_asymmetry_uses_larger_hemisphere(analyzer: DeviationAnalyzer) -> None:
    result = analyzer.asymmetry(2.0, 2.5)

    assert result.difference_abs == 0.5
    assert result.difference_pct == 20.0
    assert result.significant is True


def test_asymmetry_at_threshold_is_not_significant(analyzer: DeviationAnalyzer) -> None:
    result = analyzer.asymmetry(4.5, 5.0)

    assert result.difference_pct == 10.0
    assert result.significant is False


def test_asymmetry_is_symmetric_in_its_arguments(analyzer: DeviationAnalyzer) -> None:
    assert analyzer.asymmetry(3.1, 3.4) == analyzer.asymmetry(3.4, 3.1)


def test_asymmetry_of_empty_hemispheres(analyzer: DeviationAnalyzer) -> None:
    assert analyzer.asymmetry(0.0, 0.0) == Asymmetry(difference_abs=0.0, difference_pct=0.0, significant=False)


def test_analyze_record_without_sd_is_normal_and_unscored(analyzer: DeviationAnalyzer) -> None:
    record = MeasurementRecord(name="Hippocampi", left_volume=2.1, right_volume=2.3, total_volume=4.4)
    result = analyzer.analyze(record)

    assert result.structure_name == "Hippocampi"
    assert result.z_score is None
    assert result.status is Status.NORMAL
    assert result.asymmetry is not None


def test_analyze_total_only_record_has_no_asymmetry(analyzer: DeviationAnalyzer) -> None:
    record = MeasurementRecord(name="Hippocampi", total_volume=3.3, normative_value=4.2, standard_deviation=0.4)
    result = analyzer.analyze(record)

    assert result.z_score == -2.25
    assert result.status is Status.ATROPHIED
    assert result.asymmetry is None


def test_analyze_uses_total_as_given(analyzer: DeviationAnalyzer) -> None:
    record = MeasurementRecord(
        name="Thalami",
        left_volume=1.0,
        right_volume=1.0,
        total_volume=3.0,
        normative_value=2.0,
        standard_deviation=0.5,
    )
    assert analyzer.analyze(record).z_score == 2.0


def test_summarize_groups_regions(analyzer: DeviationAnalyzer) -> None:
    significant = Asymmetry(difference_abs=0.5, difference_pct=20.0, significant=True)
    minor = Asymmetry(difference_abs=0.1, difference_pct=2.0, significant=False)
    results = [
        AnalysisResult("Hippocampi", Status.ATROPHIED, -2.5, significant),
        AnalysisResult("Amygdalae", Status.ENLARGED, 3.0, minor),
        AnalysisResult("Thalami", Status.NORMAL, 0.4, significant),
        AnalysisResult("Caudates", Status.NORMAL, None, None),
    ]

    summary = analyzer.summarize(results)

    assert summary.total_abnormalities == 2
    assert summary.atrophied_regions == ["Hippocampi"]
    assert summary.enlarged_regions == ["Amygdalae"]
    assert summary.asymmetric_regions == ["Hippocampi", "Thalami"]


def test_summarize_empty(analyzer: DeviationAnalyzer) -> None:
    summary = analyzer.summarize([])
    assert summary.total_abnormalities == 0
    assert summary.atrophied_regions == summary.enlarged_regions == summary.asymmetric_regions == []
