import logging

import pytest

from evidence_engine.core.enums import ConfidenceLevel, Dimension
from evidence_engine.services.scoring import (
    DimensionSummary,
    aggregated_overall_rating,
    classify_confidence,
    confidence_factor,
    coverage_score,
    dimension_weight,
    performance_indicator,
    recomputed_overall_rating,
    recommendation,
    score_dimension,
    trend_factor,
    weighted_mean,
)


@pytest.mark.parametrize(
    "count,expected",
    [(0, 0.0), (1, 0.5), (2, 0.7), (3, 0.7), (4, 0.85), (7, 0.85), (8, 0.95), (15, 0.95), (16, 1.0)],
)
def test_confidence_factor_steps(count, expected):
    assert confidence_factor(count) == expected


def test_confidence_factor_is_monotonic():
    values = [confidence_factor(n) for n in range(0, 40)]
    assert values == sorted(values)


def test_trend_factor_bounds():
    for count in range(1, 12):
        for positive in range(0, count + 1):
            for negative in range(0, count - positive + 1):
                assert 0.8 <= trend_factor(count, positive, negative) <= 1.2


def test_trend_factor_extremes_are_exact():
    assert trend_factor(5, 5, 0) == 1.2
    assert trend_factor(5, 0, 5) == 0.8
    # all neutral
    assert trend_factor(4, 0, 0) == 1.0


def test_score_is_clamped_to_five():
    summary = DimensionSummary(Dimension.KPIS, entry_count=16, avg_rating=5.0, positive_count=16)
    result = score_dimension(summary)

    assert result.confidence_factor == 1.0
    assert result.trend_factor == 1.2
    assert result.calculated_score == 5.0


def test_score_dimension_combines_factors():
    # 4 entries avg 4.5, all positive: 4.5 * 0.85 * 1.2
    summary = DimensionSummary(Dimension.KPIS, entry_count=4, avg_rating=4.5, positive_count=4)
    result = score_dimension(summary)

    assert result.calculated_score == 4.59
    assert result.recency_factor == 1.0
    assert result.anomaly is None


def test_zero_entries_gives_zero_result():
    result = score_dimension(DimensionSummary.empty(Dimension.VALUES))

    assert result.entry_count == 0
    assert result.calculated_score == 0.0
    assert result.confidence_factor == 0.0
    assert result.avg_rating == 0.0


@pytest.mark.parametrize("bad_avg", [None, "abc", float("nan"), -1.0, 7.5])
def test_invalid_avg_rating_degrades_to_zero(bad_avg, caplog):
    summary = DimensionSummary(Dimension.COMPETENCIES, entry_count=3, avg_rating=bad_avg, positive_count=1)

    with caplog.at_level(logging.WARNING, logger="evidence_engine.services.scoring"):
        result = score_dimension(summary)

    assert result.calculated_score == 0.0
    assert result.anomaly == "invalid_avg_rating"
    assert result.entry_count == 3
    assert any("invalid avg_rating" in r.getMessage() for r in caplog.records)


def test_invalid_entry_count_does_not_raise():
    summary = DimensionSummary(Dimension.KPIS, entry_count=-2, avg_rating=4.0)
    result = score_dimension(summary)
    assert result.calculated_score == 0.0
    assert result.entry_count == 0


def test_weighted_overall_example():
    # 4.0*0.30 + 3.0*0.25 + 5.0*0.25 + 2.0*0.20 = 1.2 + 0.75 + 1.25 + 0.4
    scores = {
        Dimension.KPIS: 4.0,
        Dimension.COMPETENCIES: 3.0,
        Dimension.RESPONSIBILITIES: 5.0,
        Dimension.VALUES: 2.0,
    }
    assert weighted_mean(scores) == 3.6


def test_unknown_dimension_weight_defaults():
    assert dimension_weight("leadership") == 0.25
    assert dimension_weight(Dimension.KPIS) == 0.30
    assert dimension_weight("values") == 0.20


def test_overall_rating_paths_differ_for_low_sample_dimensions():
    results = [
        score_dimension(DimensionSummary(Dimension.KPIS, entry_count=1, avg_rating=4.0, positive_count=1)),
        score_dimension(DimensionSummary.empty(Dimension.COMPETENCIES)),
        score_dimension(DimensionSummary.empty(Dimension.RESPONSIBILITIES)),
        score_dimension(DimensionSummary.empty(Dimension.VALUES)),
    ]
    # kpis: 4.0 * 0.5 * 1.2 = 2.4
    assert results[0].calculated_score == 2.4
    assert aggregated_overall_rating(results) == 0.72
    # confidence applied again: 2.4 * 0.5 * 0.30
    assert recomputed_overall_rating(results) == 0.36


@pytest.mark.parametrize(
    "total,coverage,avg_conf,expected",
    [
        (0, 0.0, 0.0, ConfidenceLevel.NONE),
        (2, 1.0, 0.7, ConfidenceLevel.LOW),
        (10, 0.25, 0.95, ConfidenceLevel.LOW),
        (5, 1.0, 0.85, ConfidenceLevel.MODERATE),
        (10, 0.5, 0.95, ConfidenceLevel.MODERATE),
        (10, 1.0, 0.6, ConfidenceLevel.MODERATE),
        (10, 1.0, 0.9, ConfidenceLevel.GOOD),
        (20, 1.0, 0.8, ConfidenceLevel.GOOD),
        (20, 1.0, 0.95, ConfidenceLevel.HIGH),
    ],
)
def test_classify_confidence(total, coverage, avg_conf, expected):
    assert classify_confidence(total, coverage, avg_conf) is expected


def test_coverage_score_counts_dimensions_with_evidence():
    results = [
        score_dimension(DimensionSummary(Dimension.KPIS, entry_count=2, avg_rating=3.0)),
        score_dimension(DimensionSummary(Dimension.VALUES, entry_count=1, avg_rating=5.0)),
        score_dimension(DimensionSummary.empty(Dimension.COMPETENCIES)),
        score_dimension(DimensionSummary.empty(Dimension.RESPONSIBILITIES)),
    ]
    assert coverage_score(results) == 0.5


@pytest.mark.parametrize(
    "score,label",
    [
        (None, "Not Rated"),
        (4.5, "Excellent"),
        (3.5, "Good"),
        (3.49, "Satisfactory"),
        (1.5, "Needs Improvement"),
        (0.0, "Unsatisfactory"),
    ],
)
def test_performance_indicator(score, label):
    assert performance_indicator(score) == label


def test_recommendation_thresholds():
    empty = score_dimension(DimensionSummary.empty(Dimension.KPIS))
    weak = score_dimension(DimensionSummary(Dimension.KPIS, entry_count=2, avg_rating=2.0, negative_count=2))
    strong = score_dimension(DimensionSummary(Dimension.KPIS, entry_count=16, avg_rating=4.5, positive_count=16))
    middling = score_dimension(DimensionSummary(Dimension.KPIS, entry_count=16, avg_rating=3.5))

    assert recommendation(empty) == "collect evidence"
    assert recommendation(weak) == "development area"
    assert recommendation(strong) == "strength"
    # 3.5 * 1.0 * 1.0
    assert recommendation(middling) is None
