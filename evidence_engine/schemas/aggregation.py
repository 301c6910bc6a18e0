from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class DimensionResultOut(BaseModel):
    dimension: str
    section: str
    entry_count: int
    avg_rating: float
    positive_count: int
    negative_count: int
    calculated_score: float
    performance: str


class StoredDimensionResultOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    dimension: str
    entry_count: int
    avg_rating: float
    positive_count: int
    negative_count: int
    calculated_score: float
    created_at: datetime


class AggregationOut(BaseModel):
    evaluation_id: int
    overall_rating: float
    performance: str
    confidence_level: str
    coverage_score: float
    total_entries: int
    average_confidence: float
    per_dimension_results: list[DimensionResultOut]
    summary: str


class BatchAggregatePayload(BaseModel):
    evaluation_ids: list[int] = Field(min_length=1, max_length=1000)
    abort_on_error: bool = False
    failure_tolerance: float | None = Field(default=None, ge=0, le=1)


class BatchItemOut(BaseModel):
    evaluation_id: int
    ok: bool
    status: str
    overall_rating: float | None = None
    error: dict | None = None


class BatchAggregateOut(BaseModel):
    succeeded: int
    failed: int
    rolled_back: bool
    results: list[BatchItemOut]


class AggregationStatsOut(BaseModel):
    """Evidence coverage and rating rollup for one period."""

    period_id: int
    total_evaluations: int
    evaluations_with_evidence: int
    coverage_percentage: float
    avg_evidence_rating: float
    rating_distribution: dict[str, int] = {}


class EvidenceQualityOut(BaseModel):
    employee_id: int
    period_id: int | None
    total_entries: int
    dimensions_covered: int
    unique_evaluators: int
    avg_content_length: float
    consistent: bool
    issues: list[str] = []
    recency_weighted_ratings: dict[str, float] = {}
