from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from evidence_engine.core.enums import Dimension, sql_in, utcnow
from evidence_engine.db.base import Base


class EvaluationEvidenceResult(Base):
    """Per-dimension aggregation row. Always exactly four per aggregated evaluation."""

    __tablename__ = "evaluation_evidence_results"
    __table_args__ = (
        UniqueConstraint("evaluation_id", "dimension", name="uq_evidence_result_eval_dimension"),
        CheckConstraint(f"dimension IN ({sql_in(Dimension)})", name="ck_evidence_results_dimension"),
        CheckConstraint(
            "calculated_score >= 0 AND calculated_score <= 5",
            name="ck_evidence_results_score_range",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    evaluation_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("evaluations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    dimension: Mapped[str] = mapped_column(String(30), nullable=False)

    entry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    avg_rating: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    positive_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    negative_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    calculated_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
