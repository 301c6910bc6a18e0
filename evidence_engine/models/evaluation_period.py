from datetime import datetime, date

from sqlalchemy import String, Date, DateTime, ForeignKey, CheckConstraint, Integer
from sqlalchemy.orm import Mapped, mapped_column

from evidence_engine.core.enums import PeriodStatus, sql_in, utcnow
from evidence_engine.db.base import Base


class EvaluationPeriod(Base):
    __tablename__ = "evaluation_periods"
    __table_args__ = (
        CheckConstraint(
            f"status IN ({sql_in(PeriodStatus)})",
            name="ck_evaluation_periods_status",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PeriodStatus.DRAFT.value)

    created_by_user_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
