from datetime import date, datetime

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from evidence_engine.core.enums import utcnow
from evidence_engine.db.base import Base


class EvidenceEntry(Base):
    """A manager-authored observation about one employee on one dimension."""

    __tablename__ = "evidence_entries"
    __table_args__ = (
        Index("ix_evidence_entries_employee_date", "employee_id", "entry_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    employee_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False
    )
    manager_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True
    )

    # Not constrained: imported rows may be dirty, validate_consistency reports them
    dimension: Mapped[str] = mapped_column(String(30), nullable=False)
    star_rating: Mapped[int] = mapped_column(Integer, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")

    entry_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
