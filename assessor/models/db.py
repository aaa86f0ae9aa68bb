"""SQLAlchemy database models for the PostgreSQL results store.

Design approach:
- One append-only table of completed assessment results
- UUID primary keys
- Explicit columns for the fields results are queried by; outcomes and
  feedback kept as JSON (JSONB on PostgreSQL)
- Timezone-aware timestamps with server-side defaults
"""

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, Boolean, DateTime, Float, Index, Integer, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

JsonDocument = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all database models."""


class AssessmentResultRecord(Base):
    """One completed assessment run.

    Attributes:
        id: UUID primary key
        subject_id: Assessed subject
        definition_id: Definition the subject was assessed against
        correlation_id: Id tying the record to its dispatch
        score: Awarded points
        max_score: Points available
        passed: Whether score met the pass threshold
        outcomes: Per-criterion outcomes in definition order
        feedback: Summary, implemented and suggestion items
        duration_ms: Wall-clock duration of the run
        assessed_at: When the run completed
        created_at: Timestamp when record was created (server-side default)

    Note:
        Records are never updated in place. A new assessment adds a new row,
        which is why there's no updated_at column.
    """

    __tablename__ = "assessment_results"
    __table_args__ = (
        Index("ix_assessment_results_subject_definition", "subject_id", "definition_id"),
    )

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    subject_id: Mapped[str] = mapped_column(String, nullable=False)
    definition_id: Mapped[str] = mapped_column(String, nullable=False)
    correlation_id: Mapped[str] = mapped_column(String, nullable=False, default="")

    score: Mapped[int] = mapped_column(Integer, nullable=False)
    max_score: Mapped[int] = mapped_column(Integer, nullable=False)
    passed: Mapped[bool] = mapped_column(Boolean, nullable=False)
    outcomes: Mapped[list[dict[str, Any]]] = mapped_column(JsonDocument, nullable=False)
    feedback: Mapped[dict[str, Any]] = mapped_column(JsonDocument, nullable=False)
    duration_ms: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    assessed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    def __repr__(self) -> str:
        return (
            f"<AssessmentResultRecord(subject_id={self.subject_id}, "
            f"definition_id={self.definition_id}, score={self.score}/{self.max_score})>"
        )
