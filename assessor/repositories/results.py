"""Append-only assessment results store on SQLAlchemy."""

import logging

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from assessor.errors import PersistenceFailure
from assessor.models.db import AssessmentResultRecord, Base
from assessor.models.domain import AssessmentResult, CriterionOutcome, Feedback

logger = logging.getLogger(__name__)


class SqlResultsStore:
    """ResultsStore writing one row per completed assessment.

    Attributes:
        engine: SQLAlchemy engine for database connections
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    def session(self) -> Session:
        return self._session_factory()

    def create_schema(self) -> None:
        """Create the results table if it does not exist."""
        Base.metadata.create_all(self.engine)

    def put(self, result: AssessmentResult) -> None:
        """Insert a new result row.

        Raises:
            PersistenceFailure: If the insert fails
        """
        data = result.model_dump(mode="json")
        record = AssessmentResultRecord(
            subject_id=result.subject_id,
            definition_id=result.definition_id,
            correlation_id=result.correlation_id,
            score=result.score,
            max_score=result.max_score,
            passed=result.passed,
            outcomes=data["outcomes"],
            feedback=data["feedback"],
            duration_ms=result.duration_ms,
            assessed_at=result.timestamp,
        )
        try:
            with self.session() as session, session.begin():
                session.add(record)
        except SQLAlchemyError as e:
            logger.error(f"Failed to insert result for {result.subject_id}: {e}")
            msg = f"Could not store result for {result.subject_id}/{result.definition_id}"
            raise PersistenceFailure(msg) from e

        logger.info(f"Stored result {record.id} for {result.subject_id}")

    def history(self, subject_id: str, definition_id: str | None = None) -> list[AssessmentResult]:
        """Past results for a subject, oldest first."""
        stmt = select(AssessmentResultRecord).where(AssessmentResultRecord.subject_id == subject_id)
        if definition_id is not None:
            stmt = stmt.where(AssessmentResultRecord.definition_id == definition_id)
        stmt = stmt.order_by(AssessmentResultRecord.assessed_at)

        with self.session() as session:
            records = session.scalars(stmt).all()

        return [
            AssessmentResult(
                subject_id=r.subject_id,
                definition_id=r.definition_id,
                outcomes=tuple(CriterionOutcome.model_validate(o) for o in r.outcomes),
                score=r.score,
                max_score=r.max_score,
                passed=r.passed,
                feedback=Feedback.model_validate(r.feedback),
                timestamp=r.assessed_at,
                correlation_id=r.correlation_id,
                duration_ms=r.duration_ms,
            )
            for r in records
        ]
