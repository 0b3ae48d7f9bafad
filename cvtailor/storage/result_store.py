"""Database-backed store for generation records.

The orchestrator only talks to the database through this class. Every public
method opens its own short-lived session so it can be called from request
handlers and worker threads alike. Returned records are detached copies.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from cvtailor.core.exceptions import StorageError
from cvtailor.db.models import GeneratedCv, GenerationStatus, new_generation_id, utcnow

logger = logging.getLogger(__name__)

# Columns the pipeline is allowed to write when finalizing a record.
_MUTABLE_FIELDS = (
    "status", "latex_content", "pdf_content", "analysis", "recruiter_domain",
    "keyword_coverage", "recruiter_fit", "error_message", "error_kind",
    "debug_source", "completed_at", "generation_time_ms", "compilation_time_ms",
    "company_name", "job_title",
)


class ResultStore:

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"RESULT-STORE: Database error: {e}", exc_info=True)
            raise StorageError(f"Database operation failed: {e}") from e
        finally:
            db.close()

    # --- Creation ---

    def insert(self, record: GeneratedCv) -> GeneratedCv:
        """Stores a new record in PENDING state, assigning created_at and an id unless one was reserved."""
        record.id = record.id or new_generation_id()
        record.created_at = utcnow()
        record.status = GenerationStatus.PENDING
        with self._session() as db:
            db.add(record)
            db.flush()
            db.expunge(record)
        logger.info(f"RESULT-STORE: Inserted pending record {record.id} (jd_hash={record.jd_hash}).")
        return record

    # --- Reusable Getters ---

    def find_by_id(self, record_id: str) -> Optional[GeneratedCv]:
        with self._session() as db:
            return db.get(GeneratedCv, record_id)

    def find_completed_by_fingerprint(self, jd_hash: str) -> Optional[GeneratedCv]:
        """Most recently created COMPLETED record for the hash, if any."""
        with self._session() as db:
            return db.execute(
                select(GeneratedCv)
                .where(GeneratedCv.jd_hash == jd_hash, GeneratedCv.status == GenerationStatus.COMPLETED)
                .order_by(GeneratedCv.created_at.desc())
                .limit(1)
            ).scalars().first()

    def count(self, status: GenerationStatus | None = None) -> int:
        with self._session() as db:
            query = select(func.count()).select_from(GeneratedCv)
            if status is not None:
                query = query.where(GeneratedCv.status == status)
            return db.execute(query).scalar_one()

    # --- Updates ---

    def update(self, record: GeneratedCv, expected_status: GenerationStatus | None = None) -> bool:
        """Overwrites the mutable fields of an existing record.

        When expected_status is given the write only happens if the stored row
        is still in that status; returns False if it was not. Raises
        StorageError if the id does not exist.
        """
        values = {field: getattr(record, field) for field in _MUTABLE_FIELDS}
        with self._session() as db:
            query = update(GeneratedCv).where(GeneratedCv.id == record.id)
            if expected_status is not None:
                query = query.where(GeneratedCv.status == expected_status)
            result = db.execute(query.values(**values))
            if result.rowcount == 0:
                exists = db.execute(select(GeneratedCv.id).where(GeneratedCv.id == record.id)).first()
                if not exists:
                    raise StorageError(f"Generation record {record.id} does not exist.")
                return False
        return True

    def fail_pending(self, error_message: str, error_kind: str) -> int:
        """Marks every PENDING record FAILED. Returns how many were changed."""
        with self._session() as db:
            result = db.execute(
                update(GeneratedCv)
                .where(GeneratedCv.status == GenerationStatus.PENDING)
                .values(
                    status=GenerationStatus.FAILED,
                    error_message=error_message,
                    error_kind=error_kind,
                    completed_at=utcnow(),
                )
            )
            return result.rowcount

    # --- Deletion ---

    def delete(self, record_id: str) -> bool:
        with self._session() as db:
            result = db.execute(delete(GeneratedCv).where(GeneratedCv.id == record_id))
            removed = result.rowcount > 0
        if removed:
            logger.info(f"RESULT-STORE: Deleted record {record_id}.")
        return removed

    def delete_older_than(self, cutoff: datetime) -> int:
        """Removes every record created before the cutoff. Returns the count removed."""
        with self._session() as db:
            result = db.execute(delete(GeneratedCv).where(GeneratedCv.created_at < cutoff))
            count = result.rowcount
        logger.info(f"RESULT-STORE: Removed {count} records created before {cutoff.isoformat()}.")
        return count
