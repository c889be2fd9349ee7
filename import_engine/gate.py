"""
import_engine.gate - Hands a prepared batch to the data store as one unit.

The gate opens only for an error-free, non-empty batch and only while
no other submission for the same project and feature type is in
flight.  Gates built per request share one SubmissionLocks registry so
that rule holds across requests.  A store rejection is reported with
the store's own message; the prepared rows are left untouched so the
same batch can be submitted again.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Optional

from import_engine.report import ImportPreview, ImportRow
from services.backend import BackendError

logger = logging.getLogger(__name__)


class SubmissionRefused(Exception):
    """The gate is closed for this batch."""
    pass


class SubmissionInProgress(SubmissionRefused):
    """Another batch for the same project and feature type is being written."""
    pass


def can_submit(preview: ImportPreview) -> bool:
    return not preview.errors and bool(preview.rows)


class SubmissionLocks:
    """
    One non-blocking lock per (project, feature type).  A single instance
    lives for the whole app; every gate takes its key before calling the
    store and releases it when the store answers.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[tuple[str, str], threading.Lock] = {}

    def _lock_for(self, project_id: str, feature_type_id: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault((project_id, feature_type_id), threading.Lock())

    def acquire(self, project_id: str, feature_type_id: str) -> bool:
        """True when the key was free and is now held by the caller."""
        return self._lock_for(project_id, feature_type_id).acquire(blocking=False)

    def release(self, project_id: str, feature_type_id: str) -> None:
        self._lock_for(project_id, feature_type_id).release()

    def held(self, project_id: str, feature_type_id: str) -> bool:
        return self._lock_for(project_id, feature_type_id).locked()


@dataclass
class SubmissionResult:
    success: bool
    inserted: int = 0
    ids: list[str] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> dict:
        d = {"success": self.success, "inserted": self.inserted, "ids": self.ids}
        if self.error:
            d["error"] = self.error
        return d


class BatchSubmissionGate:

    def __init__(self, backend, locks: Optional[SubmissionLocks] = None):
        self._backend = backend
        self._locks = locks if locks is not None else SubmissionLocks()
        self._pending = False

    @property
    def pending(self) -> bool:
        return self._pending

    def is_open(self, preview: ImportPreview) -> bool:
        return not self._pending and can_submit(preview)

    def submit(
        self,
        preview: ImportPreview,
        feature_type_id: str,
        project_id: str,
        creator_id: str = "",
    ) -> SubmissionResult:
        """
        Send every row in one atomic store call.

        Raises SubmissionRefused when the gate is closed, and its subclass
        SubmissionInProgress when another batch for the same project and
        feature type holds the lock.
        """
        reason = None
        if preview.errors:
            reason = "Fix the reported errors and upload the file again"
        elif not preview.rows:
            reason = "There are no rows to import"
        if reason:
            logger.warning(f"Submission for type {feature_type_id} refused: {reason}")
            raise SubmissionRefused(reason)

        if self._pending or not self._locks.acquire(project_id, feature_type_id):
            logger.warning(f"Submission for type {feature_type_id} in project {project_id} "
                           f"refused: another submission is in progress")
            raise SubmissionInProgress("A submission is already in progress")

        rows: list[ImportRow] = list(preview.rows)
        self._pending = True
        try:
            outcome = self._backend.submit_batch(project_id, feature_type_id, creator_id, rows)
        except BackendError as exc:
            logger.error(f"Batch of {len(rows)} rows rejected for type {feature_type_id}: {exc}")
            return SubmissionResult(success=False, error=str(exc))
        finally:
            self._pending = False
            self._locks.release(project_id, feature_type_id)

        logger.info(f"Imported {outcome.inserted} features of type {feature_type_id} "
                    f"into project {project_id}")
        return SubmissionResult(success=True, inserted=outcome.inserted, ids=list(outcome.ids))
