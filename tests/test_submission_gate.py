import logging

import pytest

from import_engine import (
    BatchSubmissionGate, ImportPreview, ImportRow, SubmissionInProgress, SubmissionLocks,
    SubmissionRefused, ValidationError,
)
from services.backend import BackendError, BatchOutcome


def _preview(n=2):
    rows = [
        ImportRow(latitude=4.0 + i, longitude=-74.0, estado="PENDIENTE",
                  attributes={"MATERIAL": "CONCRETO"})
        for i in range(n)
    ]
    return ImportPreview(rows=rows)


class RecordingBackend:

    def __init__(self, error=None):
        self.calls = []
        self.error = error
        self.gate = None
        self.seen_pending = None

    def submit_batch(self, project_id, feature_type_id, creator_id, rows):
        self.calls.append((project_id, feature_type_id, creator_id, list(rows)))
        if self.gate is not None:
            self.seen_pending = self.gate.pending
        if self.error:
            raise BackendError(self.error)
        return BatchOutcome(inserted=len(rows), ids=tuple(f"id-{i}" for i in range(len(rows))))


def test_submit_sends_whole_batch_in_one_call():
    backend = RecordingBackend()
    gate = BatchSubmissionGate(backend)
    result = gate.submit(_preview(3), "ft-pos", "p-norte", creator_id="u-7")

    assert result.success
    assert result.inserted == 3
    assert result.ids == ["id-0", "id-1", "id-2"]
    assert len(backend.calls) == 1
    project_id, feature_type_id, creator, rows = backend.calls[0]
    assert (project_id, feature_type_id, creator) == ("p-norte", "ft-pos", "u-7")
    assert len(rows) == 3


def test_gate_closed_when_errors_present():
    backend = RecordingBackend()
    gate = BatchSubmissionGate(backend)
    preview = _preview()
    preview.errors.append(ValidationError(3, "Invalid latitude/longitude coordinates"))

    assert not gate.is_open(preview)
    with pytest.raises(SubmissionRefused):
        gate.submit(preview, "ft-pos", "p-norte")
    assert backend.calls == []


def test_gate_closed_for_empty_batch():
    gate = BatchSubmissionGate(RecordingBackend())
    assert not gate.is_open(ImportPreview())
    with pytest.raises(SubmissionRefused):
        gate.submit(ImportPreview(), "ft-pos", "p-norte")


def test_gate_is_pending_while_store_works_and_refuses_reentry():
    backend = RecordingBackend()
    gate = BatchSubmissionGate(backend)
    backend.gate = gate

    gate.submit(_preview(), "ft-pos", "p-norte")
    assert backend.seen_pending is True
    assert gate.pending is False


def test_second_submit_refused_while_first_in_flight():
    preview = _preview()

    class ReentrantBackend(RecordingBackend):
        def submit_batch(self, *args):
            with pytest.raises(SubmissionRefused):
                gate.submit(preview, "ft-pos", "p-norte")
            return super().submit_batch(*args)

    backend = ReentrantBackend()
    gate = BatchSubmissionGate(backend)
    assert gate.submit(preview, "ft-pos", "p-norte").success
    assert len(backend.calls) == 1


def test_backend_rejection_keeps_batch_for_retry(caplog):
    backend = RecordingBackend(error="Row 2: estado 'X' is not valid")
    gate = BatchSubmissionGate(backend)
    preview = _preview()
    rows_before = list(preview.rows)

    with caplog.at_level(logging.ERROR):
        result = gate.submit(preview, "ft-pos", "p-norte")

    assert not result.success
    assert result.error == "Row 2: estado 'X' is not valid"
    assert preview.rows == rows_before
    assert not gate.pending
    assert gate.is_open(preview)
    assert "rejected" in caplog.text

    backend.error = None
    assert gate.submit(preview, "ft-pos", "p-norte").success


def test_gates_sharing_locks_refuse_same_project_and_type():
    locks = SubmissionLocks()
    preview = _preview()
    outcomes = {}

    class OverlappingBackend(RecordingBackend):
        def submit_batch(self, project_id, feature_type_id, *args):
            if not outcomes:
                other = BatchSubmissionGate(RecordingBackend(), locks)
                with pytest.raises(SubmissionInProgress):
                    other.submit(preview, "ft-pos", "p-norte")
                outcomes["other_type"] = other.submit(preview, "ft-cam", "p-norte")
                assert locks.held("p-norte", "ft-pos")
            return super().submit_batch(project_id, feature_type_id, *args)

    backend = OverlappingBackend()
    gate = BatchSubmissionGate(backend, locks)

    assert gate.submit(preview, "ft-pos", "p-norte").success
    assert outcomes["other_type"].success
    assert not locks.held("p-norte", "ft-pos")
    assert BatchSubmissionGate(RecordingBackend(), locks).submit(
        preview, "ft-pos", "p-norte").success


def test_lock_released_after_backend_rejection():
    locks = SubmissionLocks()
    gate = BatchSubmissionGate(RecordingBackend(error="Row 1: latitude 91 out of range"), locks)

    assert not gate.submit(_preview(), "ft-pos", "p-norte").success
    assert not locks.held("p-norte", "ft-pos")


def test_refused_batch_never_takes_the_lock():
    locks = SubmissionLocks()
    gate = BatchSubmissionGate(RecordingBackend(), locks)
    with pytest.raises(SubmissionRefused) as excinfo:
        gate.submit(ImportPreview(), "ft-pos", "p-norte")
    assert not isinstance(excinfo.value, SubmissionInProgress)
    assert not locks.held("p-norte", "ft-pos")
