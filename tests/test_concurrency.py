"""
Racing writers against a file-backed SQLite database.

SQLite has no row locks; the engine opens every transaction with BEGIN
IMMEDIATE, which serializes writers the same way the bed row lock does on
MySQL / PostgreSQL.
"""
import sqlite3
import threading

import pytest

from ipd_core.db.session import make_engine, make_session_factory
from ipd_core.models.ipd import IpdBed, IpdBedAssignment, IpdEncounter, BED_AVAILABLE, BED_OCCUPIED
from ipd_core.schemas.ipd import TransferIn
from ipd_core.services import ipd_orchestrator
from ipd_core.services.errors import BedUnavailableError, InvalidStateError, LockTimeoutError


def _race(session_factory, *calls):
    """Run each call(db) on its own thread and session, released together."""
    barrier = threading.Barrier(len(calls))
    results = [None] * len(calls)

    def worker(i, fn):
        s = session_factory()
        try:
            barrier.wait(timeout=5)
            results[i] = fn(s)
        except Exception as e:  # collected for the assertions
            results[i] = e
        finally:
            s.close()

    threads = [threading.Thread(target=worker, args=(i, fn)) for i, fn in enumerate(calls)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return results


def _split(results):
    ok = [r for r in results if not isinstance(r, Exception)]
    failed = [r for r in results if isinstance(r, Exception)]
    return ok, failed


class TestSameBed:
    def test_one_admission_wins(self, session_factory, seed, admit_payload):
        results = _race(
            session_factory,
            lambda s: ipd_orchestrator.admit_patient(s, admit_payload(patient=0, bed=0)),
            lambda s: ipd_orchestrator.admit_patient(s, admit_payload(patient=1, bed=0)),
        )
        ok, failed = _split(results)
        assert len(ok) == 1
        assert len(failed) == 1 and isinstance(failed[0], BedUnavailableError)

        s = session_factory()
        try:
            rows = s.query(IpdBedAssignment).filter(IpdBedAssignment.bed_id == seed.bed_ids[0]).all()
            assert len(rows) == 1
            assert rows[0].encounter_id == ok[0].encounter_id
            assert s.get(IpdBed, seed.bed_ids[0]).status == BED_OCCUPIED
            assert s.query(IpdEncounter).count() == 1
        finally:
            s.close()

    def test_one_transfer_wins(self, session_factory, seed, admit_payload):
        s = session_factory()
        try:
            a = ipd_orchestrator.admit_patient(s, admit_payload(patient=0, bed=0))
            b = ipd_orchestrator.admit_patient(s, admit_payload(patient=1, bed=1))
        finally:
            s.close()

        target = seed.bed_ids[3]
        results = _race(
            session_factory,
            lambda s: ipd_orchestrator.transfer_patient(
                s, a.encounter_id, TransferIn(to_bed_id=target, reason="ICU")),
            lambda s: ipd_orchestrator.transfer_patient(
                s, b.encounter_id, TransferIn(to_bed_id=target, reason="ICU")),
        )
        ok, failed = _split(results)
        assert len(ok) == 1
        assert len(failed) == 1 and isinstance(failed[0], BedUnavailableError)

        s = session_factory()
        try:
            assert ipd_orchestrator.find_status_drift(s) == []
            holders = (
                s.query(IpdBedAssignment)
                .filter(IpdBedAssignment.bed_id == target, IpdBedAssignment.released_at.is_(None))
                .all()
            )
            assert [h.encounter_id for h in holders] == [ok[0].encounter_id]
        finally:
            s.close()


class TestSamePatient:
    def test_one_active_encounter(self, session_factory, seed, admit_payload):
        results = _race(
            session_factory,
            lambda s: ipd_orchestrator.admit_patient(s, admit_payload(patient=2, bed=0)),
            lambda s: ipd_orchestrator.admit_patient(s, admit_payload(patient=2, bed=1)),
        )
        ok, failed = _split(results)
        assert len(ok) == 1
        assert len(failed) == 1 and isinstance(failed[0], InvalidStateError)

        s = session_factory()
        try:
            assert s.query(IpdEncounter).filter(IpdEncounter.patient_id == seed.patient_ids[2]).count() == 1
            assert ipd_orchestrator.find_status_drift(s) == []
        finally:
            s.close()


class TestLockWait:
    def test_held_lock_times_out_and_leaves_bed_free(self, tmp_path, seed, admit_payload):
        path = tmp_path / "ipd.db"
        eng = make_engine(f"sqlite:///{path}", lock_timeout=1)
        factory = make_session_factory(eng)

        holder = sqlite3.connect(str(path), isolation_level=None)
        holder.execute("BEGIN IMMEDIATE")
        s = factory()
        try:
            with pytest.raises(LockTimeoutError) as exc:
                ipd_orchestrator.admit_patient(s, admit_payload(bed=0))
            assert not isinstance(exc.value, BedUnavailableError)
            assert exc.value.status_code == 503
        finally:
            s.close()
            holder.execute("ROLLBACK")
            holder.close()

        s = factory()
        try:
            assert s.get(IpdBed, seed.bed_ids[0]).status == BED_AVAILABLE
            assert s.query(IpdBedAssignment).count() == 0
            s.rollback()

            out = ipd_orchestrator.admit_patient(s, admit_payload(bed=0))
            assert out.bed_id == seed.bed_ids[0]
        finally:
            s.close()
            eng.dispose()
