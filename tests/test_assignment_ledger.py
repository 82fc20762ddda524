import pytest

from ipd_core.models.ipd import IpdEncounter
from ipd_core.services import assignment_ledger, encounter_manager
from ipd_core.services.errors import ConflictError, NotFoundError


def _encounter(db, seed, patient=0) -> IpdEncounter:
    return encounter_manager.create_encounter(
        db,
        patient_id=seed.patient_ids[patient],
        chief_complaint="Chest pain",
        physician_id=seed.physician_ids[0],
    )


class TestOpenAssignments:
    def test_create_and_find(self, db, seed):
        enc = _encounter(db, seed)
        row = assignment_ledger.create_assignment(db, enc.id, seed.bed_ids[0], "nurse.a", "Admission")

        assert row.is_open
        assert assignment_ledger.find_open_assignment_for_encounter(db, enc.id).id == row.id
        assert assignment_ledger.find_open_assignment_for_bed(db, seed.bed_ids[0]).id == row.id
        assert assignment_ledger.find_open_assignment_for_bed(db, seed.bed_ids[1]) is None

    def test_bed_cannot_hold_two_open_rows(self, db, seed):
        first = _encounter(db, seed, 0)
        second = _encounter(db, seed, 1)
        assignment_ledger.create_assignment(db, first.id, seed.bed_ids[0], "nurse.a")

        with pytest.raises(ConflictError):
            assignment_ledger.create_assignment(db, second.id, seed.bed_ids[0], "nurse.a")

    def test_encounter_cannot_hold_two_open_rows(self, db, seed):
        enc = _encounter(db, seed)
        assignment_ledger.create_assignment(db, enc.id, seed.bed_ids[0], "nurse.a")

        with pytest.raises(ConflictError):
            assignment_ledger.create_assignment(db, enc.id, seed.bed_ids[1], "nurse.a")


class TestRelease:
    def test_release_closes_row(self, db, seed):
        enc = _encounter(db, seed)
        row = assignment_ledger.create_assignment(db, enc.id, seed.bed_ids[0], "nurse.a")

        closed = assignment_ledger.release_assignment(db, row.id, "nurse.b")
        assert closed.released_at is not None
        assert closed.released_by == "nurse.b"
        assert closed.release_notes == "Bed released"
        assert assignment_ledger.find_open_assignment_for_encounter(db, enc.id) is None

    def test_release_twice_fails(self, db, seed):
        enc = _encounter(db, seed)
        row = assignment_ledger.create_assignment(db, enc.id, seed.bed_ids[0], "nurse.a")
        assignment_ledger.release_assignment(db, row.id, "nurse.b")

        with pytest.raises(NotFoundError):
            assignment_ledger.release_assignment(db, row.id, "nurse.b")

    def test_history_is_kept_in_order(self, db, seed):
        enc = _encounter(db, seed)
        a = assignment_ledger.create_assignment(db, enc.id, seed.bed_ids[0], "nurse.a")
        assignment_ledger.release_assignment(db, a.id, "nurse.a", "moved")
        b = assignment_ledger.create_assignment(db, enc.id, seed.bed_ids[1], "nurse.a")

        history = assignment_ledger.list_assignments_for_encounter(db, enc.id)
        assert [r.id for r in history] == [a.id, b.id]
        assert history[0].release_notes == "moved"
        assert history[1].is_open
