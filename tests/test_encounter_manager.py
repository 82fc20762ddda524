import re
from datetime import datetime, timedelta

import pytest

from ipd_core.models.ipd import ENC_ACTIVE, ENC_COMPLETED, ENC_OUTPATIENT
from ipd_core.services import assignment_ledger, encounter_manager
from ipd_core.services.errors import InvalidStateError, ValidationError


class TestEncounterNumber:
    def test_format(self):
        num = encounter_manager.generate_encounter_number(datetime(2024, 3, 9, 10, 0))
        assert re.fullmatch(r"ENC-20240309-[0-9A-F]{8}", num)


class TestResolvePhysician:
    def test_id_wins_over_code(self, db, seed):
        doc = encounter_manager.resolve_physician(
            db, physician_id=seed.physician_ids[1], physician_code="DR001")
        assert doc.code == "DR002"

    def test_login_user_id(self, db):
        assert encounter_manager.resolve_physician(db, physician_id=502).code == "DR002"

    def test_code(self, db):
        assert encounter_manager.resolve_physician(db, physician_code="DR001").code == "DR001"

    def test_free_text_matches_code_then_name(self, db):
        assert encounter_manager.resolve_physician(db, fallback="DR002").code == "DR002"
        assert encounter_manager.resolve_physician(db, fallback="dr. priya nair").code == "DR001"

    def test_unknown_physician(self, db):
        with pytest.raises(ValidationError) as exc:
            encounter_manager.resolve_physician(db, fallback="Dr. Nobody")
        assert "attending_physician" in exc.value.field_errors


class TestCreateEncounter:
    def test_active_with_number(self, db, seed):
        enc = encounter_manager.create_encounter(
            db,
            patient_id=seed.patient_ids[0],
            chief_complaint="Abdominal pain",
            physician_id=seed.physician_ids[0],
            diagnosis={"icd10_code": "R10.9", "description": "Abdominal pain, unspecified"},
        )
        assert enc.status == ENC_ACTIVE
        assert enc.encounter_number.startswith("ENC-")
        assert [d.icd10_code for d in enc.diagnoses] == ["R10.9"]
        assert enc.diagnoses[0].diagnosed_by == "DR001"

    def test_collects_field_errors(self, db, seed):
        with pytest.raises(ValidationError) as exc:
            encounter_manager.create_encounter(
                db,
                patient_id=9999,
                type="daycare",
                priority="whenever",
                physician_id=None,
            )
        assert set(exc.value.field_errors) == {
            "type", "priority", "patient_id", "attending_physician_id"}


class TestDischarge:
    def _enc(self, db, seed, **kw):
        return encounter_manager.create_encounter(
            db,
            patient_id=seed.patient_ids[0],
            physician_id=seed.physician_ids[0],
            **kw,
        )

    def test_completes_encounter(self, db, seed):
        enc = self._enc(db, seed)
        encounter_manager.discharge(db, enc, summary="Recovered", condition="stable")
        assert enc.status == ENC_COMPLETED
        assert enc.discharge_at >= enc.admitted_at
        assert enc.discharge_condition == "stable"

    def test_second_discharge_rejected(self, db, seed):
        enc = self._enc(db, seed)
        encounter_manager.discharge(db, enc)
        with pytest.raises(InvalidStateError):
            encounter_manager.discharge(db, enc)

    def test_outpatient_cannot_be_discharged(self, db, seed):
        enc = self._enc(db, seed, type=ENC_OUTPATIENT)
        with pytest.raises(InvalidStateError):
            encounter_manager.discharge(db, enc)

    def test_stop_before_admission(self, db, seed):
        enc = self._enc(db, seed)
        with pytest.raises(ValidationError):
            encounter_manager.discharge(db, enc, discharge_at=enc.admitted_at - timedelta(hours=1))
        assert enc.status == ENC_ACTIVE


class TestUnassigned:
    def test_lists_only_bedless_active(self, db, seed):
        placed = encounter_manager.create_encounter(
            db, patient_id=seed.patient_ids[0], physician_id=seed.physician_ids[0])
        bedless = encounter_manager.create_encounter(
            db, patient_id=seed.patient_ids[1], physician_id=seed.physician_ids[0])
        encounter_manager.create_encounter(
            db, patient_id=seed.patient_ids[2], physician_id=seed.physician_ids[0],
            type=ENC_OUTPATIENT)
        assignment_ledger.create_assignment(db, placed.id, seed.bed_ids[0], "nurse.a")

        ids = [e.id for e in encounter_manager.list_unassigned_active_encounters(db)]
        assert ids == [bedless.id]
