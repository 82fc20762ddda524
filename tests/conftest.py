# tests/conftest.py
import os

# the module-level engine is built at import; keep it off MySQL
os.environ["DATABASE_URL"] = "sqlite://"

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from ipd_core.db.init_db import create_all
from ipd_core.db.session import get_db, make_engine, make_session_factory
from ipd_core.models import IpdWard, IpdBed, Patient, Physician
from ipd_core.schemas.ipd import AdmitIn
from ipd_core.services.events import event_bus


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'ipd.db'}", lock_timeout=5)
    create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def seed(session_factory):
    """
    Two wards, five beds, three patients, two physicians. Committed and
    closed before the test runs so no connection holds the write lock.
    """
    s = session_factory()
    try:
        general = IpdWard(name="General Ward", code="GW", floor="1")
        icu = IpdWard(name="ICU", code="ICU", floor="2")
        s.add_all([general, icu])
        s.flush()

        beds = [
            IpdBed(ward_id=general.id, bed_number="G-101", bed_type="general"),
            IpdBed(ward_id=general.id, bed_number="G-102", bed_type="general"),
            IpdBed(ward_id=general.id, bed_number="G-103", bed_type="PRIVATE"),
            IpdBed(ward_id=icu.id, bed_number="ICU-1", bed_type="ICU"),
            IpdBed(ward_id=icu.id, bed_number="ICU-2", bed_type="icu", status="maintenance"),
        ]
        patients = [
            Patient(uhid="UH0001", first_name="Asha", last_name="Menon", gender="F"),
            Patient(uhid="UH0002", first_name="Ravi", last_name="Kumar", gender="M"),
            Patient(uhid="UH0003", first_name="Lena", last_name="Das", gender="F"),
        ]
        physicians = [
            Physician(code="DR001", name="Dr. Priya Nair", user_id=501, speciality="Medicine"),
            Physician(code="DR002", name="Dr. Arjun Rao", user_id=502, speciality="Surgery"),
        ]
        s.add_all(beds + patients + physicians)
        s.flush()

        ids = SimpleNamespace(
            general_ward_id=general.id,
            icu_ward_id=icu.id,
            bed_ids=[b.id for b in beds],
            patient_ids=[p.id for p in patients],
            physician_ids=[d.id for d in physicians],
            physician_codes=[d.code for d in physicians],
        )
        s.commit()
    finally:
        s.close()
    return ids


@pytest.fixture
def db(session_factory, seed):
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture(autouse=True)
def _clean_event_bus():
    event_bus.clear()
    yield
    event_bus.clear()


@pytest.fixture
def admit_payload(seed):
    def build(patient=0, bed=0, **kw) -> AdmitIn:
        data = {
            "patient_id": seed.patient_ids[patient],
            "bed_id": seed.bed_ids[bed],
            "attending_physician_code": seed.physician_codes[0],
            "chief_complaint": "Fever and breathlessness",
        }
        data.update(kw)
        return AdmitIn(**data)

    return build


@pytest.fixture
def client(session_factory, seed):
    from ipd_core.main import app

    def _override_get_db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = _override_get_db
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.pop(get_db, None)
