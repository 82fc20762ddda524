# FILE: ipd_core/api/routes_ipd_encounters.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from ipd_core.api.deps import get_db, current_actor
from ipd_core.utils.resp import ok, fail
from ipd_core.models.ipd import IpdEncounter
from ipd_core.schemas.ipd import (
    AdmitIn,
    AssignBedIn,
    AssignmentOut,
    DischargeIn,
    EncounterOut,
    ReleaseBedIn,
    TransferIn,
)
from ipd_core.services import assignment_ledger, encounter_manager, ipd_orchestrator
from ipd_core.services.errors import IpdError

router = APIRouter(prefix="/ipd", tags=["IPD Encounters"])


def _encounter_detail(db: Session, enc: IpdEncounter) -> EncounterOut:
    current = assignment_ledger.find_open_assignment_for_encounter(db, enc.id)
    bed = current.bed if current else None
    return EncounterOut(
        id=enc.id,
        encounter_number=enc.encounter_number,
        patient_id=enc.patient_id,
        patient_name=enc.patient.full_name if enc.patient else None,
        type=enc.type,
        status=enc.status,
        priority=enc.priority,
        severity=enc.severity,
        acuity_level=enc.acuity_level,
        chief_complaint=enc.chief_complaint,
        attending_physician_id=enc.attending_physician_id,
        admitted_at=enc.admitted_at,
        discharge_at=enc.discharge_at,
        current_bed_id=bed.id if bed else None,
        current_bed_number=bed.bed_number if bed else None,
        current_ward_name=bed.ward_name if bed else None,
    )


# ---------------------------------------------------------------------
# Admission
# ---------------------------------------------------------------------


@router.post("/admissions")
def create_admission(
    payload: AdmitIn,
    db: Session = Depends(get_db),
    actor: str = Depends(current_actor),
):
    try:
        out = ipd_orchestrator.admit_patient(db, payload, actor=actor)
    except IpdError as e:
        return fail(e)
    return ok(out, status_code=201)


# ---------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------


@router.get("/encounters/unassigned")
def list_unassigned(db: Session = Depends(get_db)):
    items = [_encounter_detail(db, e) for e in encounter_manager.list_unassigned_active_encounters(db)]
    return ok({"items": items, "count": len(items)})


@router.get("/encounters/{encounter_id}")
def get_encounter(encounter_id: int, db: Session = Depends(get_db)):
    try:
        enc = encounter_manager.get_encounter(db, encounter_id)
    except IpdError as e:
        return fail(e)
    return ok(_encounter_detail(db, enc))


@router.get("/encounters/{encounter_id}/assignments")
def list_assignments(encounter_id: int, db: Session = Depends(get_db)):
    try:
        encounter_manager.get_encounter(db, encounter_id)
    except IpdError as e:
        return fail(e)
    rows = assignment_ledger.list_assignments_for_encounter(db, encounter_id)
    return ok([AssignmentOut.model_validate(r) for r in rows])


# ---------------------------------------------------------------------
# Bed movements
# ---------------------------------------------------------------------


@router.post("/encounters/{encounter_id}/assign-bed")
def assign_bed(
    encounter_id: int,
    payload: AssignBedIn,
    db: Session = Depends(get_db),
    actor: str = Depends(current_actor),
):
    try:
        out = ipd_orchestrator.assign_bed(db, encounter_id, payload, actor=actor)
    except IpdError as e:
        return fail(e)
    return ok(out)


@router.post("/encounters/{encounter_id}/transfer")
def transfer_bed(
    encounter_id: int,
    payload: TransferIn,
    db: Session = Depends(get_db),
    actor: str = Depends(current_actor),
):
    try:
        out = ipd_orchestrator.transfer_patient(db, encounter_id, payload, actor=actor)
    except IpdError as e:
        return fail(e)
    return ok(out)


@router.post("/encounters/{encounter_id}/release-bed")
def release_bed(
    encounter_id: int,
    payload: Optional[ReleaseBedIn] = Body(None),
    db: Session = Depends(get_db),
    actor: str = Depends(current_actor),
):
    try:
        out = ipd_orchestrator.release_bed(db, encounter_id, payload, actor=actor)
    except IpdError as e:
        return fail(e)
    return ok(out)


@router.post("/encounters/{encounter_id}/discharge")
def discharge(
    encounter_id: int,
    payload: Optional[DischargeIn] = Body(None),
    db: Session = Depends(get_db),
    actor: str = Depends(current_actor),
):
    try:
        out = ipd_orchestrator.discharge_patient(db, encounter_id, payload, actor=actor)
    except IpdError as e:
        return fail(e)
    return ok(out)
