# FILE: ipd_core/services/encounter_manager.py
from __future__ import annotations

import secrets
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session, joinedload

from ipd_core.models.ipd import (
    IpdEncounter,
    IpdBedAssignment,
    IpdDiagnosis,
    ENCOUNTER_TYPES,
    DISCHARGEABLE_TYPES,
    ENC_ACTIVE,
    ENC_COMPLETED,
    ENC_INPATIENT,
    PRIORITIES,
    DX_PRIMARY,
)
from ipd_core.models.patient import Patient
from ipd_core.models.physician import Physician
from ipd_core.services.errors import InvalidStateError, NotFoundError, ValidationError
from ipd_core.utils.timezone import now_utc_naive, to_utc_naive


def generate_encounter_number(now: Optional[datetime] = None) -> str:
    d = (now or now_utc_naive()).strftime("%Y%m%d")
    return f"ENC-{d}-{secrets.token_hex(4).upper()}"


# ---------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------


def get_patient(db: Session, patient_id: int) -> Optional[Patient]:
    return db.query(Patient).filter(Patient.id == patient_id).first()


def lock_patient(db: Session, patient_id: int) -> Optional[Patient]:
    return (
        db.query(Patient)
        .filter(Patient.id == patient_id)
        .populate_existing()
        .with_for_update()
        .first()
    )


def get_encounter(db: Session, encounter_id: int, *, lock: bool = False) -> IpdEncounter:
    q = db.query(IpdEncounter).filter(IpdEncounter.id == encounter_id)
    if lock:
        q = q.populate_existing().with_for_update()
    enc = q.first()
    if not enc:
        raise NotFoundError(
            f"Encounter {encounter_id} not found",
            details={"encounter_id": encounter_id},
        )
    return enc


def get_active_inpatient_encounter(
    db: Session,
    patient_id: int,
    *,
    lock: bool = False,
) -> Optional[IpdEncounter]:
    """The patient's active bed-holding encounter (inpatient or emergency), if any."""
    q = db.query(IpdEncounter).filter(
        IpdEncounter.patient_id == patient_id,
        IpdEncounter.status == ENC_ACTIVE,
        IpdEncounter.type.in_(DISCHARGEABLE_TYPES),
    )
    if lock:
        q = q.populate_existing().with_for_update()
    return q.order_by(IpdEncounter.id.desc()).first()


def resolve_physician(
    db: Session,
    *,
    physician_id: Optional[int] = None,
    physician_code: Optional[str] = None,
    fallback: Optional[str] = None,
) -> Physician:
    """
    Precedence: explicit id (physician id, then login user id) -> code ->
    free-text fallback (as a code, then as an exact name).
    """
    base = db.query(Physician).filter(Physician.is_active.is_(True))

    doc: Optional[Physician] = None
    if physician_id:
        doc = base.filter(Physician.id == physician_id).first()
        if not doc:
            doc = base.filter(Physician.user_id == physician_id).first()

    code = (physician_code or "").strip()
    if not doc and code:
        doc = base.filter(Physician.code == code).first()

    text = (fallback or "").strip()
    if not doc and text:
        doc = base.filter(Physician.code == text).first()
        if not doc:
            doc = base.filter(func.lower(Physician.name) == text.lower()).first()

    if not doc:
        raise ValidationError(
            "A valid physician must be selected.",
            field_errors={"attending_physician": ["does not match an active physician"]},
        )
    return doc


# ---------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------


def create_encounter(
    db: Session,
    *,
    patient_id: int,
    type: str = ENC_INPATIENT,
    priority: str = "routine",
    chief_complaint: str = "",
    physician_id: Optional[int] = None,
    severity: Optional[str] = None,
    acuity_level: Optional[str] = None,
    admission_notes: str = "",
    admitted_at: Optional[datetime] = None,
    diagnosis: Optional[dict] = None,
) -> IpdEncounter:
    errors: dict[str, list[str]] = {}
    if type not in ENCOUNTER_TYPES:
        errors["type"] = [f"must be one of {', '.join(ENCOUNTER_TYPES)}"]
    if priority not in PRIORITIES:
        errors["priority"] = [f"must be one of {', '.join(PRIORITIES)}"]
    if not get_patient(db, patient_id):
        errors["patient_id"] = [f"patient {patient_id} does not exist"]
    doc = None
    if physician_id is not None:
        doc = db.query(Physician).filter(Physician.id == physician_id).first()
    if not doc:
        errors["attending_physician_id"] = ["does not match a physician"]
    if errors:
        raise ValidationError("Encounter could not be created", field_errors=errors)

    now = now_utc_naive()
    enc = IpdEncounter(
        encounter_number=generate_encounter_number(now),
        patient_id=patient_id,
        attending_physician_id=doc.id,
        type=type,
        status=ENC_ACTIVE,
        priority=priority,
        severity=severity,
        acuity_level=acuity_level,
        chief_complaint=chief_complaint or "",
        admission_notes=admission_notes or "",
        admitted_at=to_utc_naive(admitted_at) or now,
        created_at=now,
    )
    db.add(enc)
    db.flush()

    if diagnosis:
        add_diagnosis(
            db,
            enc.id,
            icd10_code=diagnosis.get("icd10_code"),
            description=diagnosis.get("description") or enc.chief_complaint,
            diagnosed_by=doc.code,
        )
    return enc


def discharge(
    db: Session,
    enc: IpdEncounter,
    *,
    discharge_at: Optional[datetime] = None,
    summary: Optional[str] = None,
    condition: Optional[str] = None,
) -> IpdEncounter:
    if enc.type not in DISCHARGEABLE_TYPES:
        raise InvalidStateError(
            f"Only inpatient or emergency encounters can be discharged (found {enc.type})",
            details={"encounter_id": enc.id, "type": enc.type},
        )
    if enc.status != ENC_ACTIVE:
        raise InvalidStateError(
            f"Patient is not currently admitted (status: {enc.status})",
            details={"encounter_id": enc.id, "status": enc.status},
        )

    stop_ts = to_utc_naive(discharge_at) or now_utc_naive()
    if stop_ts < enc.admitted_at:
        raise ValidationError(
            "Discharge time is before admission",
            field_errors={"discharge_at": ["must not precede the admission timestamp"]},
        )

    enc.status = ENC_COMPLETED
    enc.discharge_at = stop_ts
    if summary:
        enc.discharge_summary = summary
    if condition:
        enc.discharge_condition = condition
    db.flush()
    return enc


def add_diagnosis(
    db: Session,
    encounter_id: int,
    *,
    icd10_code: Optional[str],
    description: str,
    type: str = DX_PRIMARY,
    diagnosed_by: Optional[str] = None,
) -> IpdDiagnosis:
    dx = IpdDiagnosis(
        encounter_id=encounter_id,
        type=type,
        icd10_code=icd10_code,
        description=description or "",
        diagnosed_by=diagnosed_by,
        diagnosed_at=now_utc_naive(),
    )
    db.add(dx)
    db.flush()
    return dx


def list_unassigned_active_encounters(db: Session) -> List[IpdEncounter]:
    open_rows = (
        select(IpdBedAssignment.encounter_id)
        .where(IpdBedAssignment.released_at.is_(None))
    )
    return (
        db.query(IpdEncounter)
        .options(joinedload(IpdEncounter.patient))
        .filter(
            IpdEncounter.status == ENC_ACTIVE,
            IpdEncounter.type.in_(DISCHARGEABLE_TYPES),
            IpdEncounter.id.not_in(open_rows),
        )
        .order_by(IpdEncounter.admitted_at.asc())
        .all()
    )
