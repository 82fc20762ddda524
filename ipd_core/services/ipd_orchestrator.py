# FILE: ipd_core/services/ipd_orchestrator.py
"""
Admission / transfer / release / discharge, each as one transaction.

Every operation owns its transaction boundary: an autobegun read-only
transaction on the session is ended first, the work runs inside
``db.begin()``, and any error rolls everything back before propagating.
Domain events go out only after commit.

Lock order:
  - a bed being taken (admit, assign, transfer target) is locked first;
  - then the patient / encounter row;
  - then the bed the encounter currently holds (transfer source,
    release, discharge).
A bed being taken must be available, so no transaction ever waits on an
encounter while holding the occupied bed that encounter is waiting for.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from ipd_core.core.config import settings
from ipd_core.models.ipd import (
    IpdBed,
    IpdBedAssignment,
    BED_AVAILABLE,
    BED_OCCUPIED,
    DISCHARGEABLE_TYPES,
    ENC_ACTIVE,
)
from ipd_core.schemas.ipd import (
    AdmitIn,
    AssignBedIn,
    BedOut,
    DischargeIn,
    ReleaseBedIn,
    TransferIn,
    AdmissionOut,
    PlacementOut,
    TransferOut,
    ReleaseOut,
    DischargeOut,
    HOUSEKEEPING_STATUSES,
)
from ipd_core.services import assignment_ledger, bed_registry, encounter_manager
from ipd_core.services.errors import (
    BedUnavailableError,
    ConflictError,
    InvalidStateError,
    IpdError,
    LockTimeoutError,
    NotFoundError,
    ValidationError,
    is_lock_timeout,
)
from ipd_core.services.events import (
    BedReleased,
    PatientAdmitted,
    PatientDischarged,
    PatientTransferred,
    publish_event,
)

logger = logging.getLogger(__name__)


@contextmanager
def _unit_of_work(db: Session, op: str) -> Iterator[None]:
    if db.in_transaction():
        db.rollback()
    try:
        with db.begin():
            yield
    except IpdError as e:
        logger.warning("%s rejected: %s", op, e.msg)
        raise
    except OperationalError as e:
        if is_lock_timeout(e):
            logger.warning("%s gave up waiting for a row lock", op)
            raise LockTimeoutError(
                "Timed out waiting for a bed lock; retry shortly",
                details={"operation": op},
            ) from e
        raise


def _actor(actor: Optional[str]) -> str:
    return (actor or "").strip() or settings.DEFAULT_ACTOR


def _require_available(bed: IpdBed) -> None:
    if bed.status != BED_AVAILABLE:
        raise BedUnavailableError(bed.id, bed.status)


# ---------------------------------------------------------------------
# Admit
# ---------------------------------------------------------------------


def admit_patient(db: Session, payload: AdmitIn, *, actor: Optional[str] = None) -> AdmissionOut:
    by = _actor(actor)
    logger.info("Admission request: patient=%s bed=%s", payload.patient_id, payload.bed_id)

    with _unit_of_work(db, "admit"):
        bed = bed_registry.lock_bed(db, payload.bed_id)
        _require_available(bed)

        doc = encounter_manager.resolve_physician(
            db,
            physician_id=payload.attending_physician_id,
            physician_code=payload.attending_physician_code,
            fallback=payload.attending_physician,
        )

        patient = encounter_manager.lock_patient(db, payload.patient_id)
        if not patient:
            raise ValidationError(
                f"Patient {payload.patient_id} not found",
                field_errors={"patient_id": ["does not exist"]},
            )
        existing = encounter_manager.get_active_inpatient_encounter(db, patient.id, lock=True)
        if existing:
            raise InvalidStateError(
                f"Patient {patient.id} is already admitted ({existing.encounter_number})",
                details={"patient_id": patient.id, "encounter_id": existing.id},
            )

        enc = encounter_manager.create_encounter(
            db,
            patient_id=patient.id,
            type=payload.encounter_type,
            priority=payload.priority,
            chief_complaint=payload.chief_complaint,
            physician_id=doc.id,
            severity=payload.severity,
            acuity_level=payload.acuity_level,
            admission_notes=payload.admission_notes or "",
        )
        asg = assignment_ledger.create_assignment(
            db, enc.id, bed.id, by, payload.admission_notes or "Admission")
        bed_registry.set_status(db, bed, BED_OCCUPIED)

        if payload.icd10_code or payload.primary_diagnosis:
            encounter_manager.add_diagnosis(
                db,
                enc.id,
                icd10_code=payload.icd10_code,
                description=(payload.icd10_description
                             or payload.primary_diagnosis
                             or payload.chief_complaint),
                diagnosed_by=doc.code,
            )

        bed_type = bed_registry.normalize_bed_type(bed.bed_type)
        out = AdmissionOut(
            encounter_id=enc.id,
            encounter_number=enc.encounter_number,
            patient_id=patient.id,
            assignment_id=asg.id,
            bed_id=bed.id,
            bed_number=bed.bed_number,
            bed_type=bed_type,
            ward_id=bed.ward_id,
            ward_name=bed.ward_name,
            physician_code=doc.code,
            admitted_at=enc.admitted_at,
        )

    logger.info(
        "Patient admitted: encounter=%s patient=%s bed=%s physician=%s",
        out.encounter_id, out.patient_id, out.bed_id, out.physician_code)
    publish_event(PatientAdmitted(encounter_id=out.encounter_id, bed_id=out.bed_id, bed_type=out.bed_type))
    return out


# ---------------------------------------------------------------------
# Place an admitted, bedless encounter
# ---------------------------------------------------------------------


def assign_bed(
    db: Session,
    encounter_id: int,
    payload: AssignBedIn,
    *,
    actor: Optional[str] = None,
) -> PlacementOut:
    by = _actor(actor)

    with _unit_of_work(db, "assign_bed"):
        bed = bed_registry.lock_bed(db, payload.bed_id)
        _require_available(bed)

        enc = encounter_manager.get_encounter(db, encounter_id, lock=True)
        if enc.status != ENC_ACTIVE or enc.type not in DISCHARGEABLE_TYPES:
            raise InvalidStateError(
                f"Encounter {enc.id} cannot hold a bed ({enc.type}/{enc.status})",
                details={"encounter_id": enc.id},
            )
        current = assignment_ledger.find_open_assignment_for_encounter(db, enc.id, lock=True)
        if current:
            raise ConflictError(
                f"Encounter {enc.id} already holds bed {current.bed_id}; use transfer",
                details={"encounter_id": enc.id, "bed_id": current.bed_id},
            )

        asg = assignment_ledger.create_assignment(
            db, enc.id, bed.id, by, payload.notes or "Bed assignment")
        bed_registry.set_status(db, bed, BED_OCCUPIED)

        out = PlacementOut(
            encounter_id=enc.id,
            assignment_id=asg.id,
            bed_id=bed.id,
            bed_number=bed.bed_number,
            ward_name=bed.ward_name,
        )

    logger.info("Bed %s assigned to encounter %s", out.bed_id, out.encounter_id)
    return out


# ---------------------------------------------------------------------
# Transfer
# ---------------------------------------------------------------------


def transfer_patient(
    db: Session,
    encounter_id: int,
    payload: TransferIn,
    *,
    actor: Optional[str] = None,
) -> TransferOut:
    by = _actor(actor)

    with _unit_of_work(db, "transfer"):
        encounter_manager.get_encounter(db, encounter_id)
        current = assignment_ledger.find_open_assignment_for_encounter(db, encounter_id)
        if not current:
            raise NotFoundError(
                f"No active bed assignment found for encounter {encounter_id}",
                details={"encounter_id": encounter_id},
            )
        if current.bed_id == payload.to_bed_id:
            raise ValidationError(
                "Target bed must be different from current bed",
                field_errors={"to_bed_id": ["is the current bed"]},
            )

        target = bed_registry.lock_bed(db, payload.to_bed_id)
        _require_available(target)

        enc = encounter_manager.get_encounter(db, encounter_id, lock=True)
        current = assignment_ledger.find_open_assignment_for_encounter(db, enc.id, lock=True)
        if not current:
            raise NotFoundError(
                f"No active bed assignment found for encounter {encounter_id}",
                details={"encounter_id": encounter_id},
            )
        source = bed_registry.lock_bed(db, current.bed_id)

        released = assignment_ledger.release_assignment(
            db, current.id, by,
            f"Transferred to bed {target.bed_number}: {payload.reason}")
        bed_registry.set_status(db, source, BED_AVAILABLE)

        asg = assignment_ledger.create_assignment(
            db, enc.id, target.id, by,
            f"Transferred from bed {source.bed_number}: {payload.reason}")
        bed_registry.set_status(db, target, BED_OCCUPIED)

        out = TransferOut(
            encounter_id=enc.id,
            from_bed_id=source.id,
            from_bed_number=source.bed_number,
            to_bed_id=target.id,
            to_bed_number=target.bed_number,
            to_ward_name=target.ward_name,
            released_assignment_id=released.id,
            assignment_id=asg.id,
        )

    logger.info(
        "Encounter %s transferred: bed %s -> bed %s",
        out.encounter_id, out.from_bed_id, out.to_bed_id)
    publish_event(PatientTransferred(
        encounter_id=out.encounter_id, from_bed_id=out.from_bed_id, to_bed_id=out.to_bed_id))
    return out


# ---------------------------------------------------------------------
# Release without discharge
# ---------------------------------------------------------------------


def release_bed(
    db: Session,
    encounter_id: int,
    payload: Optional[ReleaseBedIn] = None,
    *,
    actor: Optional[str] = None,
) -> ReleaseOut:
    by = _actor(actor)
    notes = (payload.notes if payload else None) or "Bed released"

    with _unit_of_work(db, "release_bed"):
        enc = encounter_manager.get_encounter(db, encounter_id, lock=True)
        current = assignment_ledger.find_open_assignment_for_encounter(db, enc.id, lock=True)
        if not current:
            raise NotFoundError(
                f"No active bed assignment found for encounter {encounter_id}",
                details={"encounter_id": encounter_id},
            )
        bed = bed_registry.lock_bed(db, current.bed_id)

        released = assignment_ledger.release_assignment(db, current.id, by, notes)
        bed_registry.set_status(db, bed, BED_AVAILABLE)

        out = ReleaseOut(
            encounter_id=enc.id,
            assignment_id=released.id,
            bed_id=bed.id,
            bed_number=bed.bed_number,
            released_at=released.released_at,
        )

    logger.info("Bed %s released from encounter %s", out.bed_id, out.encounter_id)
    publish_event(BedReleased(encounter_id=out.encounter_id, bed_id=out.bed_id))
    return out


# ---------------------------------------------------------------------
# Discharge
# ---------------------------------------------------------------------


def discharge_patient(
    db: Session,
    encounter_id: int,
    payload: Optional[DischargeIn] = None,
    *,
    actor: Optional[str] = None,
) -> DischargeOut:
    by = _actor(actor)
    payload = payload or DischargeIn()

    with _unit_of_work(db, "discharge"):
        enc = encounter_manager.get_encounter(db, encounter_id, lock=True)
        encounter_manager.discharge(
            db,
            enc,
            discharge_at=payload.discharge_at,
            summary=payload.discharge_summary,
            condition=payload.discharge_condition,
        )

        released_id = bed_id = bed_number = None
        current = assignment_ledger.find_open_assignment_for_encounter(db, enc.id, lock=True)
        if current:
            bed = bed_registry.lock_bed(db, current.bed_id)
            released = assignment_ledger.release_assignment(
                db, current.id, by, payload.release_notes or "Patient discharged")
            bed_registry.set_status(db, bed, BED_AVAILABLE)
            released_id, bed_id, bed_number = released.id, bed.id, bed.bed_number
        else:
            logger.warning("No active bed assignment found for encounter %s", enc.id)

        patient = encounter_manager.get_patient(db, enc.patient_id)
        out = DischargeOut(
            encounter_id=enc.id,
            patient_name=patient.full_name if patient else "",
            discharge_at=enc.discharge_at,
            released_assignment_id=released_id,
            bed_id=bed_id,
            bed_number=bed_number,
        )

    logger.info("Encounter %s discharged (bed %s)", out.encounter_id, out.bed_number or "none")
    publish_event(PatientDischarged(encounter_id=out.encounter_id, bed_id=out.bed_id))
    return out


# ---------------------------------------------------------------------
# Housekeeping
# ---------------------------------------------------------------------


def set_bed_housekeeping_status(db: Session, bed_id: int, status: str) -> BedOut:
    """Move a free bed between available / maintenance / cleaning."""
    if status not in HOUSEKEEPING_STATUSES:
        raise ValidationError(
            f"Bed status {status!r} cannot be set directly",
            field_errors={"status": [f"must be one of {', '.join(sorted(HOUSEKEEPING_STATUSES))}"]},
        )

    with _unit_of_work(db, "bed_status"):
        bed = bed_registry.lock_bed(db, bed_id)
        if bed.status == BED_OCCUPIED or assignment_ledger.find_open_assignment_for_bed(db, bed.id, lock=True):
            raise InvalidStateError(
                f"Bed {bed.id} is occupied; release or discharge first",
                details={"bed_id": bed.id},
            )
        bed_registry.set_status(db, bed, status)
        out = BedOut.model_validate(bed)

    logger.info("Bed %s marked %s", out.id, out.status)
    return out


# ---------------------------------------------------------------------
# Consistency
# ---------------------------------------------------------------------


def find_status_drift(db: Session) -> List[dict]:
    """
    Beds whose cached status disagrees with the ledger: occupied without
    exactly one open assignment, or holding an open assignment while not
    occupied.
    """
    open_counts: dict[int, int] = {}
    for (bid,) in db.execute(
            select(IpdBedAssignment.bed_id).where(IpdBedAssignment.released_at.is_(None))):
        open_counts[bid] = open_counts.get(bid, 0) + 1

    drift = []
    for bed in db.query(IpdBed).order_by(IpdBed.id).all():
        n = open_counts.get(bed.id, 0)
        occupied = bed.status == BED_OCCUPIED
        if occupied != (n == 1) or n > 1:
            drift.append({"bed_id": bed.id, "status": bed.status, "open_assignments": n})
    return drift
