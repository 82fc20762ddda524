from __future__ import annotations
from sqlalchemy import (Column, Integer, String, DateTime, Text, ForeignKey,
                        Boolean, UniqueConstraint, Index)
from sqlalchemy.orm import relationship
from ipd_core.db.base import Base
from ipd_core.utils.timezone import now_utc_naive

# ---------------------------------------------------------------------
# Vocabularies
# ---------------------------------------------------------------------

BED_AVAILABLE = "available"
BED_OCCUPIED = "occupied"
BED_MAINTENANCE = "maintenance"
BED_CLEANING = "cleaning"
BED_STATUSES = (BED_AVAILABLE, BED_OCCUPIED, BED_MAINTENANCE, BED_CLEANING)

BED_TYPES = ("general", "private", "icu", "pediatric")

ENC_INPATIENT = "inpatient"
ENC_EMERGENCY = "emergency"
ENC_OUTPATIENT = "outpatient"
ENCOUNTER_TYPES = (ENC_INPATIENT, ENC_EMERGENCY, ENC_OUTPATIENT)
# only these occupy beds and can be discharged
DISCHARGEABLE_TYPES = (ENC_INPATIENT, ENC_EMERGENCY)

ENC_ACTIVE = "active"
ENC_COMPLETED = "completed"

PRIORITIES = ("routine", "urgent", "critical")

DX_PRIMARY = "primary"

# ---------------------------------------------------------------------
# IPD Masters
# ---------------------------------------------------------------------


class IpdWard(Base):
    __tablename__ = "ipd_wards"
    __table_args__ = {
        "mysql_engine": "InnoDB",
        "mysql_charset": "utf8mb4",
    }

    id = Column(Integer, primary_key=True)
    name = Column(String(100), unique=True, nullable=False)
    code = Column(String(20), unique=True, nullable=False)
    floor = Column(String(50), default="")
    is_active = Column(Boolean, default=True)

    beds = relationship("IpdBed", back_populates="ward")


class IpdBed(Base):
    __tablename__ = "ipd_beds"
    __table_args__ = (
        UniqueConstraint("ward_id",
                         "bed_number",
                         name="uq_ipd_bed_number_per_ward"),
        Index("ix_ipd_beds_status", "status"),
        Index("ix_ipd_beds_ward_status", "ward_id", "status"),
        {
            "mysql_engine": "InnoDB",
            "mysql_charset": "utf8mb4",
        },
    )

    id = Column(Integer, primary_key=True)
    ward_id = Column(Integer,
                     ForeignKey("ipd_wards.id"),
                     nullable=False,
                     index=True)
    bed_number = Column(String(30), nullable=False)
    bed_type = Column(String(20), default="general")  # general/private/icu/pediatric
    # available/occupied/maintenance/cleaning
    # cached view of the ledger: occupied <=> an open ipd_bed_assignments row
    status = Column(String(20), nullable=False, default=BED_AVAILABLE)
    last_occupied_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, default=now_utc_naive, onupdate=now_utc_naive)

    ward = relationship("IpdWard", back_populates="beds")

    @property
    def ward_name(self) -> str | None:
        return self.ward.name if self.ward else None


# ---------------------------------------------------------------------
# IPD Core Workflow
# ---------------------------------------------------------------------


class IpdEncounter(Base):
    __tablename__ = "ipd_encounters"
    __table_args__ = (
        Index("ix_ipd_encounters_patient_status", "patient_id", "status"),
        {
            "mysql_engine": "InnoDB",
            "mysql_charset": "utf8mb4",
        },
    )

    id = Column(Integer, primary_key=True)
    encounter_number = Column(String(32), unique=True, index=True, nullable=False)
    patient_id = Column(Integer,
                        ForeignKey("patients.id"),
                        nullable=False,
                        index=True)
    attending_physician_id = Column(Integer,
                                    ForeignKey("physicians.id"),
                                    nullable=True)

    type = Column(String(20), default=ENC_INPATIENT)  # inpatient/emergency/outpatient
    status = Column(String(20), default=ENC_ACTIVE, index=True)  # active/completed

    priority = Column(String(20), default="routine")
    severity = Column(String(20), nullable=True)
    acuity_level = Column(String(20), nullable=True)

    chief_complaint = Column(Text, default="")
    admission_notes = Column(Text, default="")

    admitted_at = Column(DateTime, default=now_utc_naive, nullable=False)
    discharge_at = Column(DateTime, nullable=True)
    discharge_summary = Column(Text, nullable=True)
    discharge_condition = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=now_utc_naive)

    patient = relationship("Patient")
    attending_physician = relationship("Physician")
    assignments = relationship(
        "IpdBedAssignment",
        back_populates="encounter",
        order_by="IpdBedAssignment.id",
    )
    diagnoses = relationship("IpdDiagnosis", back_populates="encounter")


class IpdBedAssignment(Base):
    """
    Ledger row. Open while released_at is NULL; closed rows are history
    and are never deleted.
    """
    __tablename__ = "ipd_bed_assignments"
    __table_args__ = (
        Index("ix_ipd_bed_assignments_bed_open", "bed_id", "released_at"),
        Index("ix_ipd_bed_assignments_enc_open", "encounter_id", "released_at"),
        {
            "mysql_engine": "InnoDB",
            "mysql_charset": "utf8mb4",
        },
    )

    id = Column(Integer, primary_key=True)
    encounter_id = Column(Integer,
                          ForeignKey("ipd_encounters.id"),
                          nullable=False,
                          index=True)
    bed_id = Column(Integer, ForeignKey("ipd_beds.id"), nullable=False, index=True)

    assigned_at = Column(DateTime, default=now_utc_naive, nullable=False)
    assigned_by = Column(String(120), default="System")
    assignment_notes = Column(String(1000), default="")

    released_at = Column(DateTime, nullable=True)
    released_by = Column(String(120), nullable=True)
    release_notes = Column(String(1000), nullable=True)

    encounter = relationship("IpdEncounter", back_populates="assignments")
    bed = relationship("IpdBed")

    @property
    def is_open(self) -> bool:
        return self.released_at is None


class IpdDiagnosis(Base):
    __tablename__ = "ipd_diagnoses"
    id = Column(Integer, primary_key=True)
    encounter_id = Column(Integer,
                          ForeignKey("ipd_encounters.id"),
                          nullable=False,
                          index=True)
    type = Column(String(20), default=DX_PRIMARY)  # primary/secondary
    icd10_code = Column(String(20), nullable=True)
    description = Column(Text, default="")
    diagnosed_by = Column(String(40), nullable=True)  # physician code
    diagnosed_at = Column(DateTime, default=now_utc_naive)

    encounter = relationship("IpdEncounter", back_populates="diagnoses")
