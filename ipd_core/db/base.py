# ipd_core/db/base.py
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """All IPD tables (wards, beds, encounters, ledger) inherit from this."""
    pass
