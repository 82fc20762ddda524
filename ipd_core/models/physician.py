# ipd_core/models/physician.py
from sqlalchemy import Column, Integer, String, Boolean

from ipd_core.db.base import Base


class Physician(Base):
    __tablename__ = "physicians"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(20), unique=True, nullable=False)

    # identity in the login system, when the physician has one
    user_id = Column(Integer, unique=True, nullable=True, index=True)

    name = Column(String(120), nullable=False)
    speciality = Column(String(255), nullable=True)

    is_ipd = Column(Boolean, default=True)
    is_active = Column(Boolean, default=True, index=True)
