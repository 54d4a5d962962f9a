"""User model definitions."""

import enum
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from portal.database import Base
from portal.models.department import Department


class Role(str, enum.Enum):
    STUDENT = "student"
    PROFESSOR = "professor"
    HOD = "hod"
    ADMIN = "admin"


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String, nullable=False, default=Role.STUDENT.value)  # student/professor/hod/admin
    phone = Column(String)
    department_id = Column(Integer, ForeignKey("departments.id"))
    reset_otp_hash = Column(String)
    reset_otp_expires_at = Column(DateTime)
    reset_otp_attempts = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    department = relationship(Department)
