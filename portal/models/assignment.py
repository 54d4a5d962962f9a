"""Assignment model definitions."""

import enum
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from portal.database import Base
from portal.models.user import User


class AssignmentStatus(str, enum.Enum):
    DRAFT = "Draft"
    SUBMITTED = "Submitted"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class AssignmentCategory(str, enum.Enum):
    ASSIGNMENT = "Assignment"
    THESIS = "Thesis"
    REPORT = "Report"


class Assignment(Base):
    """A file submitted by a student for review."""
    __tablename__ = "assignments"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, default="")
    category = Column(String, nullable=False, default=AssignmentCategory.ASSIGNMENT.value)
    status = Column(String, nullable=False, default=AssignmentStatus.DRAFT.value)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    reviewer_id = Column(Integer, ForeignKey("users.id"))
    reviewer_name = Column(String, default="")
    submitted_at = Column(DateTime)
    student_message = Column(String, default="")
    rejection_remarks = Column(String, default="")

    file_stored_name = Column(String)
    file_original_name = Column(String)
    file_path = Column(String)
    file_size = Column(Integer)
    file_mime_type = Column(String)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    owner = relationship(User, foreign_keys=[owner_id])
    reviewer = relationship(User, foreign_keys=[reviewer_id])
    file_versions = relationship(
        "FileVersion",
        cascade="all, delete-orphan",
        order_by="FileVersion.replaced_at",
    )
    review_records = relationship(
        "ReviewRecord",
        cascade="all, delete-orphan",
        order_by="ReviewRecord.created_at",
    )


class FileVersion(Base):
    """Metadata of a file that was replaced during an edit."""
    __tablename__ = "assignment_file_versions"

    id = Column(Integer, primary_key=True)
    assignment_id = Column(Integer, ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False, index=True)
    original_name = Column(String)
    size = Column(Integer)
    mime_type = Column(String)
    description = Column(Text, default="")
    submitted_at = Column(DateTime)
    replaced_at = Column(DateTime, default=datetime.utcnow)


class ReviewRecord(Base):
    """Audit entry for a professor's decision."""
    __tablename__ = "review_records"

    id = Column(Integer, primary_key=True)
    assignment_id = Column(Integer, ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False, index=True)
    action = Column(String, nullable=False)
    professor_id = Column(Integer, ForeignKey("users.id"))
    professor_name = Column(String)
    remarks = Column(String, default="")
    created_at = Column(DateTime, default=datetime.utcnow)
