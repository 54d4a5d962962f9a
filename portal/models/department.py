"""Department model definitions."""

from sqlalchemy import Column, Integer, String
from portal.database import Base


class Department(Base):
    """A named grouping that pairs students with eligible reviewers."""
    __tablename__ = "departments"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)
