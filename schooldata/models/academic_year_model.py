import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID

from schooldata.database import Base


class AcademicYearModel(Base):
    """Dated period within a school. At most one per school is current, by convention."""

    __tablename__ = "academic_years"

    id = Column(UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
    school_id = Column(UUID(as_uuid=False), ForeignKey("schools.id"), nullable=False)
    name = Column(String(50), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    is_current = Column(Boolean, nullable=False, default=False)
    is_archived = Column(Boolean, nullable=False, default=False)
    archived_at = Column(DateTime(timezone=True), nullable=True)
    archived_by = Column(UUID(as_uuid=False), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.now)
