import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.dialects.postgresql import UUID

from schooldata.database import Base


class SchoolModel(Base):
    """Tenant: one school instance, the top-level partition of all data."""

    __tablename__ = "schools"

    id = Column(UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
    code = Column(String(50), unique=True, nullable=False)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    address = Column(String(500), nullable=True)
    region = Column(String(100), nullable=True)
    division = Column(String(100), nullable=True)
    district = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.now)
