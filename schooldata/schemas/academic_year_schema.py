from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class AcademicYear(BaseModel):
    id: UUID
    school_id: UUID
    name: str
    start_date: date
    end_date: date
    is_current: bool
    is_archived: bool
    archived_at: Optional[datetime] = None
    archived_by: Optional[UUID] = None

    class Config:
        from_attributes = True


class AcademicYearStatus(BaseModel):
    id: UUID
    name: str
    is_current: bool
    is_archived: bool
    is_writable: bool
    is_read_only: bool


class AcademicYearActionResponse(BaseModel):
    message: str
    data: AcademicYear
    grades_preserved: Optional[int] = None
