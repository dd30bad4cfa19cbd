import uuid
from datetime import datetime

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID

from schooldata.database import Base


class StudentModel(Base):
    """Learner record, scoped by school and academic year."""

    __tablename__ = "students"

    id = Column(UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
    school_id = Column(UUID(as_uuid=False), ForeignKey("schools.id"), nullable=False)
    academic_year_id = Column(
        UUID(as_uuid=False), ForeignKey("academic_years.id"), nullable=False
    )
    lrn = Column(String(20), nullable=False)
    student_name = Column(String(255), nullable=False)
    level = Column(String(50), nullable=True)
    gender = Column(String(20), nullable=True)
    birth_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.now)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=datetime.now)


class StudentGradeModel(Base):
    __tablename__ = "student_grades"

    id = Column(UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
    student_id = Column(UUID(as_uuid=False), ForeignKey("students.id"), nullable=False)
    subject_id = Column(UUID(as_uuid=False), nullable=False)
    school_id = Column(UUID(as_uuid=False), ForeignKey("schools.id"), nullable=False)
    academic_year_id = Column(
        UUID(as_uuid=False), ForeignKey("academic_years.id"), nullable=False
    )
    quarter = Column(String(10), nullable=False)
    written_work = Column(Numeric(5, 2), nullable=True)
    performance_task = Column(Numeric(5, 2), nullable=True)
    quarterly_assessment = Column(Numeric(5, 2), nullable=True)
    final_grade = Column(Numeric(5, 2), nullable=True)
    remarks = Column(String(255), nullable=True)


class GradeSnapshotModel(Base):
    """Frozen copy of a grade row, taken when its academic year is archived."""

    __tablename__ = "grade_snapshots"
    __table_args__ = (
        UniqueConstraint(
            "student_id", "subject_id", "academic_year_id", "quarter",
            name="uq_grade_snapshots_student_subject_year_quarter",
        ),
    )

    id = Column(UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
    student_id = Column(UUID(as_uuid=False), nullable=False)
    subject_id = Column(UUID(as_uuid=False), nullable=False)
    school_id = Column(UUID(as_uuid=False), nullable=False)
    academic_year_id = Column(UUID(as_uuid=False), nullable=False)
    quarter = Column(String(10), nullable=False)
    written_work = Column(Numeric(5, 2), nullable=True)
    performance_task = Column(Numeric(5, 2), nullable=True)
    quarterly_assessment = Column(Numeric(5, 2), nullable=True)
    final_grade = Column(Numeric(5, 2), nullable=True)
    remarks = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.now)
