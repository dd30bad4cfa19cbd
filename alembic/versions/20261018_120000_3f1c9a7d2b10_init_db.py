"""init_db

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2026-10-18 12:00:00.000000

"""

from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f1c9a7d2b10"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    statements = [
        'CREATE EXTENSION IF NOT EXISTS "pgcrypto"',
        """CREATE TABLE schools (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            code VARCHAR(50) NOT NULL UNIQUE,
            name VARCHAR(255) NOT NULL,
            is_active BOOLEAN NOT NULL DEFAULT true,
            address VARCHAR(500),
            region VARCHAR(100),
            division VARCHAR(100),
            district VARCHAR(100),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )""",
        """CREATE TABLE academic_years (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            school_id UUID NOT NULL REFERENCES schools(id),
            name VARCHAR(50) NOT NULL,  -- e.g. 2024-2025
            start_date DATE NOT NULL,
            end_date DATE NOT NULL,
            is_current BOOLEAN NOT NULL DEFAULT false,
            is_archived BOOLEAN NOT NULL DEFAULT false,
            archived_at TIMESTAMPTZ,
            archived_by UUID,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )""",
        """CREATE UNIQUE INDEX uq_academic_years_one_current
            ON academic_years (school_id) WHERE is_current""",
        """CREATE TABLE students (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            school_id UUID NOT NULL REFERENCES schools(id),
            academic_year_id UUID NOT NULL REFERENCES academic_years(id),
            lrn VARCHAR(20) NOT NULL,  -- learner reference number
            student_name VARCHAR(255) NOT NULL,
            level VARCHAR(50),
            gender VARCHAR(20),
            birth_date DATE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ
        )""",
        """CREATE INDEX ix_students_school_year
            ON students (school_id, academic_year_id)""",
        """CREATE TABLE student_grades (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            student_id UUID NOT NULL REFERENCES students(id),
            subject_id UUID NOT NULL,
            school_id UUID NOT NULL REFERENCES schools(id),
            academic_year_id UUID NOT NULL REFERENCES academic_years(id),
            quarter VARCHAR(10) NOT NULL,
            written_work NUMERIC(5, 2),
            performance_task NUMERIC(5, 2),
            quarterly_assessment NUMERIC(5, 2),
            final_grade NUMERIC(5, 2),
            remarks VARCHAR(255)
        )""",
        """CREATE TABLE grade_snapshots (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            student_id UUID NOT NULL,
            subject_id UUID NOT NULL,
            school_id UUID NOT NULL,
            academic_year_id UUID NOT NULL,
            quarter VARCHAR(10) NOT NULL,
            written_work NUMERIC(5, 2),
            performance_task NUMERIC(5, 2),
            quarterly_assessment NUMERIC(5, 2),
            final_grade NUMERIC(5, 2),
            remarks VARCHAR(255),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_grade_snapshots_student_subject_year_quarter
                UNIQUE (student_id, subject_id, academic_year_id, quarter)
        )""",
        """CREATE TABLE profiles (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            email VARCHAR(255) NOT NULL UNIQUE,
            full_name VARCHAR(255),
            password_hash VARCHAR(255),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )""",
        """CREATE TABLE user_roles (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            role VARCHAR(50) NOT NULL
        )""",
        """CREATE TABLE audit_logs (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID,
            action VARCHAR(100) NOT NULL,
            status VARCHAR(50) NOT NULL,
            user_agent VARCHAR(500),
            ip_address VARCHAR(100),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )""",
    ]

    for statement in statements:
        op.execute(statement)


def downgrade() -> None:
    drop_statements = [
        "DROP TABLE IF EXISTS audit_logs",
        "DROP TABLE IF EXISTS user_roles",
        "DROP TABLE IF EXISTS profiles",
        "DROP TABLE IF EXISTS grade_snapshots",
        "DROP TABLE IF EXISTS student_grades",
        "DROP TABLE IF EXISTS students",
        "DROP TABLE IF EXISTS academic_years",
        "DROP TABLE IF EXISTS schools",
    ]

    for statement in drop_statements:
        op.execute(statement)
