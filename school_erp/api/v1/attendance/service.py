"""Attendance registers: one row per (student, class section, date)."""

import logging
from datetime import date, datetime, timezone
from typing import Dict, List

from fastapi import status
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.exceptions import ConflictError, NotFoundError, ServiceError, ValidationError
from school_erp.core.models import AcademicYear, AttendanceRecord, ClassSection, Enrollment

from .schemas import AttendanceRegister, AttendanceRegisterEntry, AttendanceRegisterSave, AttendanceSaveResponse

logger = logging.getLogger(__name__)


def _validate_date(year: AcademicYear, att_date: date) -> None:
    if att_date > datetime.now(timezone.utc).date():
        raise ServiceError("Cannot mark attendance for future dates", status.HTTP_400_BAD_REQUEST)
    if att_date < year.start_date or att_date > year.end_date:
        raise ValidationError(
            f"Date {att_date} is outside academic year range ({year.start_date} to {year.end_date})"
        )


async def _active_enrollments(db: AsyncSession, class_section_id, year: AcademicYear) -> List[Enrollment]:
    result = await db.execute(
        select(Enrollment)
        .where(
            Enrollment.class_section_id == class_section_id,
            Enrollment.academic_year_id == year.id,
            Enrollment.is_active.is_(True),
        )
        .order_by(Enrollment.roll_number)
    )
    return list(result.scalars().all())


async def save_register(
    db: AsyncSession,
    year: AcademicYear,
    payload: AttendanceRegisterSave,
) -> AttendanceSaveResponse:
    """Replace the class section's attendance for the day in a single transaction."""
    cs = await db.get(ClassSection, payload.class_section_id)
    if not cs:
        raise NotFoundError("Class section not found")
    _validate_date(year, payload.date)

    student_ids = [r.student_id for r in payload.records]
    if len(set(student_ids)) != len(student_ids):
        raise ValidationError("Each student may appear only once in a register")
    enrolled = {e.student_id for e in await _active_enrollments(db, cs.id, year)}
    not_enrolled = [sid for sid in student_ids if sid not in enrolled]
    if not_enrolled:
        raise ValidationError(f"{len(not_enrolled)} student(s) are not enrolled in {cs.display_name}")

    await db.execute(
        delete(AttendanceRecord).where(
            AttendanceRecord.class_section_id == cs.id,
            AttendanceRecord.date == payload.date,
        )
    )
    present = 0
    for mark in payload.records:
        db.add(
            AttendanceRecord(
                student_id=mark.student_id,
                class_section_id=cs.id,
                date=payload.date,
                is_present=mark.is_present,
                remarks=mark.remarks,
            )
        )
        if mark.is_present:
            present += 1
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Duplicate attendance or invalid student")
    saved = len(payload.records)
    logger.info("Attendance saved for %s on %s: %d/%d present", cs.display_name, payload.date, present, saved)
    return AttendanceSaveResponse(
        saved=saved,
        present=present,
        absent=saved - present,
        message=f"Attendance saved for {payload.date:%d %b %Y}!",
    )


async def get_register(
    db: AsyncSession,
    year: AcademicYear,
    class_section_id,
    att_date: date,
) -> AttendanceRegister:
    """Enrolled students with their saved mark for the day; unsaved students default to present."""
    cs = await db.get(ClassSection, class_section_id)
    if not cs:
        raise NotFoundError("Class section not found")
    enrollments = await _active_enrollments(db, cs.id, year)
    result = await db.execute(
        select(AttendanceRecord).where(
            AttendanceRecord.class_section_id == cs.id,
            AttendanceRecord.date == att_date,
        )
    )
    saved: Dict = {r.student_id: r for r in result.scalars().all()}
    entries = []
    for e in enrollments:
        record = saved.get(e.student_id)
        entries.append(
            AttendanceRegisterEntry(
                student_id=e.student_id,
                roll_number=e.roll_number,
                student_name=e.student.full_name,
                is_present=record.is_present if record else True,
                remarks=record.remarks if record else None,
            )
        )
    present = sum(1 for entry in entries if entry.is_present)
    return AttendanceRegister(
        class_section_id=cs.id,
        class_name=cs.display_name,
        date=att_date,
        is_saved=bool(saved),
        present=present,
        absent=len(entries) - present,
        entries=entries,
    )
