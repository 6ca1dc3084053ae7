from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.api.v1.academic_years.service import get_active_year
from school_erp.auth.dependencies import get_access_scope, get_active_year_scope
from school_erp.auth.rbac import admin_access, student_access, teacher_access
from school_erp.auth.schemas import AccessScope
from school_erp.core.exceptions import ServiceError
from school_erp.core.models import AcademicYear
from school_erp.db.session import get_db

from .schemas import (
    ExamCreate,
    ExamResponse,
    ExamUpdate,
    MarkEntryResponse,
    MarksSave,
    MarksSaveResponse,
    PublishResponse,
    StudentGpaResponse,
)
from . import service

router = APIRouter(prefix="/api/v1/exams", tags=["exams"])


@router.post(
    "",
    response_model=ExamResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(teacher_access)],
)
async def create_exam(
    payload: ExamCreate,
    db: AsyncSession = Depends(get_db),
) -> ExamResponse:
    try:
        return await service.create_exam(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[ExamResponse],
    dependencies=[Depends(student_access)],
)
async def list_exams(
    course_id: Optional[UUID] = Query(None),
    all_years: bool = Query(False, description="Include exams outside the active year"),
    db: AsyncSession = Depends(get_db),
) -> List[ExamResponse]:
    year = None if all_years else await get_active_year(db)
    return await service.list_exams(db, year=year, course_id=course_id)


@router.get(
    "/students/{student_id}/gpa",
    response_model=StudentGpaResponse,
    dependencies=[Depends(student_access)],
)
async def get_student_gpa(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    scope: AccessScope = Depends(get_access_scope),
    year: AcademicYear = Depends(get_active_year_scope),
) -> StudentGpaResponse:
    """Credit-weighted GPA for the active year."""
    try:
        return await service.get_student_gpa(db, year, scope, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{exam_id}",
    response_model=ExamResponse,
    dependencies=[Depends(student_access)],
)
async def get_exam(
    exam_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> ExamResponse:
    exam = await service.get_exam(db, exam_id)
    if not exam:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Exam not found")
    return exam


@router.put(
    "/{exam_id}",
    response_model=ExamResponse,
    dependencies=[Depends(teacher_access)],
)
async def update_exam(
    exam_id: UUID,
    payload: ExamUpdate,
    db: AsyncSession = Depends(get_db),
) -> ExamResponse:
    try:
        return await service.update_exam(db, exam_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{exam_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(admin_access)],
)
async def delete_exam(
    exam_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> None:
    try:
        await service.delete_exam(db, exam_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/{exam_id}/marks",
    response_model=MarksSaveResponse,
    dependencies=[Depends(teacher_access)],
)
async def save_marks(
    exam_id: UUID,
    payload: MarksSave,
    db: AsyncSession = Depends(get_db),
) -> MarksSaveResponse:
    """Create or update marks; grades are computed server-side."""
    try:
        return await service.save_marks(db, exam_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{exam_id}/marks",
    response_model=List[MarkEntryResponse],
    dependencies=[Depends(student_access)],
)
async def list_marks(
    exam_id: UUID,
    db: AsyncSession = Depends(get_db),
    scope: AccessScope = Depends(get_access_scope),
) -> List[MarkEntryResponse]:
    try:
        return await service.list_marks(db, exam_id, scope)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{exam_id}/publish",
    response_model=PublishResponse,
    dependencies=[Depends(teacher_access)],
)
async def publish_marks(
    exam_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> PublishResponse:
    try:
        published = await service.publish_marks(db, exam_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return PublishResponse(published=published)
