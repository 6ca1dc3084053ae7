from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.api.v1.academic_years.service import get_active_year
from school_erp.auth.dependencies import get_access_scope, get_active_year_scope
from school_erp.auth.rbac import admin_access, student_access, teacher_access
from school_erp.auth.schemas import AccessScope
from school_erp.core.exceptions import ServiceError
from school_erp.core.models import AcademicYear
from school_erp.db.session import get_db
from school_erp.reports.pdf import render_attendance_report, render_class_result, render_report_card

from .schemas import (
    ClassResultData,
    DashboardResponse,
    MonthlyAttendanceReport,
    ReportOverview,
    StudentReportCardData,
)
from . import service

router = APIRouter(prefix="/api/v1/reports", tags=["reports"])


@router.get(
    "/overview",
    response_model=ReportOverview,
    dependencies=[Depends(admin_access)],
)
async def get_overview(
    db: AsyncSession = Depends(get_db),
    scope: AccessScope = Depends(get_access_scope),
    year: AcademicYear = Depends(get_active_year_scope),
) -> ReportOverview:
    """Fee, attendance, GPA, pass/fail and exam summaries for the active year."""
    try:
        return await service.get_overview(db, year, scope)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/dashboard",
    response_model=DashboardResponse,
    dependencies=[Depends(student_access)],
)
async def get_dashboard(
    db: AsyncSession = Depends(get_db),
    scope: AccessScope = Depends(get_access_scope),
) -> DashboardResponse:
    year = await get_active_year(db)
    try:
        return await service.get_dashboard(db, year, scope)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/students/{student_id}/report-card",
    response_model=StudentReportCardData,
    dependencies=[Depends(student_access)],
)
async def get_report_card(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    scope: AccessScope = Depends(get_access_scope),
    year: AcademicYear = Depends(get_active_year_scope),
) -> StudentReportCardData:
    try:
        return await service.get_student_report_card(db, year, scope, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/students/{student_id}/report-card.pdf",
    dependencies=[Depends(student_access)],
)
async def download_report_card(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    scope: AccessScope = Depends(get_access_scope),
    year: AcademicYear = Depends(get_active_year_scope),
) -> Response:
    try:
        data = await service.get_student_report_card(db, year, scope, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return Response(
        content=render_report_card(data),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="ReportCard_{data.admission_number}.pdf"'},
    )


@router.get(
    "/class-result",
    response_model=ClassResultData,
    dependencies=[Depends(teacher_access)],
)
async def get_class_result(
    exam_id: UUID = Query(...),
    db: AsyncSession = Depends(get_db),
    scope: AccessScope = Depends(get_access_scope),
    year: AcademicYear = Depends(get_active_year_scope),
) -> ClassResultData:
    try:
        return await service.get_class_result(db, year, scope, exam_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/class-result.pdf",
    dependencies=[Depends(teacher_access)],
)
async def download_class_result(
    exam_id: UUID = Query(...),
    db: AsyncSession = Depends(get_db),
    scope: AccessScope = Depends(get_access_scope),
    year: AcademicYear = Depends(get_active_year_scope),
) -> Response:
    try:
        data = await service.get_class_result(db, year, scope, exam_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return Response(
        content=render_class_result(data),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="ClassResult_{data.exam_id.hex[:8]}.pdf"'},
    )


@router.get(
    "/attendance/monthly",
    response_model=MonthlyAttendanceReport,
    dependencies=[Depends(teacher_access)],
)
async def get_monthly_attendance(
    class_section_id: UUID = Query(...),
    month: int = Query(..., description="1-12"),
    calendar_year: int = Query(..., alias="year"),
    db: AsyncSession = Depends(get_db),
    scope: AccessScope = Depends(get_access_scope),
    year: AcademicYear = Depends(get_active_year_scope),
) -> MonthlyAttendanceReport:
    """Per-student present/absent days for one class and month."""
    try:
        return await service.get_monthly_attendance_report(
            db, year, scope, class_section_id, month, calendar_year
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/attendance/monthly.pdf",
    dependencies=[Depends(teacher_access)],
)
async def download_monthly_attendance(
    class_section_id: UUID = Query(...),
    month: int = Query(..., description="1-12"),
    calendar_year: int = Query(..., alias="year"),
    db: AsyncSession = Depends(get_db),
    scope: AccessScope = Depends(get_access_scope),
    year: AcademicYear = Depends(get_active_year_scope),
) -> Response:
    try:
        data = await service.get_monthly_attendance_report(
            db, year, scope, class_section_id, month, calendar_year
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return Response(
        content=render_attendance_report(data),
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="Attendance_{data.class_name}_{month:02d}_{calendar_year}.pdf"'
        },
    )
