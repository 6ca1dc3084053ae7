import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from school_erp.api.v1.academic_years.router import router as academic_years_router
from school_erp.api.v1.attendance.router import router as attendance_router
from school_erp.api.v1.class_sections.router import router as class_sections_router
from school_erp.api.v1.courses.router import router as courses_router
from school_erp.api.v1.enrollments.router import router as enrollments_router
from school_erp.api.v1.exams.router import router as exams_router
from school_erp.api.v1.fees.router import router as fees_router
from school_erp.api.v1.reminders.router import router as reminders_router
from school_erp.api.v1.reports.router import router as reports_router
from school_erp.api.v1.salaries.router import router as salaries_router
from school_erp.api.v1.students.router import router as students_router
from school_erp.api.v1.subjects.router import router as subjects_router
from school_erp.api.v1.teachers.router import router as teachers_router
from school_erp.core.config import settings
from school_erp.core.logging_config import configure_logging
from school_erp.reminders.scheduler import shutdown_scheduler, start_scheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler = start_scheduler()
    try:
        yield
    finally:
        shutdown_scheduler(scheduler)


def create_app() -> FastAPI:
    configure_logging(settings.log_level)
    app = FastAPI(title="School ERP Backend", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )

    # Routers
    app.include_router(academic_years_router)
    app.include_router(students_router)
    app.include_router(teachers_router)
    app.include_router(courses_router)
    app.include_router(subjects_router)
    app.include_router(class_sections_router)
    app.include_router(enrollments_router)
    app.include_router(fees_router)
    app.include_router(attendance_router)
    app.include_router(exams_router)
    app.include_router(reports_router)
    app.include_router(reminders_router)
    app.include_router(salaries_router)

    return app


app = create_app()
