from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.api.v1.academic_years.service import get_active_year
from school_erp.auth.schemas import AccessScope, CurrentUser
from school_erp.auth.security import decode_access_token
from school_erp.core.enums import UserRole
from school_erp.core.models import AcademicYear, Student
from school_erp.db.session import get_db


# Tokens are issued by the external identity provider; this URL is only used for OpenAPI docs.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")

NO_ACTIVE_YEAR_MESSAGE = "No active academic year set. Please set an active year first."


async def get_current_user(token: str = Depends(oauth2_scheme)) -> CurrentUser:
    """Resolve the caller from the access token (sub + role claims)."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = decode_access_token(token)
    except JWTError:
        raise credentials_exception

    user_id = payload.get("user_id") or payload.get("sub")
    role_name = payload.get("role")
    if not user_id or not role_name:
        raise credentials_exception
    try:
        role = UserRole(str(role_name).upper())
    except ValueError:
        raise credentials_exception

    return CurrentUser(id=str(user_id), role=role, name=payload.get("name"))


async def get_access_scope(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> AccessScope:
    """Build the caller's access scope; students are bound to their linked student record."""
    student_id = None
    if current_user.role == UserRole.STUDENT:
        result = await db.execute(
            select(Student.id).where(
                Student.user_id == current_user.id,
                Student.is_active.is_(True),
            )
        )
        student_id = result.scalar_one_or_none()
    return AccessScope(user_id=current_user.id, role=current_user.role, student_id=student_id)


async def get_active_year_scope(db: AsyncSession = Depends(get_db)) -> AcademicYear:
    """Resolve the active academic year once per request; 404 when none is set."""
    year = await get_active_year(db)
    if year is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NO_ACTIVE_YEAR_MESSAGE)
    return year
