from fastapi import Depends, HTTPException, status

from school_erp.auth.dependencies import get_current_user
from school_erp.auth.schemas import CurrentUser
from school_erp.core.enums import UserRole


def require_roles(*roles: UserRole):
    """
    Dependency factory to restrict an endpoint to the given roles.

    Example:
        Depends(require_roles(UserRole.ADMIN, UserRole.TEACHER))
    """

    async def _checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user

    return _checker


# Access policies of the school portal
admin_access = require_roles(UserRole.ADMIN)
teacher_access = require_roles(UserRole.ADMIN, UserRole.TEACHER)
student_access = require_roles(UserRole.ADMIN, UserRole.TEACHER, UserRole.STUDENT)
