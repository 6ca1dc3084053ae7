from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from school_erp.core.enums import UserRole
from school_erp.core.exceptions import PermissionDeniedError


class CurrentUser(BaseModel):
    """Caller identity taken from the identity provider's access token."""

    id: str
    role: UserRole
    name: Optional[str] = None


class AccessScope(BaseModel):
    """
    What the caller may see. Passed into services instead of letting business logic
    query the identity layer. student_id is set only for STUDENT callers linked to a student record.
    """

    user_id: str
    role: UserRole
    student_id: Optional[UUID] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_staff(self) -> bool:
        return self.role in (UserRole.ADMIN, UserRole.TEACHER)

    def can_view_student(self, student_id: UUID) -> bool:
        if self.is_staff:
            return True
        return self.student_id is not None and self.student_id == student_id

    def ensure_can_view_student(self, student_id: UUID) -> None:
        if not self.can_view_student(student_id):
            raise PermissionDeniedError("Students can only view their own records")
