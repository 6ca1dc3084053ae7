from enum import Enum


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    TEACHER = "TEACHER"
    STUDENT = "STUDENT"


class PaymentStatus(str, Enum):
    COMPLETED = "Completed"
    PENDING = "Pending"
    FAILED = "Failed"


class PaymentMethod(str, Enum):
    CASH = "Cash"
    ONLINE = "Online"
    CHEQUE = "Cheque"


class ReminderType(str, Enum):
    FEE_OVERDUE = "FeeOverdue"
    FEE_UPCOMING = "FeeUpcoming"


class FeeStatus(str, Enum):
    PAID = "Paid"
    OVERDUE = "Overdue"
    PENDING = "Pending"


class SalaryStatus(str, Enum):
    PENDING = "Pending"
    PAID = "Paid"
