from school_erp.core.models.academic_year import AcademicYear
from school_erp.core.models.student import Student
from school_erp.core.models.teacher import Teacher
from school_erp.core.models.course import Course
from school_erp.core.models.class_section import ClassSection
from school_erp.core.models.enrollment import Enrollment
from school_erp.core.models.fee_head import FeeHead
from school_erp.core.models.fee_payment import FeePayment
from school_erp.core.models.attendance_record import AttendanceRecord
from school_erp.core.models.exam import Exam, MarkEntry
from school_erp.core.models.reminder_log import ReminderLog
from school_erp.core.models.salary import Salary
from school_erp.core.models.subject import Subject

__all__ = [
    "AcademicYear",
    "AttendanceRecord",
    "ClassSection",
    "Course",
    "Enrollment",
    "Exam",
    "FeeHead",
    "FeePayment",
    "MarkEntry",
    "ReminderLog",
    "Salary",
    "Student",
    "Subject",
    "Teacher",
]
