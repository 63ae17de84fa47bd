from app.core.models.audit_log import MatchAuditLog
from app.core.models.school import School
from app.core.models.school_group import SchoolGroup
from app.core.models.student import Student
from app.core.models.student_penpal import StudentPenpal

__all__ = [
    "MatchAuditLog",
    "School",
    "SchoolGroup",
    "Student",
    "StudentPenpal",
]
