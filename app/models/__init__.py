from app.models.application import Application
from app.models.application_plan import ApplicationPlan
from app.models.audit_log import AuditLog
from app.models.department import Department, DepartmentPermission
from app.models.loan import Loan
from app.models.loan_payment import LoanPayment
from app.models.plan import Plan
from app.models.prospect_staff_assignment import ProspectStaffAssignment
from app.models.user import User

__all__ = [
    "Application",
    "ApplicationPlan",
    "AuditLog",
    "Department",
    "DepartmentPermission",
    "Loan",
    "LoanPayment",
    "Plan",
    "ProspectStaffAssignment",
    "User",
]
