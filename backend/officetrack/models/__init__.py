from officetrack.models.user import User
from officetrack.models.time_session import SessionBreak, TimeSession
from officetrack.models.leave_type import LeaveType
from officetrack.models.leave_balance import LeaveBalance
from officetrack.models.leave_request import LeaveRequest, leave_request_cc
from officetrack.models.leave_attachment import LeaveAttachment
from officetrack.models.audit_log import AuditLog

__all__ = [
    "User",
    "TimeSession",
    "SessionBreak",
    "LeaveType",
    "LeaveBalance",
    "LeaveRequest",
    "leave_request_cc",
    "LeaveAttachment",
    "AuditLog",
]
