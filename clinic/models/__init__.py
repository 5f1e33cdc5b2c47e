from .role import Role, RolePermission
from .user import User
from .doctor import Doctor
from .patient import Patient
from .appointment import Appointment, AppointmentStatus, AppointmentType
from .invoice import Invoice
from .medical_record import MedicalRecord
from .audit_log import AuditLog

__all__ = [
    "Role",
    "RolePermission",
    "User",
    "Doctor",
    "Patient",
    "Appointment",
    "AppointmentStatus",
    "AppointmentType",
    "Invoice",
    "MedicalRecord",
    "AuditLog",
]
