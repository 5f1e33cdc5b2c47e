from sqlalchemy import func
from sqlalchemy.orm import Session
from decimal import Decimal

from ..core.payments import to_decimal
from ..models.appointment import Appointment, AppointmentStatus
from ..models.doctor import Doctor
from ..models.invoice import Invoice
from ..models.patient import Patient
from ..schemas.dashboard import DashboardStats, MonthlyRevenue
from .billing_service import BillingService

class DashboardService:
    def __init__(self, db: Session):
        self.db = db

    def stats(self) -> DashboardStats:
        by_status = {s.value: 0 for s in AppointmentStatus}
        rows = self.db.query(Appointment.status, func.count(Appointment.appointment_id)).group_by(
            Appointment.status
        ).all()
        for status, count in rows:
            by_status[status] = count

        invoices = self.db.query(Invoice).all()
        total_revenue = sum((to_decimal(i.total_amount) for i in invoices), Decimal("0"))
        total_paid = sum((to_decimal(i.paid_amount) for i in invoices), Decimal("0"))

        return DashboardStats(
            patients=self.db.query(func.count(Patient.patient_id)).scalar() or 0,
            doctors=self.db.query(func.count(Doctor.doctor_id)).scalar() or 0,
            appointments=sum(by_status.values()),
            appointments_by_status=by_status,
            invoices=len(invoices),
            total_revenue=total_revenue,
            total_paid=total_paid,
            total_remaining=max(total_revenue - total_paid, Decimal("0")),
            monthly_revenue=[
                MonthlyRevenue(**row)
                for row in BillingService(self.db).monthly_revenue(invoices)
            ],
        )
