from sqlalchemy import Column, BigInteger, String, ForeignKey, DateTime, Date, Text, Numeric
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..core.database import Base

INVOICE_CANCELLED = "cancelled"

class Invoice(Base):
    __tablename__ = "invoices"

    invoice_id = Column(BigInteger, primary_key=True, autoincrement=False)
    invoice_number = Column(String(30), unique=True, nullable=False, index=True)

    # Relationships
    patient_id = Column(BigInteger, ForeignKey("patients.patient_id"), nullable=False, index=True)
    appointment_id = Column(BigInteger, ForeignKey("appointments.appointment_id"), nullable=True, index=True)

    invoice_date = Column(Date, nullable=False)
    amount = Column(Numeric(10, 2), default=0, nullable=False)
    discount = Column(Numeric(10, 2), default=0, nullable=False)

    # Payment; payment_status is derived from the two amounts
    total_amount = Column(Numeric(10, 2), default=0, nullable=False)
    paid_amount = Column(Numeric(10, 2), default=0, nullable=False)
    payment_status = Column(String(20), default="unpaid", nullable=False, index=True)
    payment_method = Column(String(50), nullable=True)
    payment_date = Column(Date, nullable=True)

    notes = Column(Text, nullable=True)
    created_by = Column(BigInteger, nullable=True)

    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    patient = relationship("Patient", back_populates="invoices")
    appointment = relationship("Appointment", back_populates="invoices")

    @property
    def remaining_amount(self):
        return max((self.total_amount or 0) - (self.paid_amount or 0), 0)

    def __repr__(self):
        return f"<Invoice(id={self.invoice_id}, number='{self.invoice_number}', status='{self.payment_status}')>"
