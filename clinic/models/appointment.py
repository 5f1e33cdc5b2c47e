from sqlalchemy import Column, BigInteger, String, ForeignKey, DateTime, Date, Text, Numeric
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from ..core.database import Base

class AppointmentStatus(str, enum.Enum):
    PENDING = "pending"
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class AppointmentType(str, enum.Enum):
    CONSULTATION = "consultation"
    FOLLOW_UP = "follow_up"
    EMERGENCY = "emergency"

class Appointment(Base):
    __tablename__ = "appointments"

    appointment_id = Column(BigInteger, primary_key=True, autoincrement=False)

    # Relationships
    patient_id = Column(BigInteger, ForeignKey("patients.patient_id"), nullable=False, index=True)
    doctor_id = Column(BigInteger, ForeignKey("doctors.doctor_id"), nullable=False, index=True)

    # Appointment details
    schedule = Column(DateTime, nullable=False, index=True)
    schedule_at = Column(String(5), nullable=True)  # "HH:MM"
    reason = Column(Text, nullable=False)
    note = Column(Text, nullable=True)
    status = Column(String(20), default=AppointmentStatus.PENDING.value, nullable=False)
    cancellation_reason = Column(String(255), nullable=True)
    appointment_type = Column(String(20), default=AppointmentType.CONSULTATION.value, nullable=False)

    # Payment; payment_status is derived from the two amounts
    total_amount = Column(Numeric(10, 2), default=0, nullable=False)
    paid_amount = Column(Numeric(10, 2), default=0, nullable=False)
    payment_status = Column(String(20), default="unpaid", nullable=False)
    payment_method = Column(String(50), nullable=True)
    payment_date = Column(Date, nullable=True)

    # Tracking
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    patient = relationship("Patient", back_populates="appointments")
    doctor = relationship("Doctor", back_populates="appointments")
    invoices = relationship("Invoice", back_populates="appointment")

    def __repr__(self):
        return f"<Appointment(id={self.appointment_id}, patient_id={self.patient_id}, doctor_id={self.doctor_id}, schedule='{self.schedule}')>"
