from sqlalchemy import Column, BigInteger, String, ForeignKey, DateTime, Date, Boolean, Text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..core.database import Base

class Patient(Base):
    __tablename__ = "patients"

    patient_id = Column(BigInteger, primary_key=True, autoincrement=False)

    # Personal information
    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(30), nullable=False)
    date_of_birth = Column(Date, nullable=True)
    gender = Column(String(20), nullable=True)
    address = Column(String(255), nullable=True)
    occupation = Column(String(100), nullable=True)

    # Emergency contact
    emergency_contact_name = Column(String(200), nullable=True)
    emergency_contact_number = Column(String(30), nullable=True)

    # Care and insurance
    primary_physician = Column(BigInteger, ForeignKey("doctors.doctor_id"), nullable=True)
    insurance_provider = Column(String(100), nullable=True)
    insurance_policy_number = Column(String(100), nullable=True)

    # Medical information
    allergies = Column(Text, nullable=True)
    current_medication = Column(Text, nullable=True)
    family_medical_history = Column(Text, nullable=True)
    past_medical_history = Column(Text, nullable=True)

    # Identification
    identification_type = Column(String(50), nullable=True)
    identification_number = Column(String(100), nullable=True, index=True)

    # Consents
    privacy_consent = Column(Boolean, default=False)
    treatment_consent = Column(Boolean, default=False)
    disclosure_consent = Column(Boolean, default=False)

    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    physician = relationship("Doctor", foreign_keys=[primary_physician])
    appointments = relationship("Appointment", back_populates="patient")
    invoices = relationship("Invoice", back_populates="patient")
    medical_records = relationship("MedicalRecord", back_populates="patient")

    def __repr__(self):
        return f"<Patient(id={self.patient_id}, name='{self.name}')>"
