from sqlalchemy import Column, BigInteger, ForeignKey, DateTime, Date, Text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..core.database import Base

class MedicalRecord(Base):
    __tablename__ = "medical_records"

    record_id = Column(BigInteger, primary_key=True, autoincrement=False)
    patient_id = Column(BigInteger, ForeignKey("patients.patient_id"), nullable=False, index=True)
    doctor_id = Column(BigInteger, ForeignKey("doctors.doctor_id"), nullable=False, index=True)

    # Clinical notes
    diagnosis = Column(Text, nullable=False)
    symptoms = Column(Text, nullable=True)
    treatment = Column(Text, nullable=True)
    prescribed_medications = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    follow_up_date = Column(Date, nullable=True)

    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    patient = relationship("Patient", back_populates="medical_records")
    doctor = relationship("Doctor", back_populates="medical_records")

    def __repr__(self):
        return f"<MedicalRecord(id={self.record_id}, patient_id={self.patient_id})>"
