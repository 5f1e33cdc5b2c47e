from sqlalchemy import Column, Integer, BigInteger, String, DateTime, Boolean, Text, Numeric
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..core.database import Base

class Doctor(Base):
    __tablename__ = "doctors"

    doctor_id = Column(BigInteger, primary_key=True, autoincrement=False)

    # Personal information
    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    phone = Column(String(30), nullable=False)

    # Professional information
    specialty = Column(String(100), nullable=False, index=True)
    experience = Column(Integer, nullable=True)
    qualification = Column(String(255), nullable=True)
    image = Column(String(500), nullable=True)
    bio = Column(Text, nullable=True)

    # Fees
    consultation_fee = Column(Numeric(10, 2), nullable=True)
    follow_up_fee = Column(Numeric(10, 2), nullable=True)

    # Availability
    is_available = Column(Boolean, default=True)
    availability_updated_at = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    appointments = relationship("Appointment", back_populates="doctor")
    medical_records = relationship("MedicalRecord", back_populates="doctor")

    def __repr__(self):
        return f"<Doctor(id={self.doctor_id}, name='{self.name}', specialty='{self.specialty}')>"
