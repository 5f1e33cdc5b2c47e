from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import date, datetime

class MedicalRecordCreate(BaseModel):
    patient_id: int
    doctor_id: Optional[int] = None
    diagnosis: str = Field(..., min_length=1)
    symptoms: Optional[str] = None
    treatment: Optional[str] = None
    prescribed_medications: Optional[str] = None
    notes: Optional[str] = None
    follow_up_date: Optional[date] = None

class MedicalRecordUpdate(BaseModel):
    diagnosis: Optional[str] = Field(None, min_length=1)
    symptoms: Optional[str] = None
    treatment: Optional[str] = None
    prescribed_medications: Optional[str] = None
    notes: Optional[str] = None
    follow_up_date: Optional[date] = None

class MedicalRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    record_id: int
    patient_id: int
    doctor_id: int
    diagnosis: str
    symptoms: Optional[str] = None
    treatment: Optional[str] = None
    prescribed_medications: Optional[str] = None
    notes: Optional[str] = None
    follow_up_date: Optional[date] = None
    created_at: Optional[datetime] = None
