from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Optional
from datetime import date, datetime
from decimal import Decimal

class DoctorBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    phone: str = Field(..., min_length=3, max_length=30)
    specialty: str = Field(..., min_length=1, max_length=100)
    experience: Optional[int] = Field(None, ge=0)
    qualification: Optional[str] = None
    image: Optional[str] = None
    bio: Optional[str] = None
    consultation_fee: Optional[Decimal] = Field(None, ge=0)
    follow_up_fee: Optional[Decimal] = Field(None, ge=0)
    is_available: bool = True

class DoctorCreate(DoctorBase):
    pass

class DoctorUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    specialty: Optional[str] = None
    experience: Optional[int] = Field(None, ge=0)
    qualification: Optional[str] = None
    image: Optional[str] = None
    bio: Optional[str] = None
    consultation_fee: Optional[Decimal] = Field(None, ge=0)
    follow_up_fee: Optional[Decimal] = Field(None, ge=0)
    is_available: Optional[bool] = None

class DoctorResponse(DoctorBase):
    model_config = ConfigDict(from_attributes=True)

    doctor_id: int
    email: str
    availability_updated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

class PatientBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    phone: str = Field(..., min_length=3, max_length=30)
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    address: Optional[str] = None
    occupation: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_number: Optional[str] = None
    primary_physician: Optional[int] = None
    insurance_provider: Optional[str] = None
    insurance_policy_number: Optional[str] = None
    allergies: Optional[str] = None
    current_medication: Optional[str] = None
    family_medical_history: Optional[str] = None
    past_medical_history: Optional[str] = None
    identification_type: Optional[str] = None
    identification_number: Optional[str] = None
    privacy_consent: bool = False
    treatment_consent: bool = False
    disclosure_consent: bool = False

class PatientCreate(PatientBase):
    pass

class PatientUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    address: Optional[str] = None
    occupation: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_number: Optional[str] = None
    primary_physician: Optional[int] = None
    insurance_provider: Optional[str] = None
    insurance_policy_number: Optional[str] = None
    allergies: Optional[str] = None
    current_medication: Optional[str] = None
    family_medical_history: Optional[str] = None
    past_medical_history: Optional[str] = None
    identification_type: Optional[str] = None
    identification_number: Optional[str] = None
    privacy_consent: Optional[bool] = None
    treatment_consent: Optional[bool] = None
    disclosure_consent: Optional[bool] = None

class PatientResponse(PatientBase):
    model_config = ConfigDict(from_attributes=True)

    patient_id: int
    email: str
    created_at: Optional[datetime] = None
