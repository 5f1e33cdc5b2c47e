from pydantic import BaseModel, ConfigDict, Field
from typing import Literal, Optional
from datetime import date, datetime
from decimal import Decimal

AppointmentStatusValue = Literal["pending", "scheduled", "confirmed", "completed", "cancelled"]
AppointmentTypeValue = Literal["consultation", "follow_up", "emergency"]

class AppointmentCreate(BaseModel):
    patient_id: int
    doctor_id: int
    schedule: datetime
    reason: str = Field(..., min_length=1)
    note: Optional[str] = None
    status: AppointmentStatusValue = "pending"
    appointment_type: AppointmentTypeValue = "consultation"
    payment_method: Optional[str] = None

class AppointmentUpdate(BaseModel):
    patient_id: Optional[int] = None
    doctor_id: Optional[int] = None
    schedule: Optional[datetime] = None
    reason: Optional[str] = Field(None, min_length=1)
    note: Optional[str] = None
    status: Optional[AppointmentStatusValue] = None
    cancellation_reason: Optional[str] = None
    appointment_type: Optional[AppointmentTypeValue] = None
    payment_method: Optional[str] = None

class AppointmentStatusUpdate(BaseModel):
    # Free text here; the route normalizes and rejects unknown values with 400
    status: str = Field(..., min_length=1)

class AppointmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    appointment_id: int
    patient_id: int
    doctor_id: int
    schedule: datetime
    schedule_at: Optional[str] = None
    reason: str
    note: Optional[str] = None
    status: str
    cancellation_reason: Optional[str] = None
    appointment_type: str
    total_amount: Decimal
    paid_amount: Decimal
    payment_status: str
    payment_method: Optional[str] = None
    payment_date: Optional[date] = None
    created_at: Optional[datetime] = None
