from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import date, datetime
from decimal import Decimal

class InvoiceCreate(BaseModel):
    patient_id: int
    appointment_id: Optional[int] = None
    invoice_date: Optional[date] = None
    amount: Optional[Decimal] = Field(None, ge=0)
    discount: Decimal = Field(Decimal("0"), ge=0)
    payment_method: Optional[str] = None
    notes: Optional[str] = None

class InvoiceUpdate(BaseModel):
    patient_id: Optional[int] = None
    appointment_id: Optional[int] = None
    invoice_date: Optional[date] = None
    amount: Optional[Decimal] = Field(None, ge=0)
    discount: Optional[Decimal] = Field(None, ge=0)
    payment_method: Optional[str] = None
    notes: Optional[str] = None

class PaymentUpdate(BaseModel):
    # Range checks happen in the billing service so they map to 400
    paid_amount: Decimal
    payment_method: Optional[str] = None

class InvoiceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    invoice_id: int
    invoice_number: str
    patient_id: int
    appointment_id: Optional[int] = None
    invoice_date: date
    amount: Decimal
    discount: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    remaining_amount: Decimal
    payment_status: str
    payment_method: Optional[str] = None
    payment_date: Optional[date] = None
    notes: Optional[str] = None
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
