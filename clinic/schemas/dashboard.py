from pydantic import BaseModel
from typing import Dict, List
from decimal import Decimal

class MonthlyRevenue(BaseModel):
    month: str  # YYYY-MM
    total_invoices: int
    total_revenue: Decimal
    total_paid: Decimal
    total_remaining: Decimal
    paid_count: int
    partial_count: int
    unpaid_count: int

class DashboardStats(BaseModel):
    patients: int
    doctors: int
    appointments: int
    appointments_by_status: Dict[str, int]
    invoices: int
    total_revenue: Decimal
    total_paid: Decimal
    total_remaining: Decimal
    monthly_revenue: List[MonthlyRevenue]
