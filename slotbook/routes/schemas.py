from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, field_validator


class AppointmentResponse(BaseModel):
    id: str
    patient_id: str
    provider_id: str
    slot_date: date
    slot_time: str
    amount: Decimal
    cancelled: bool
    paid: bool
    completed: bool
    payment_reference: str | None = None
    provider_snapshot: dict | None = None
    patient_snapshot: dict | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AppointmentActionResponse(BaseModel):
    success: bool
    message: str
    appointment: AppointmentResponse


class ProviderResponse(BaseModel):
    id: str
    name: str
    email: str | None = None
    speciality: str | None = None
    fee: Decimal
    available: bool

    class Config:
        from_attributes = True


class CreateAppointmentRequest(BaseModel):
    provider_id: str
    slot_date: str
    slot_time: str
    patient_id: str | None = None

    @field_validator('provider_id', 'slot_date', 'slot_time')
    @classmethod
    def validate_required(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Missing booking data.')
        return normalized


class UpdateFeeRequest(BaseModel):
    fee: Decimal

    @field_validator('fee')
    @classmethod
    def validate_fee(cls, value: Decimal) -> Decimal:
        if value < 0:
            raise ValueError('Fee cannot be negative.')
        return value


class UpdateAvailabilityRequest(BaseModel):
    available: bool


class CreatePaymentOrderRequest(BaseModel):
    appointment_id: str


class VerifyPaymentRequest(BaseModel):
    razorpay_order_id: str


class VerifyPaymentResponse(BaseModel):
    success: bool
    paid: bool
    message: str


class DashboardResponse(BaseModel):
    provider_count: int
    patient_count: int
    appointment_count: int
    latest: list[AppointmentResponse]


class ProviderDashboardResponse(BaseModel):
    earnings: Decimal
    appointment_count: int
    patient_count: int
    latest: list[AppointmentResponse]


class ReleasedSlotResponse(BaseModel):
    provider_id: str
    slot_date: date
    slot_time: str


class SweepResponse(BaseModel):
    released: list[ReleasedSlotResponse]
    resolved_records: int
