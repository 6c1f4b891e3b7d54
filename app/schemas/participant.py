from pydantic import AliasChoices, BaseModel, EmailStr, Field
from typing import Any, Dict, List, Optional
from datetime import datetime
from decimal import Decimal
from uuid import UUID
from app.models.participant import ParticipantStatus, PaymentStatus

class ParticipantBase(BaseModel):
    name: str
    email: EmailStr
    employee_id: Optional[str] = None
    phone: Optional[str] = None
    qr_email: Optional[EmailStr] = None

class ParticipantCreate(ParticipantBase):
    status: ParticipantStatus = ParticipantStatus.TENTATIVE
    metadata: Optional[Dict[str, Any]] = None
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    payment_amount: Optional[Decimal] = None
    payment_date: Optional[datetime] = None

class ParticipantUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    employee_id: Optional[str] = None
    phone: Optional[str] = None
    qr_email: Optional[EmailStr] = None
    status: Optional[ParticipantStatus] = None
    metadata: Optional[Dict[str, Any]] = None
    payment_status: Optional[PaymentStatus] = None
    payment_amount: Optional[Decimal] = None
    payment_date: Optional[datetime] = None

class Participant(ParticipantBase):
    id: UUID
    event_id: UUID
    status: str
    qr_code: str
    qr_code_generated_at: datetime
    # Stored on the model as ``extra_metadata``
    metadata: Optional[Dict[str, Any]] = Field(
        default=None, validation_alias=AliasChoices("extra_metadata", "metadata")
    )
    payment_status: str
    payment_amount: Optional[Decimal] = None
    payment_date: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class ParticipantList(BaseModel):
    items: List[Participant]
    total: int
    page: int
    per_page: int

class BulkCreateError(BaseModel):
    index: int
    email: Optional[str] = None
    error: str

class BulkCreateResult(BaseModel):
    created_count: int
    failed_count: int
    errors: List[BulkCreateError] = []

class ParticipantStats(BaseModel):
    total_count: int = 0
    confirmed_count: int = 0
    tentative_count: int = 0
    cancelled_count: int = 0
    declined_count: int = 0
    paid_count: int = 0
    unpaid_count: int = 0
    total_payment_amount: float = 0.0

class ParticipantQRResponse(BaseModel):
    qr_token: str
    format: str
    qr_data_url: str  # Base64 encoded QR code image
    distribution_url: str
