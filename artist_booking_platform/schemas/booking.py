"""
Pydantic schemas for booking-related API requests and responses.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from ..models.booking import BookingStatus


class BookingCreateRequest(BaseModel):
    """Schema for requesting a new booking."""

    artist_id: Optional[UUID] = Field(None, description="Artist asked to perform the service")
    customer_id: Optional[UUID] = Field(
        None, description="Customer the booking is for; only admins may set it"
    )
    service_type: str = Field(..., max_length=100, description="Kind of service requested")
    occasion: Optional[str] = Field(None, max_length=100, description="Optional occasion, e.g. wedding")
    scheduled_date: datetime = Field(..., description="Appointment time; must be in the future")
    total_amount: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2, description="Price of the service")

    @field_validator('service_type')
    @classmethod
    def validate_service_type(cls, v):
        if not v.strip():
            raise ValueError("Service type is required")
        return v.strip()


class BookingCancelRequest(BaseModel):
    """Schema for cancelling or declining a booking."""

    reason: Optional[str] = Field(None, max_length=500, description="Optional reason shown in the audit trail")


class BookingStatusUpdateRequest(BaseModel):
    """Schema for the generic status update."""

    status: BookingStatus = Field(..., description="Requested status")
    reason: Optional[str] = Field(None, max_length=500, description="Optional reason for the change")


class StatusHistoryEntryResponse(BaseModel):
    """One recorded status change."""

    status: BookingStatus
    timestamp: datetime


class BookingResponse(BaseModel):
    """Schema for booking responses."""

    id: UUID
    booking_number: str
    customer_id: UUID
    artist_id: UUID
    service_type: str
    occasion: Optional[str] = None
    scheduled_date: datetime
    total_amount: Decimal
    status: BookingStatus
    status_history: List[StatusHistoryEntryResponse] = []
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BookingHistoryResponse(BaseModel):
    """Schema for a booking's status history."""

    booking_id: UUID
    status: BookingStatus
    history: List[StatusHistoryEntryResponse]
