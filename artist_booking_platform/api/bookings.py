"""
FastAPI routes for the booking lifecycle.

Errors raised by the lifecycle service propagate to ``ErrorHandlerMiddleware``,
which maps them to status codes.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, status

from ..domain.transition import Actor, TransitionRequest
from ..models.user import ActorRole
from ..schemas.booking import (
    BookingCancelRequest,
    BookingCreateRequest,
    BookingHistoryResponse,
    BookingResponse,
    BookingStatusUpdateRequest,
)
from ..services.booking_service import BookingLifecycleService
from ..utils.dependencies import get_current_actor, get_lifecycle_service
from ..utils.exceptions import AuthorizationError, ValidationError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    request: BookingCreateRequest,
    actor: Actor = Depends(get_current_actor),
    service: BookingLifecycleService = Depends(get_lifecycle_service)
):
    """
    Request a booking with an artist.

    Customers book for themselves. Admins book on behalf of the customer named
    in ``customer_id``.
    """
    if actor.role == ActorRole.CUSTOMER:
        if request.customer_id is not None and request.customer_id != actor.id:
            raise AuthorizationError("Customers can only book for themselves")
        customer_id = actor.id
    elif actor.role == ActorRole.ADMIN:
        if request.customer_id is None:
            raise ValidationError(
                "Admins must name the customer",
                field_errors={"customer_id": ["A customer is required"]}
            )
        customer_id = request.customer_id
    else:
        raise AuthorizationError("Only customers and admins can create bookings", required_permission="customer")

    booking = await service.create(
        customer_id=customer_id,
        artist_id=request.artist_id,
        service_type=request.service_type,
        scheduled_date=request.scheduled_date,
        total_amount=request.total_amount,
        occasion=request.occasion,
        actor_id=actor.id,
    )
    return BookingResponse.model_validate(booking)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: BookingLifecycleService = Depends(get_lifecycle_service)
):
    """Get a booking the caller is a party to."""
    booking = await service.get(booking_id, actor)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/accept", response_model=BookingResponse)
async def accept_booking(
    booking_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: BookingLifecycleService = Depends(get_lifecycle_service)
):
    """Artist accepts a pending booking; the payment is authorized."""
    booking = await service.accept(booking_id, actor)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/decline", response_model=BookingResponse)
async def decline_booking(
    booking_id: UUID,
    request: BookingCancelRequest = BookingCancelRequest(),
    actor: Actor = Depends(get_current_actor),
    service: BookingLifecycleService = Depends(get_lifecycle_service)
):
    """Artist declines a pending booking."""
    booking = await service.decline(booking_id, actor, request.reason)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: UUID,
    request: BookingCancelRequest = BookingCancelRequest(),
    actor: Actor = Depends(get_current_actor),
    service: BookingLifecycleService = Depends(get_lifecycle_service)
):
    """Cancel a booking; any authorized payment is voided."""
    booking = await service.cancel(booking_id, actor, request.reason)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/start", response_model=BookingResponse)
async def start_booking(
    booking_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: BookingLifecycleService = Depends(get_lifecycle_service)
):
    booking = await service.start(booking_id, actor)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/complete", response_model=BookingResponse)
async def complete_booking(
    booking_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: BookingLifecycleService = Depends(get_lifecycle_service)
):
    booking = await service.complete(booking_id, actor)
    return BookingResponse.model_validate(booking)


@router.patch("/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status(
    booking_id: UUID,
    request: BookingStatusUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    service: BookingLifecycleService = Depends(get_lifecycle_service)
):
    """
    Move a booking to any status the caller may set.

    Requesting the current status succeeds and changes nothing.
    """
    booking = await service.transition(
        TransitionRequest.for_actor(booking_id, actor, request.status, request.reason)
    )
    return BookingResponse.model_validate(booking)


@router.get("/{booking_id}/history", response_model=BookingHistoryResponse)
async def get_booking_history(
    booking_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: BookingLifecycleService = Depends(get_lifecycle_service)
):
    """Status changes in the order they happened."""
    history = await service.history(booking_id, actor)
    return BookingHistoryResponse(
        booking_id=booking_id,
        status=history[-1]["status"],
        history=history,
    )
