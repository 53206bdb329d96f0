import logging

from fastapi import FastAPI, HTTPException, Depends
from uuid import UUID
from typing import List

from api.schemas import (
    # Settings
    SettingsResponse, UpdateSettingsRequest,
    # Booking options
    BookingOptionsRequest, BookingOptionsResponse, BookingOptionSchema, SegmentSchema, PriceBreakdownSchema,
    # Reservations
    CreateReservationRequest, MergeReservationsRequest, ReservationResponse, EarlyCheckoutResponse,
)

from application.services import BookingOptionsService, CompositeReservationService, SettingsService
from infrastructure.config import settings
from infrastructure.repositories.in_memory_repositories import (
    InMemoryClientRepository, InMemoryPaymentRepository, InMemoryReservationRepository,
    InMemoryRoomRepository, InMemoryRoomTypeRepository, InMemorySettingsRepository,
)
from domain.entities import Reservation
from domain.enums import CalculationMode, ReservationStatus
from domain.exceptions import ConflictError, NotFoundError
from domain.value_objects import BookingOption, DateWindow, PriceBreakdown, Segment

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    description="Stay resolution and composite reservations: single, same-type and mixed room options",
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
)

# Initialize repositories
room_type_repo = InMemoryRoomTypeRepository()
room_repo = InMemoryRoomRepository()
reservation_repo = InMemoryReservationRepository()
payment_repo = InMemoryPaymentRepository()
client_repo = InMemoryClientRepository()
settings_repo = InMemorySettingsRepository()

# Dependency injection
def get_settings_service() -> SettingsService:
    return SettingsService(settings_repo, settings.default_booking_settings())

def get_booking_options_service(
    settings_service: SettingsService = Depends(get_settings_service)
) -> BookingOptionsService:
    return BookingOptionsService(settings_service, room_type_repo, room_repo, reservation_repo)

def get_reservation_service(
    settings_service: SettingsService = Depends(get_settings_service)
) -> CompositeReservationService:
    return CompositeReservationService(
        reservation_repo, room_type_repo, room_repo, payment_repo, client_repo, settings_service
    )

# ============================================================================
# HEALTH & ENUM REFERENCE ENDPOINTS
# ============================================================================

@app.get("/api/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "message": "API is running"}

@app.get("/api/enums/calculation-mode", tags=["Enum Reference"])
async def get_calculation_modes():
    """Get all CalculationMode enum values"""
    return {
        "values": [f"{item.name}" for item in CalculationMode],
        "description": "Calculation mode values: BY_DAY (arrival and departure day billed), BY_NIGHT (nights billed)"
    }

@app.get("/api/enums/reservation-status", tags=["Enum Reference"])
async def get_reservation_statuses():
    """Get all ReservationStatus enum values"""
    return {
        "values": [f"{item.name}" for item in ReservationStatus],
        "description": "Reservation status values: PENDING, AWAITING_PAYMENT, CONFIRMED, CHECKED_IN, CHECKED_OUT, CANCELLED"
    }

# ============================================================================
# SETTINGS ENDPOINTS
# ============================================================================

@app.get("/api/settings", response_model=SettingsResponse, tags=["Settings"])
async def get_settings(service: SettingsService = Depends(get_settings_service)):
    """Get the active booking settings"""
    return _settings_to_response(await service.get_active_settings())

@app.put("/api/settings", response_model=SettingsResponse, tags=["Settings"])
async def update_settings(
    request: UpdateSettingsRequest,
    service: SettingsService = Depends(get_settings_service)
):
    """Update the booking settings"""
    booking_settings = await service.update_settings(
        calculation_mode=request.calculation_mode,
        check_in_time=request.check_in_time,
        check_out_time=request.check_out_time
    )
    return _settings_to_response(booking_settings)

# ============================================================================
# BOOKING OPTION ENDPOINTS
# ============================================================================

@app.post("/api/booking-options", response_model=BookingOptionsResponse, tags=["Booking Options"])
async def find_booking_options(
    request: BookingOptionsRequest,
    service: BookingOptionsService = Depends(get_booking_options_service)
):
    """Find single, same-type and mixed options for a stay"""
    try:
        result = await service.find_options(
            check_in=request.check_in,
            check_out=request.check_out,
            occupant_count=request.occupant_count,
            discount_percent=request.discount_percent
        )
        return BookingOptionsResponse(
            check_in=result.window.start,
            check_out=result.window.end,
            occupant_count=result.occupant_count,
            single_options=[_option_to_response(o) for o in result.single_options],
            same_type_options=[_option_to_response(o) for o in result.same_type_options],
            mixed_options=[_option_to_response(o) for o in result.mixed_options],
            total_options=result.total_options,
            has_perfect_options=result.has_perfect_options
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

# ============================================================================
# RESERVATION ENDPOINTS
# ============================================================================

@app.post("/api/reservations", response_model=ReservationResponse, status_code=201, tags=["Reservations"])
async def create_reservation(
    request: CreateReservationRequest,
    service: CompositeReservationService = Depends(get_reservation_service)
):
    """Book a booking option (one segment: simple reservation, more: composite)"""
    try:
        reservation = await service.create_from_option(
            option=_option_from_request(request.option),
            client_id=request.client_id,
            occupant_ids=request.occupant_ids,
            special_requests=request.special_requests
        )
        return await _reservation_with_children(reservation, service)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.post("/api/reservations/merge", response_model=ReservationResponse, status_code=201, tags=["Reservations"])
async def merge_reservations(
    request: MergeReservationsRequest,
    service: CompositeReservationService = Depends(get_reservation_service)
):
    """Merge adjacent reservations of one client into a composite reservation"""
    try:
        reservation = await service.merge_existing(request.reservation_ids)
        return await _reservation_with_children(reservation, service)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.get("/api/reservations/{reservation_id}", response_model=ReservationResponse, tags=["Reservations"])
async def get_reservation(
    reservation_id: UUID,
    service: CompositeReservationService = Depends(get_reservation_service)
):
    """Get reservation by ID, with its segments when composite"""
    try:
        reservation = await service.get_reservation(reservation_id)
        return await _reservation_with_children(reservation, service)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Reservation not found")

@app.post("/api/reservations/{reservation_id}/approve-payment", response_model=ReservationResponse, tags=["Reservations"])
async def approve_payment(
    reservation_id: UUID,
    service: CompositeReservationService = Depends(get_reservation_service)
):
    """Allow the client to pay (30% prepayment)"""
    try:
        reservation = await service.approve_payment(reservation_id)
        return await _reservation_with_children(reservation, service)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Reservation not found")
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))

@app.post("/api/reservations/{reservation_id}/confirm-payment", response_model=ReservationResponse, tags=["Reservations"])
async def confirm_payment(
    reservation_id: UUID,
    service: CompositeReservationService = Depends(get_reservation_service)
):
    """Confirm reservation after payment"""
    try:
        reservation = await service.confirm_payment(reservation_id)
        return await _reservation_with_children(reservation, service)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Reservation not found")
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))

@app.post("/api/reservations/{reservation_id}/check-in", response_model=ReservationResponse, tags=["Reservations"])
async def check_in(
    reservation_id: UUID,
    service: CompositeReservationService = Depends(get_reservation_service)
):
    """Check in guest"""
    try:
        reservation = await service.check_in(reservation_id)
        return await _reservation_with_children(reservation, service)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Reservation not found")
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))

@app.post("/api/reservations/{reservation_id}/check-out", response_model=ReservationResponse, tags=["Reservations"])
async def check_out(
    reservation_id: UUID,
    service: CompositeReservationService = Depends(get_reservation_service)
):
    """Check out guest, charging the units actually stayed"""
    try:
        reservation = await service.check_out(reservation_id)
        return await _reservation_with_children(reservation, service)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Reservation not found")
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))

@app.post("/api/reservations/{reservation_id}/cancel", response_model=ReservationResponse, tags=["Reservations"])
async def cancel_reservation(
    reservation_id: UUID,
    service: CompositeReservationService = Depends(get_reservation_service)
):
    """Cancel reservation and its open segments"""
    try:
        reservation = await service.cancel(reservation_id)
        return await _reservation_with_children(reservation, service)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Reservation not found")
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))

@app.get("/api/reservations/{reservation_id}/early-checkout", response_model=EarlyCheckoutResponse, tags=["Reservations"])
async def preview_early_checkout(
    reservation_id: UUID,
    service: CompositeReservationService = Depends(get_reservation_service)
):
    """Preview the money side of checking out today"""
    try:
        calculation = await service.preview_early_checkout(reservation_id)
        return EarlyCheckoutResponse(**calculation.model_dump())
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Reservation not found")
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))

# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _settings_to_response(booking_settings) -> SettingsResponse:
    """Convert BookingSettings to SettingsResponse"""
    return SettingsResponse(
        calculation_mode=booking_settings.calculation_mode,
        check_in_time=booking_settings.check_in_time,
        check_out_time=booking_settings.check_out_time
    )

def _option_to_response(option: BookingOption) -> BookingOptionSchema:
    """Convert BookingOption to BookingOptionSchema"""
    return BookingOptionSchema(
        option_type=option.option_type,
        segments=[
            SegmentSchema(
                room_type_id=s.room_type_id,
                room_type_name=s.room_type_name,
                check_in=s.window.start,
                check_out=s.window.end,
                units=s.units,
                base_price=s.base_price,
                additional_occupant_price=s.additional_occupant_price,
                price=s.price,
                assigned_room_id=s.assigned_room_id
            )
            for s in option.segments
        ],
        total_price=option.total_price,
        total_units=option.total_units,
        transfer_count=option.transfer_count,
        priority=option.priority,
        warning=option.warning,
        price_breakdown=PriceBreakdownSchema(**option.price_breakdown.model_dump())
    )

def _option_from_request(option: BookingOptionSchema) -> BookingOption:
    """Convert a posted-back option to the domain BookingOption (prices are recomputed on booking)"""
    return BookingOption(
        option_type=option.option_type,
        segments=[
            Segment(
                room_type_id=s.room_type_id,
                room_type_name=s.room_type_name,
                window=DateWindow(start=s.check_in, end=s.check_out),
                units=s.units,
                base_price=s.base_price,
                additional_occupant_price=s.additional_occupant_price,
                price=s.price,
                assigned_room_id=s.assigned_room_id
            )
            for s in option.segments
        ],
        total_price=option.total_price,
        total_units=option.total_units,
        transfer_count=option.transfer_count,
        priority=option.priority,
        warning=option.warning,
        price_breakdown=PriceBreakdown(**option.price_breakdown.model_dump())
    )

def _reservation_to_response(reservation: Reservation, children: List[Reservation] = ()) -> ReservationResponse:
    """Convert Reservation entity to ReservationResponse"""
    return ReservationResponse(
        reservation_id=reservation.reservation_id,
        client_id=reservation.client_id,
        room_type_id=reservation.room_type_id,
        assigned_room_id=reservation.assigned_room_id,
        check_in=reservation.check_in,
        check_out=reservation.check_out,
        occupant_count=reservation.occupant_count,
        occupant_ids=reservation.occupant_ids,
        status=reservation.status.value,
        base_price=reservation.base_price,
        additional_occupant_price=reservation.additional_occupant_price,
        total_price=reservation.total_price,
        discount_percent=reservation.discount_percent,
        discount_amount=reservation.discount_amount,
        required_prepayment=reservation.required_prepayment,
        special_requests=reservation.special_requests,
        is_composite=reservation.is_composite,
        parent_reservation_id=reservation.parent_reservation_id,
        segment_order=reservation.segment_order,
        is_early_checkout=reservation.is_early_checkout,
        original_check_out=reservation.original_check_out,
        created_at=reservation.created_at,
        modified_at=reservation.modified_at,
        version=reservation.version,
        children=[_reservation_to_response(c) for c in children]
    )

async def _reservation_with_children(
    reservation: Reservation, service: CompositeReservationService
) -> ReservationResponse:
    children = await service.get_children(reservation.reservation_id)
    return _reservation_to_response(reservation, children)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
