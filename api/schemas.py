"""API Schemas - Request and Response DTOs"""
from pydantic import BaseModel, Field
from datetime import date, datetime, time
from decimal import Decimal
from uuid import UUID
from typing import List, Optional

from domain.enums import CalculationMode, OptionType


# ============================================================================
# SETTINGS SCHEMAS
# ============================================================================

class SettingsResponse(BaseModel):
    """Booking settings response DTO"""
    calculation_mode: CalculationMode
    check_in_time: time
    check_out_time: time


class UpdateSettingsRequest(BaseModel):
    """Update booking settings request DTO"""
    calculation_mode: Optional[CalculationMode] = None
    check_in_time: Optional[time] = None
    check_out_time: Optional[time] = None


# ============================================================================
# BOOKING OPTION SCHEMAS
# ============================================================================

class BookingOptionsRequest(BaseModel):
    """Find booking options request DTO"""
    check_in: date
    check_out: date
    occupant_count: int
    discount_percent: Decimal = Decimal("0")


class SegmentSchema(BaseModel):
    """One segment of a booking option"""
    room_type_id: str
    room_type_name: str = ""
    check_in: date
    check_out: date
    units: int = Field(ge=1, default=1)
    base_price: Decimal = Decimal("0")
    additional_occupant_price: Decimal = Decimal("0")
    price: Decimal = Decimal("0")
    assigned_room_id: Optional[str] = None


class PriceBreakdownSchema(BaseModel):
    """Price breakdown DTO"""
    base_price: Decimal = Decimal("0")
    additional_occupant_price: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0")
    discount_percent: Decimal = Decimal("0")
    unit_count: int = 0
    occupant_count: int = 0


class BookingOptionSchema(BaseModel):
    """Booking option DTO, returned by the search and posted back to book it"""
    option_type: OptionType
    segments: List[SegmentSchema]
    total_price: Decimal = Decimal("0")
    total_units: int = 0
    transfer_count: int = 0
    priority: int = 0
    warning: Optional[str] = None
    price_breakdown: PriceBreakdownSchema = PriceBreakdownSchema()


class BookingOptionsResponse(BaseModel):
    """Booking options response DTO"""
    check_in: date
    check_out: date
    occupant_count: int
    single_options: List[BookingOptionSchema]
    same_type_options: List[BookingOptionSchema]
    mixed_options: List[BookingOptionSchema]
    total_options: int
    has_perfect_options: bool


# ============================================================================
# RESERVATION SCHEMAS
# ============================================================================

class CreateReservationRequest(BaseModel):
    """Create reservation from a booking option request DTO"""
    client_id: UUID
    occupant_ids: List[UUID] = []
    option: BookingOptionSchema
    special_requests: Optional[str] = None


class MergeReservationsRequest(BaseModel):
    """Merge reservations request DTO"""
    reservation_ids: List[UUID]


class ReservationResponse(BaseModel):
    """Reservation response DTO"""
    reservation_id: UUID
    client_id: UUID
    room_type_id: str
    assigned_room_id: Optional[str] = None
    check_in: date
    check_out: date
    occupant_count: int
    occupant_ids: List[UUID]
    status: str
    base_price: Decimal
    additional_occupant_price: Decimal
    total_price: Decimal
    discount_percent: Decimal
    discount_amount: Decimal
    required_prepayment: Decimal
    special_requests: Optional[str] = None
    is_composite: bool
    parent_reservation_id: Optional[UUID] = None
    segment_order: Optional[int] = None
    is_early_checkout: bool
    original_check_out: Optional[date] = None
    created_at: datetime
    modified_at: datetime
    version: int
    children: List["ReservationResponse"] = []


ReservationResponse.model_rebuild()


class EarlyCheckoutResponse(BaseModel):
    """Early checkout preview response DTO"""
    reservation_id: UUID
    original_check_out: date
    actual_check_out: date
    total_units: int
    units_stayed: int
    units_unused: int
    total_price: Decimal
    paid_amount: Decimal
    price_per_unit: Decimal
    amount_for_stayed_units: Decimal
    refund_amount: Decimal
    is_early_checkout: bool
    message: str
