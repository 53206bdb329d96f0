"""Domain Value Objects"""
from pydantic import BaseModel, Field, validator
from datetime import date, datetime, time
from decimal import Decimal
from uuid import UUID, uuid4
from typing import List, Optional

from domain.enums import CalculationMode, OptionType, PaymentStatus


def _as_calendar_date(value):
    """Drop the time component (and with it any time zone) from a datetime"""
    if isinstance(value, datetime):
        return value.date()
    return value


class DateWindow(BaseModel):
    """Value Object for a requested or booked date window"""
    start: date
    end: date

    @validator('start', 'end', pre=True)
    def strip_time(cls, v):
        return _as_calendar_date(v)

    @validator('end')
    def end_after_start(cls, v, values):
        if 'start' in values and v <= values['start']:
            raise ValueError('End date must be after start date')
        return v

    class Config:
        frozen = True


class BookingSettings(BaseModel):
    """Snapshot of the deployment-wide booking settings"""
    calculation_mode: CalculationMode = CalculationMode.BY_DAY
    check_in_time: time = time(15, 0)
    check_out_time: time = time(12, 0)

    class Config:
        frozen = True


class RoomTypeCapacity(BaseModel):
    """Room type as seen by the search: capacity and pricing"""
    room_type_id: str
    name: str
    max_occupants: int = Field(ge=1)
    price_per_unit: Decimal = Field(ge=0)
    price_per_additional_occupant: Decimal = Field(ge=0, default=Decimal("0"))
    is_active: bool = True

    class Config:
        frozen = True


class Room(BaseModel):
    """Physical room of a room type"""
    room_id: str
    room_number: str
    room_type_id: str
    is_active: bool = True

    class Config:
        frozen = True


class ExistingBookingInterval(BaseModel):
    """Occupancy of an existing reservation, as returned by the booking query"""
    reservation_id: UUID
    room_type_id: str
    check_in: date
    check_out: date
    assigned_room_id: Optional[str] = None

    class Config:
        frozen = True


class Segment(BaseModel):
    """Contiguous part of a stay spent in one room type"""
    room_type_id: str
    room_type_name: str
    window: DateWindow
    units: int = Field(ge=1)
    base_price: Decimal
    additional_occupant_price: Decimal = Decimal("0")
    price: Decimal
    assigned_room_id: Optional[str] = None

    class Config:
        frozen = True


class PriceBreakdown(BaseModel):
    """Price components of a booking option"""
    base_price: Decimal = Decimal("0")
    additional_occupant_price: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0")
    discount_percent: Decimal = Decimal("0")
    unit_count: int = 0
    occupant_count: int = 0


class BookingOption(BaseModel):
    """One way of housing the requested stay"""
    option_type: OptionType
    segments: List[Segment]
    total_price: Decimal
    total_units: int
    transfer_count: int = 0
    priority: int = 0
    warning: Optional[str] = None
    price_breakdown: PriceBreakdown = Field(default_factory=PriceBreakdown)

    @property
    def window(self) -> DateWindow:
        """Window spanned from the first to the last segment"""
        return DateWindow(start=self.segments[0].window.start, end=self.segments[-1].window.end)

    def room_type_ids(self) -> List[str]:
        """Distinct room types used, in order of first appearance"""
        seen: List[str] = []
        for segment in self.segments:
            if segment.room_type_id not in seen:
                seen.append(segment.room_type_id)
        return seen


class BookingOptionsResult(BaseModel):
    """Options found for one request, bucketed by family"""
    window: DateWindow
    occupant_count: int
    single_options: List[BookingOption] = []
    same_type_options: List[BookingOption] = []
    mixed_options: List[BookingOption] = []
    total_options: int = 0
    has_perfect_options: bool = False


class Payment(BaseModel):
    """Payment recorded against a reservation (refunds carry negative amounts)"""
    payment_id: UUID = Field(default_factory=uuid4)
    reservation_id: UUID
    amount: Decimal
    status: PaymentStatus = PaymentStatus.COMPLETED
    created_at: datetime = Field(default_factory=datetime.utcnow)


class EarlyCheckoutCalculation(BaseModel):
    """Read-only preview of the money side of an early checkout"""
    reservation_id: Optional[UUID] = None
    original_check_out: Optional[date] = None
    actual_check_out: Optional[date] = None
    total_units: int
    units_stayed: int
    units_unused: int
    total_price: Decimal
    paid_amount: Decimal
    price_per_unit: Decimal
    amount_for_stayed_units: Decimal
    refund_amount: Decimal
    is_early_checkout: bool
    message: str = ""
