"""Domain Entities - Aggregates"""
from pydantic import BaseModel, Field, validator
from uuid import UUID, uuid4
from datetime import datetime, date
from typing import Optional, List
from decimal import Decimal

from domain.calculation import apply_discount, normalize_discount, round_money
from domain.enums import ReservationStatus
from domain.exceptions import ConflictError, ValidationError
from domain.value_objects import DateWindow, ExistingBookingInterval

PREPAYMENT_RATE = Decimal("0.3")


class Reservation(BaseModel):
    """Reservation Aggregate Root Entity

    A composite reservation is a parent row (``is_composite=True``, no room)
    whose children each cover one segment of the stay and point back to it
    through ``parent_reservation_id``.
    """

    # Identity
    reservation_id: UUID = Field(default_factory=uuid4)

    # References to other contexts
    client_id: UUID
    room_type_id: str
    assigned_room_id: Optional[str] = None

    # Stay
    check_in: date
    check_out: date
    occupant_count: int = Field(ge=1)
    occupant_ids: List[UUID] = []

    # Status
    status: ReservationStatus = ReservationStatus.PENDING

    # Money
    base_price: Decimal = Decimal("0")
    additional_occupant_price: Decimal = Decimal("0")
    total_price: Decimal = Decimal("0")
    discount_percent: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0")
    required_prepayment: Decimal = Decimal("0")
    special_requests: Optional[str] = None

    # Composite structure
    is_composite: bool = False
    parent_reservation_id: Optional[UUID] = None
    segment_order: Optional[int] = None

    # Early checkout tracking
    is_early_checkout: bool = False
    original_check_out: Optional[date] = None

    # Metadata
    created_at: datetime = Field(default_factory=datetime.utcnow)
    modified_at: datetime = Field(default_factory=datetime.utcnow)
    version: int = 1

    @validator('check_out')
    def check_out_not_before_check_in(cls, v, values):
        # An early checkout on the arrival day leaves check_out == check_in
        if 'check_in' in values and v < values['check_in']:
            raise ValueError('Check-out must not be before check-in')
        return v

    class Config:
        from_attributes = True

    # ==================== FACTORY METHODS ====================
    @staticmethod
    def create(
        client_id: UUID,
        room_type_id: str,
        window: DateWindow,
        occupant_ids: List[UUID],
        base_price: Decimal,
        additional_occupant_price: Decimal,
        discount_percent: Decimal,
        assigned_room_id: Optional[str] = None,
        special_requests: Optional[str] = None,
    ) -> "Reservation":
        """Create a simple (non-composite) reservation"""
        Reservation._validate_occupants(occupant_ids)

        reservation = Reservation(
            client_id=client_id,
            room_type_id=room_type_id,
            assigned_room_id=assigned_room_id,
            check_in=window.start,
            check_out=window.end,
            occupant_count=len(occupant_ids),
            occupant_ids=list(occupant_ids),
            base_price=base_price,
            additional_occupant_price=additional_occupant_price,
            special_requests=special_requests,
        )
        reservation.apply_discount(discount_percent)
        return reservation

    @staticmethod
    def create_parent(
        client_id: UUID,
        children: List["Reservation"],
        occupant_ids: List[UUID],
        special_requests: Optional[str] = None,
        discount_percent: Decimal = Decimal("0"),
    ) -> "Reservation":
        """Create the composite parent spanning the given (ordered) children"""
        if len(children) < 2:
            raise ValidationError("A composite reservation needs at least 2 segments")
        Reservation._validate_occupants(occupant_ids)

        parent = Reservation(
            client_id=client_id,
            room_type_id=children[0].room_type_id,
            check_in=children[0].check_in,
            check_out=children[-1].check_out,
            occupant_count=len(occupant_ids),
            occupant_ids=list(occupant_ids),
            special_requests=special_requests,
            is_composite=True,
            discount_percent=normalize_discount(discount_percent),
        )
        parent.attach_children(children)
        return parent

    # ==================== COMPOSITE STRUCTURE ====================
    def attach_children(self, children: List["Reservation"]) -> None:
        """Make children the ordered segments of this parent and total their prices"""
        for order, child in enumerate(children, start=1):
            child.parent_reservation_id = self.reservation_id
            child.is_composite = False
            child.segment_order = order
            child._touch()

        raw_total = sum((c.base_price + c.additional_occupant_price for c in children), Decimal("0"))
        self.base_price = raw_total
        self.additional_occupant_price = Decimal("0")
        self.total_price = sum((c.total_price for c in children), Decimal("0"))
        self.discount_amount = round_money(raw_total - self.total_price)
        self._touch()

    def apply_discount(self, discount_percent) -> None:
        """Recompute totals for a discount, overwriting any previous one"""
        raw_total = self.base_price + self.additional_occupant_price
        self.discount_percent = normalize_discount(discount_percent)
        self.total_price = apply_discount(raw_total, self.discount_percent)
        self.discount_amount = round_money(raw_total - self.total_price)
        self._touch()

    # ==================== STATE TRANSITION METHODS ====================
    def approve_payment(self) -> None:
        """Allow the client to pay; the prepayment is 30% of the total"""
        if self.status != ReservationStatus.PENDING:
            raise ConflictError(
                f"Cannot approve payment for reservation with status {self.status.value}"
            )

        self.required_prepayment = round_money(self.total_price * PREPAYMENT_RATE)
        self.status = ReservationStatus.AWAITING_PAYMENT
        self._touch()

    def confirm_payment(self) -> None:
        """Confirm reservation after payment"""
        if self.status != ReservationStatus.AWAITING_PAYMENT:
            raise ConflictError(
                f"Cannot confirm reservation with status {self.status.value}"
            )

        self.status = ReservationStatus.CONFIRMED
        self._touch()

    def check_in_guest(self, today: date) -> None:
        """Mark guest as checked in"""
        if self.status not in [ReservationStatus.CONFIRMED, ReservationStatus.AWAITING_PAYMENT]:
            raise ConflictError(
                f"Cannot check in with status {self.status.value}"
            )

        if self.check_in != today:
            raise ConflictError(
                f"Check-in is only possible on the check-in date {self.check_in.isoformat()}"
            )

        self.status = ReservationStatus.CHECKED_IN
        self._touch()

    def check_out_guest(self, today: date) -> None:
        """Mark guest as checked out, shortening the stay when leaving early"""
        if self.status != ReservationStatus.CHECKED_IN:
            raise ConflictError(
                f"Cannot check out with status {self.status.value}"
            )

        self.shorten_to(today)
        self.status = ReservationStatus.CHECKED_OUT
        self._touch()

    def shorten_to(self, today: date) -> None:
        """End the stay today, keeping the booked check-out date for audit"""
        if today < self.check_out:
            self.original_check_out = self.check_out
            self.is_early_checkout = True
            self.check_out = max(today, self.check_in)

    def close_segment(self, today: date) -> None:
        """Close a child segment while its parent checks out"""
        if not self.is_open():
            return

        if self.check_in > today:
            self.status = ReservationStatus.CANCELLED
        else:
            self.shorten_to(today)
            self.status = ReservationStatus.CHECKED_OUT
        self._touch()

    def cancel(self) -> None:
        """Cancel reservation"""
        if self.status == ReservationStatus.CANCELLED:
            raise ConflictError("Reservation is already cancelled")
        if self.status == ReservationStatus.CHECKED_OUT:
            raise ConflictError("Cannot cancel a completed reservation")

        self.status = ReservationStatus.CANCELLED
        self._touch()

    # ==================== QUERY METHODS ====================
    @property
    def is_child(self) -> bool:
        return self.parent_reservation_id is not None

    @property
    def is_simple(self) -> bool:
        """Neither a composite parent nor one of its segments"""
        return not self.is_composite and not self.is_child

    def is_open(self) -> bool:
        """Check if reservation is still in a non-terminal state"""
        return self.status not in [ReservationStatus.CHECKED_OUT, ReservationStatus.CANCELLED]

    def covers_day(self, day: date) -> bool:
        return self.check_in <= day <= self.check_out

    def occupies_rooms(self) -> bool:
        """Parents and cancelled reservations never hold a room"""
        return not self.is_composite and self.status != ReservationStatus.CANCELLED

    def to_interval(self) -> ExistingBookingInterval:
        return ExistingBookingInterval(
            reservation_id=self.reservation_id,
            room_type_id=self.room_type_id,
            check_in=self.check_in,
            check_out=self.check_out,
            assigned_room_id=self.assigned_room_id,
        )

    # ==================== PRIVATE METHODS ====================
    @staticmethod
    def _validate_occupants(occupant_ids: List[UUID]) -> None:
        if not occupant_ids:
            raise ValidationError("At least one occupant is required")

    def _touch(self) -> None:
        self.modified_at = datetime.utcnow()
        self.version += 1
