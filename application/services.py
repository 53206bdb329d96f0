"""Application Services - Business use cases"""
import logging
from datetime import date, datetime, time
from decimal import Decimal
from typing import Callable, List, Optional
from uuid import UUID

from application.pricing import price_and_rank
from application.search import StaySearch
from domain.availability import price_segment
from domain.calculation import (
    CENT, are_sequential, minimum_units, next_segment_start, round_money, stays_overlap, unit_count,
    unit_name,
)
from domain.entities import Reservation
from domain.enums import CalculationMode, PaymentStatus, ReservationStatus
from domain.exceptions import ConflictError, InvariantViolation, NotFoundError, ValidationError
from domain.repositories import (
    ClientRepository, PaymentRepository, ReservationRepository, RoomRepository,
    RoomTypeRepository, SettingsRepository,
)
from domain.value_objects import (
    BookingOption, BookingOptionsResult, BookingSettings, DateWindow, EarlyCheckoutCalculation,
)

logger = logging.getLogger(__name__)


def _as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


class SettingsService:
    """Service for the booking settings singleton"""

    def __init__(self, repository: SettingsRepository, defaults: Optional[BookingSettings] = None):
        self.repository = repository
        self.defaults = defaults or BookingSettings()

    async def get_active_settings(self) -> BookingSettings:
        """Current settings, creating the default row on first use"""
        current = await self.repository.get_singleton()
        if current is None:
            logger.info("No booking settings stored, creating defaults (%s)", self.defaults.calculation_mode.value)
            current = await self.repository.save(self.defaults)
        return current

    async def update_settings(
        self,
        calculation_mode: Optional[CalculationMode] = None,
        check_in_time: Optional[time] = None,
        check_out_time: Optional[time] = None,
    ) -> BookingSettings:
        """Update settings; fields left as None keep their value"""
        current = await self.get_active_settings()
        changes = {
            key: value for key, value in {
                "calculation_mode": calculation_mode,
                "check_in_time": check_in_time,
                "check_out_time": check_out_time,
            }.items() if value is not None
        }
        updated = current.model_copy(update=changes)
        logger.info("Booking settings updated: %s", updated.calculation_mode.value)
        return await self.repository.save(updated)


class BookingOptionsService:
    """Service resolving a requested stay into booking options"""

    def __init__(
        self,
        settings_service: SettingsService,
        room_type_repository: RoomTypeRepository,
        room_repository: RoomRepository,
        reservation_repository: ReservationRepository,
        clock: Callable[[], date] = date.today,
    ):
        self.settings_service = settings_service
        self.room_type_repository = room_type_repository
        self.room_repository = room_repository
        self.reservation_repository = reservation_repository
        self.clock = clock

    async def find_options(
        self,
        check_in: date,
        check_out: date,
        occupant_count: int,
        discount_percent: Decimal = Decimal("0"),
    ) -> BookingOptionsResult:
        """Find single, same-type and mixed options for a stay. Read-only."""
        check_in, check_out = _as_date(check_in), _as_date(check_out)
        if check_out <= check_in:
            raise ValidationError("Check-out date must be after check-in date")
        if occupant_count <= 0:
            raise ValidationError("Occupant count must be positive")
        if check_in < self.clock():
            raise ValidationError("Check-in date cannot be in the past")

        window = DateWindow(start=check_in, end=check_out)

        # One snapshot for the whole call
        booking_settings = await self.settings_service.get_active_settings()
        search = StaySearch(
            booking_settings, self.room_type_repository, self.room_repository, self.reservation_repository
        )
        single, same_type, mixed = await search.run(window, occupant_count)
        return price_and_rank(window, occupant_count, discount_percent, single, same_type, mixed)


def calculate_early_checkout(
    total_units: int,
    units_stayed: int,
    price_per_unit: Decimal,
    paid_amount: Decimal,
) -> EarlyCheckoutCalculation:
    """Money side of an early checkout: what is owed and what can be refunded"""
    units_stayed = max(0, min(units_stayed, total_units))
    units_unused = max(0, total_units - units_stayed)
    is_early_checkout = units_unused > 0

    amount_for_stayed_units = round_money(price_per_unit * units_stayed)
    refund_amount = Decimal("0")
    if is_early_checkout:
        refund_amount = min(
            round_money(price_per_unit * units_unused),
            max(Decimal("0"), paid_amount - amount_for_stayed_units),
        )

    return EarlyCheckoutCalculation(
        total_units=total_units,
        units_stayed=units_stayed,
        units_unused=units_unused,
        total_price=round_money(price_per_unit * total_units),
        paid_amount=paid_amount,
        price_per_unit=round_money(price_per_unit),
        amount_for_stayed_units=amount_for_stayed_units,
        refund_amount=round_money(refund_amount),
        is_early_checkout=is_early_checkout,
    )


class CompositeReservationService:
    """Service for creating and driving (composite) reservations"""

    def __init__(
        self,
        reservation_repository: ReservationRepository,
        room_type_repository: RoomTypeRepository,
        room_repository: RoomRepository,
        payment_repository: PaymentRepository,
        client_repository: ClientRepository,
        settings_service: SettingsService,
        clock: Callable[[], date] = date.today,
    ):
        self.repository = reservation_repository
        self.room_type_repository = room_type_repository
        self.room_repository = room_repository
        self.payment_repository = payment_repository
        self.client_repository = client_repository
        self.settings_service = settings_service
        self.clock = clock

    # ==================== QUERIES ====================
    async def get_reservation(self, reservation_id: UUID) -> Reservation:
        """Get reservation by ID"""
        reservation = await self.repository.find_by_id(reservation_id)
        if not reservation:
            raise NotFoundError("Reservation", reservation_id)
        return reservation

    async def get_children(self, reservation_id: UUID) -> List[Reservation]:
        """Segments of a composite reservation (empty for a simple one)"""
        reservation = await self.get_reservation(reservation_id)
        if not reservation.is_composite:
            return []
        return await self.repository.find_children(reservation_id)

    # ==================== CREATE ====================
    async def create_from_option(
        self,
        option: BookingOption,
        client_id: UUID,
        occupant_ids: List[UUID],
        special_requests: Optional[str] = None,
    ) -> Reservation:
        """Commit a chosen option. Availability is checked again at commit time."""
        if not occupant_ids:
            raise ValidationError("At least one occupant is required")
        if not option.segments:
            raise ValidationError("Option has no segments")

        mode = (await self.settings_service.get_active_settings()).calculation_mode
        segments = option.segments
        if segments[0].window.start < self.clock():
            raise ValidationError("Check-in date cannot be in the past")

        for segment in segments:
            if unit_count(segment.window.start, segment.window.end, mode) < minimum_units(mode):
                raise ValidationError(
                    f"Segment {segment.window.start}..{segment.window.end} is shorter than "
                    f"{minimum_units(mode)} {unit_name(mode, minimum_units(mode))}"
                )
        for previous, current in zip(segments, segments[1:]):
            if current.window.start != next_segment_start(previous.window.end, mode):
                raise ValidationError(
                    f"Segments are not sequential: {previous.window.end} is followed by {current.window.start}"
                )

        discount_percent = await self.client_repository.get_discount_percent(client_id)

        async with self.repository.transaction():
            reservations = []
            for segment in segments:
                room_type = await self.room_type_repository.find_by_id(segment.room_type_id)
                if not room_type:
                    raise NotFoundError("Room type", segment.room_type_id)
                if room_type.max_occupants < len(occupant_ids):
                    raise ValidationError(
                        f"Room type {room_type.name} holds at most {room_type.max_occupants} occupant(s)"
                    )
                await self._ensure_still_free(segment.room_type_id, segment.window, segment.assigned_room_id,
                                              len(occupant_ids), mode)

                # Prices always come from the current catalog
                priced = price_segment(room_type, segment.window, len(occupant_ids), mode, segment.assigned_room_id)
                reservations.append(Reservation.create(
                    client_id=client_id,
                    room_type_id=priced.room_type_id,
                    window=priced.window,
                    occupant_ids=occupant_ids,
                    base_price=priced.base_price,
                    additional_occupant_price=priced.additional_occupant_price,
                    discount_percent=discount_percent,
                    assigned_room_id=priced.assigned_room_id,
                    special_requests=special_requests,
                ))

            if len(reservations) == 1:
                reservation = await self.repository.save(reservations[0])
                logger.info("Reservation %s created for client %s", reservation.reservation_id, client_id)
                return reservation

            parent = Reservation.create_parent(
                client_id, reservations, occupant_ids, special_requests, discount_percent
            )
            self._check_children(parent, reservations, mode)
            await self.repository.save(parent)
            for child in reservations:
                await self.repository.save(child)

        logger.info(
            "Composite reservation %s created for client %s with %d segments",
            parent.reservation_id, client_id, len(reservations),
        )
        return parent

    async def _ensure_still_free(
        self,
        room_type_id: str,
        window: DateWindow,
        room_id: Optional[str],
        occupant_count: int,
        mode: CalculationMode,
    ) -> None:
        search = StaySearch(
            BookingSettings(calculation_mode=mode),
            self.room_type_repository, self.room_repository, self.repository,
        )
        await search.load(window, occupant_count, room_type_ids=[room_type_id])
        free = search.is_free(room_type_id, room_id)
        if free and room_id is not None:
            room = await self.room_repository.find_by_id(room_id)
            if room is None or not room.is_active or room.room_type_id != room_type_id:
                free = False
            else:
                # Bookings filed under another room type can still hold this room
                held = await self.repository.find_overlapping_for_room(room_id, window)
                free = not any(
                    stays_overlap(b.check_in, b.check_out, window.start, window.end, mode) for b in held
                )
        if not free:
            where = f"room {room_id}" if room_id else f"room type {room_type_id}"
            logger.warning("Stale option: %s is no longer free for %s..%s", where, window.start, window.end)
            raise ConflictError(f"{where[0].upper() + where[1:]} is no longer available for {window.start}..{window.end}")

    # ==================== MERGE ====================
    async def merge_existing(self, reservation_ids: List[UUID]) -> Reservation:
        """Turn adjacent simple reservations of one client into one composite reservation"""
        reservation_ids = list(dict.fromkeys(reservation_ids))
        if len(reservation_ids) < 2:
            raise ValidationError("At least 2 reservations are required to merge")

        reservations = [await self.get_reservation(rid) for rid in reservation_ids]

        client_id = reservations[0].client_id
        if any(r.client_id != client_id for r in reservations):
            raise ConflictError("All reservations must belong to the same client")
        if any(not r.is_simple for r in reservations):
            raise ConflictError("Composite reservations and their segments cannot be merged again")
        if any(not r.is_open() for r in reservations):
            raise ConflictError("Cancelled or checked-out reservations cannot be merged")

        mode = (await self.settings_service.get_active_settings()).calculation_mode
        reservations.sort(key=lambda r: r.check_in)
        for previous, current in zip(reservations, reservations[1:]):
            if not are_sequential(previous.check_out, current.check_in, mode):
                raise ConflictError(
                    f"Reservations must follow each other without a gap: "
                    f"{previous.check_out} is followed by {current.check_in}"
                )

        # The client's current discount replaces whatever each booking had
        discount_percent = await self.client_repository.get_discount_percent(client_id)
        occupant_ids = list(dict.fromkeys(oid for r in reservations for oid in r.occupant_ids))
        special_requests = "; ".join(r.special_requests for r in reservations if r.special_requests) or None

        async with self.repository.transaction():
            for child in reservations:
                child.apply_discount(discount_percent)
            parent = Reservation.create_parent(
                client_id, reservations, occupant_ids, special_requests, discount_percent
            )
            self._check_children(parent, reservations, mode)
            await self.repository.save(parent)
            for child in reservations:
                await self.repository.update(child)

        logger.info("Merged %d reservations into composite %s", len(reservations), parent.reservation_id)
        return parent

    @staticmethod
    def _check_children(parent: Reservation, children: List[Reservation], mode: CalculationMode) -> None:
        if children[0].check_in != parent.check_in or children[-1].check_out != parent.check_out:
            raise InvariantViolation(f"Segments of {parent.reservation_id} do not span the reservation")
        for previous, current in zip(children, children[1:]):
            if not are_sequential(previous.check_out, current.check_in, mode):
                raise InvariantViolation(f"Segments of {parent.reservation_id} are not adjacent")

    # ==================== LIFECYCLE ====================
    async def approve_payment(self, reservation_id: UUID) -> Reservation:
        """Allow payment; the required prepayment is 30% of the total"""
        reservation = await self._get_root(reservation_id)
        async with self.repository.transaction():
            reservation.approve_payment()
            await self.repository.update(reservation)
            for child in await self._children_of(reservation):
                if child.status == ReservationStatus.PENDING:
                    child.approve_payment()
                    await self.repository.update(child)
        logger.info("Payment approved for reservation %s", reservation_id)
        return reservation

    async def confirm_payment(self, reservation_id: UUID) -> Reservation:
        """Confirm reservation after payment"""
        reservation = await self._get_root(reservation_id)
        async with self.repository.transaction():
            reservation.confirm_payment()
            await self.repository.update(reservation)
            for child in await self._children_of(reservation):
                if child.status == ReservationStatus.AWAITING_PAYMENT:
                    child.confirm_payment()
                    await self.repository.update(child)
        logger.info("Reservation %s confirmed", reservation_id)
        return reservation

    async def check_in(self, reservation_id: UUID) -> Reservation:
        """Check in guest on the check-in date"""
        reservation = await self._get_root(reservation_id)
        today = self.clock()
        async with self.repository.transaction():
            reservation.check_in_guest(today)
            await self.repository.update(reservation)
            for child in await self._children_of(reservation):
                # The segment running today is the first one
                if child.covers_day(today) and child.status in (
                    ReservationStatus.CONFIRMED, ReservationStatus.AWAITING_PAYMENT
                ):
                    child.check_in_guest(today)
                    await self.repository.update(child)
        logger.info("Reservation %s checked in", reservation_id)
        return reservation

    async def check_out(self, reservation_id: UUID) -> Reservation:
        """Check out guest, charging only the units actually stayed"""
        reservation = await self._get_root(reservation_id)
        if reservation.status != ReservationStatus.CHECKED_IN:
            raise ConflictError(f"Cannot check out with status {reservation.status.value}")

        mode = (await self.settings_service.get_active_settings()).calculation_mode
        today = self.clock()
        calculation = await self._early_checkout(reservation, today, mode)

        shortfall = calculation.amount_for_stayed_units - calculation.paid_amount
        if shortfall > CENT:
            stayed = calculation.units_stayed
            raise ConflictError(
                f"Insufficient payment for {stayed} {unit_name(mode, stayed)} stayed: "
                f"required {calculation.amount_for_stayed_units:.2f}, "
                f"paid {calculation.paid_amount:.2f}, missing {shortfall:.2f}"
            )

        async with self.repository.transaction():
            reservation.total_price = calculation.amount_for_stayed_units
            reservation.check_out_guest(today)
            await self.repository.update(reservation)
            for child in await self._children_of(reservation):
                child.close_segment(today)
                await self.repository.update(child)

        logger.info(
            "Reservation %s checked out (%d of %d %s, early=%s)",
            reservation_id, calculation.units_stayed, calculation.total_units,
            unit_name(mode, calculation.total_units), reservation.is_early_checkout,
        )
        return reservation

    async def cancel(self, reservation_id: UUID) -> Reservation:
        """Cancel reservation together with its open segments"""
        reservation = await self._get_root(reservation_id)
        async with self.repository.transaction():
            reservation.cancel()
            await self.repository.update(reservation)
            for child in await self._children_of(reservation):
                if child.is_open():
                    child.cancel()
                    await self.repository.update(child)
        logger.info("Reservation %s cancelled", reservation_id)
        return reservation

    async def preview_early_checkout(self, reservation_id: UUID) -> EarlyCheckoutCalculation:
        """Read-only preview of a checkout today"""
        reservation = await self._get_root(reservation_id)
        if reservation.status != ReservationStatus.CHECKED_IN:
            raise ConflictError("Early checkout preview is only available for checked-in reservations")

        mode = (await self.settings_service.get_active_settings()).calculation_mode
        return await self._early_checkout(reservation, self.clock(), mode)

    # ==================== PRIVATE METHODS ====================
    async def _get_root(self, reservation_id: UUID) -> Reservation:
        """Reservation that lifecycle operations may act on: simple or parent"""
        reservation = await self.get_reservation(reservation_id)
        if reservation.is_child:
            raise ConflictError(
                f"Reservation {reservation_id} is a segment of composite reservation "
                f"{reservation.parent_reservation_id}; act on the parent instead"
            )
        return reservation

    async def _children_of(self, reservation: Reservation) -> List[Reservation]:
        if not reservation.is_composite:
            return []
        return await self.repository.find_children(reservation.reservation_id)

    async def _paid_amount(self, reservation_id: UUID) -> Decimal:
        """Net paid amount: completed payments plus (negative) refunds"""
        payments = await self.payment_repository.find_by_reservation_id(reservation_id)
        return sum(
            (p.amount for p in payments if p.status in (PaymentStatus.COMPLETED, PaymentStatus.REFUNDED)),
            Decimal("0"),
        )

    async def _early_checkout(
        self, reservation: Reservation, today: date, mode: CalculationMode
    ) -> EarlyCheckoutCalculation:
        total_units = unit_count(reservation.check_in, reservation.check_out, mode)
        units_stayed = unit_count(reservation.check_in, today, mode)
        price_per_unit = reservation.total_price / total_units if total_units > 0 else Decimal("0")
        paid = await self._paid_amount(reservation.reservation_id)

        calculation = calculate_early_checkout(total_units, units_stayed, price_per_unit, paid)
        if calculation.is_early_checkout:
            message = (
                f"Early checkout: {calculation.units_stayed} of {total_units} {unit_name(mode, total_units)} used. "
                f"Stayed {unit_name(mode, calculation.units_stayed)}: {calculation.amount_for_stayed_units:.2f}. "
                f"Refund for {calculation.units_unused} unused {unit_name(mode, calculation.units_unused)}: "
                f"{calculation.refund_amount:.2f}."
            )
        else:
            message = "Checkout on schedule, no refund due."

        return calculation.model_copy(update={
            "reservation_id": reservation.reservation_id,
            "original_check_out": reservation.check_out,
            "actual_check_out": today,
            "total_price": reservation.total_price,
            "message": message,
        })
