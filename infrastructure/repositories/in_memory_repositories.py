"""In-Memory Repository Implementations"""
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Optional, List, Dict, Iterable
from uuid import UUID

from domain.entities import Reservation
from domain.repositories import (
    ClientRepository, PaymentRepository, ReservationRepository, RoomRepository,
    RoomTypeRepository, SettingsRepository,
)
from domain.value_objects import (
    BookingSettings, DateWindow, ExistingBookingInterval, Payment, Room, RoomTypeCapacity,
)


class InMemoryRoomTypeRepository(RoomTypeRepository):
    """In-memory implementation of RoomTypeRepository"""

    def __init__(self, room_types: Iterable[RoomTypeCapacity] = ()):
        self._storage: Dict[str, RoomTypeCapacity] = {rt.room_type_id: rt for rt in room_types}

    async def save(self, room_type: RoomTypeCapacity) -> RoomTypeCapacity:
        """Save room type to memory"""
        self._storage[room_type.room_type_id] = room_type
        return room_type

    async def find_all_active(self) -> List[RoomTypeCapacity]:
        """Find all active room types"""
        return [rt for rt in self._storage.values() if rt.is_active]

    async def find_by_id(self, room_type_id: str) -> Optional[RoomTypeCapacity]:
        """Find room type by ID"""
        return self._storage.get(room_type_id)


class InMemoryRoomRepository(RoomRepository):
    """In-memory implementation of RoomRepository"""

    def __init__(self, rooms: Iterable[Room] = ()):
        self._storage: Dict[str, Room] = {r.room_id: r for r in rooms}

    async def save(self, room: Room) -> Room:
        """Save room to memory"""
        self._storage[room.room_id] = room
        return room

    async def count_by_room_type(self, room_type_id: str) -> int:
        """Count active rooms of a room type"""
        return len(await self.find_by_room_type(room_type_id))

    async def find_by_room_type(self, room_type_id: str) -> List[Room]:
        """Find active rooms of a room type"""
        rooms = [r for r in self._storage.values() if r.room_type_id == room_type_id and r.is_active]
        return sorted(rooms, key=lambda r: r.room_number)

    async def find_by_id(self, room_id: str) -> Optional[Room]:
        """Find room by ID"""
        return self._storage.get(room_id)


class InMemoryReservationRepository(ReservationRepository):
    """In-memory implementation of ReservationRepository"""

    def __init__(self, reservations: Iterable[Reservation] = ()):
        self._storage: Dict[UUID, Reservation] = {r.reservation_id: r for r in reservations}

    async def save(self, reservation: Reservation) -> Reservation:
        """Save reservation to memory"""
        self._storage[reservation.reservation_id] = reservation
        return reservation

    async def update(self, reservation: Reservation) -> Reservation:
        """Update reservation"""
        if reservation.reservation_id in self._storage:
            self._storage[reservation.reservation_id] = reservation
            return reservation
        raise ValueError("Reservation not found")

    async def find_by_id(self, reservation_id: UUID) -> Optional[Reservation]:
        """Find reservation by ID"""
        return self._storage.get(reservation_id)

    async def find_all(self) -> List[Reservation]:
        """Find all reservations"""
        return list(self._storage.values())

    async def find_children(self, parent_id: UUID) -> List[Reservation]:
        """Find the segments of a composite reservation"""
        children = [r for r in self._storage.values() if r.parent_reservation_id == parent_id]
        return sorted(children, key=lambda r: r.segment_order or 0)

    async def find_intersecting(self, room_type_id: str, window: DateWindow) -> List[ExistingBookingInterval]:
        """Find room-holding bookings of a room type touching window"""
        return self._touching(
            [r for r in self._storage.values() if r.room_type_id == room_type_id], window
        )

    async def find_overlapping_for_room(self, room_id: str, window: DateWindow) -> List[ExistingBookingInterval]:
        """Find room-holding bookings assigned to a room touching window"""
        return self._touching(
            [r for r in self._storage.values() if r.assigned_room_id == room_id], window
        )

    @asynccontextmanager
    async def transaction(self):
        """Snapshot the store and restore it if the block raises"""
        snapshot = {key: r.model_copy(deep=True) for key, r in self._storage.items()}
        try:
            yield
        except BaseException:
            self._storage = snapshot
            raise

    @staticmethod
    def _touching(reservations: List[Reservation], window: DateWindow) -> List[ExistingBookingInterval]:
        found = [
            r.to_interval() for r in reservations
            if r.occupies_rooms() and window.start <= r.check_out and window.end >= r.check_in
        ]
        return sorted(found, key=lambda b: (b.check_in, str(b.reservation_id)))


class InMemoryPaymentRepository(PaymentRepository):
    """In-memory implementation of PaymentRepository"""

    def __init__(self, payments: Iterable[Payment] = ()):
        self._storage: Dict[UUID, Payment] = {p.payment_id: p for p in payments}

    async def save(self, payment: Payment) -> Payment:
        """Save payment to memory"""
        self._storage[payment.payment_id] = payment
        return payment

    async def find_by_reservation_id(self, reservation_id: UUID) -> List[Payment]:
        """Find payments of a reservation"""
        return [p for p in self._storage.values() if p.reservation_id == reservation_id]


class InMemoryClientRepository(ClientRepository):
    """In-memory implementation of ClientRepository"""

    def __init__(self, discounts: Optional[Dict[UUID, Decimal]] = None):
        self._discounts: Dict[UUID, Decimal] = dict(discounts or {})

    async def set_discount_percent(self, client_id: UUID, percent: Decimal) -> None:
        """Set the loyalty discount of a client"""
        self._discounts[client_id] = Decimal(percent)

    async def get_discount_percent(self, client_id: UUID) -> Decimal:
        """Current loyalty discount of a client"""
        return self._discounts.get(client_id, Decimal("0"))


class InMemorySettingsRepository(SettingsRepository):
    """In-memory implementation of SettingsRepository"""

    def __init__(self, settings: Optional[BookingSettings] = None):
        self._settings = settings

    async def get_singleton(self) -> Optional[BookingSettings]:
        """Get the settings row"""
        return self._settings

    async def save(self, settings: BookingSettings) -> BookingSettings:
        """Save the settings row"""
        self._settings = settings
        return settings
