"""Domain Repository Interfaces"""
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import AsyncContextManager, Optional, List
from uuid import UUID

from domain.entities import Reservation
from domain.value_objects import (
    BookingSettings, DateWindow, ExistingBookingInterval, Payment, Room, RoomTypeCapacity,
)


class RoomTypeRepository(ABC):
    """Repository interface for the room type catalog"""

    @abstractmethod
    async def find_all_active(self) -> List[RoomTypeCapacity]:
        """Find all active room types"""
        pass

    @abstractmethod
    async def find_by_id(self, room_type_id: str) -> Optional[RoomTypeCapacity]:
        """Find room type by ID"""
        pass


class RoomRepository(ABC):
    """Repository interface for the room inventory"""

    @abstractmethod
    async def count_by_room_type(self, room_type_id: str) -> int:
        """Count active rooms of a room type"""
        pass

    @abstractmethod
    async def find_by_room_type(self, room_type_id: str) -> List[Room]:
        """Find active rooms of a room type"""
        pass

    @abstractmethod
    async def find_by_id(self, room_id: str) -> Optional[Room]:
        """Find room by ID"""
        pass


class ReservationRepository(ABC):
    """Repository interface for Reservation Aggregate"""

    @abstractmethod
    async def save(self, reservation: Reservation) -> Reservation:
        """Save reservation"""
        pass

    @abstractmethod
    async def update(self, reservation: Reservation) -> Reservation:
        """Update reservation"""
        pass

    @abstractmethod
    async def find_by_id(self, reservation_id: UUID) -> Optional[Reservation]:
        """Find reservation by ID"""
        pass

    @abstractmethod
    async def find_children(self, parent_id: UUID) -> List[Reservation]:
        """Find the segments of a composite reservation, ordered by segment"""
        pass

    @abstractmethod
    async def find_intersecting(self, room_type_id: str, window: DateWindow) -> List[ExistingBookingInterval]:
        """Find room-holding bookings of a room type touching window (both ends included)"""
        pass

    @abstractmethod
    async def find_overlapping_for_room(self, room_id: str, window: DateWindow) -> List[ExistingBookingInterval]:
        """Find room-holding bookings assigned to a room touching window"""
        pass

    @abstractmethod
    def transaction(self) -> AsyncContextManager[None]:
        """Unit of work: every write inside commits together or not at all"""
        pass


class PaymentRepository(ABC):
    """Repository interface for the payment ledger"""

    @abstractmethod
    async def save(self, payment: Payment) -> Payment:
        """Save payment"""
        pass

    @abstractmethod
    async def find_by_reservation_id(self, reservation_id: UUID) -> List[Payment]:
        """Find payments of a reservation"""
        pass


class ClientRepository(ABC):
    """Repository interface for client data the core needs"""

    @abstractmethod
    async def get_discount_percent(self, client_id: UUID) -> Decimal:
        """Current loyalty discount of a client (0 when unknown)"""
        pass


class SettingsRepository(ABC):
    """Repository interface for the booking settings singleton"""

    @abstractmethod
    async def get_singleton(self) -> Optional[BookingSettings]:
        """Get the settings row, if one exists"""
        pass

    @abstractmethod
    async def save(self, settings: BookingSettings) -> BookingSettings:
        """Save the settings row"""
        pass
