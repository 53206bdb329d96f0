"""Combination Search - resolves a requested stay into full-window tilings"""
import logging
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from domain.availability import (
    build_calendar, build_calendar_days, find_segments, max_reachable_end, price_segment,
)
from domain.calculation import covers_window, next_segment_start, stays_overlap
from domain.enums import OptionType
from domain.exceptions import InvariantViolation
from domain.repositories import ReservationRepository, RoomRepository, RoomTypeRepository
from domain.value_objects import (
    BookingOption, BookingSettings, DateWindow, ExistingBookingInterval, Room, RoomTypeCapacity, Segment,
)

logger = logging.getLogger(__name__)

# Search bounds
MAX_SEGMENT_DEPTH = 4
MAX_RAW_CANDIDATES = 20
SAME_TYPE_SEARCH_THRESHOLD = 3
MIXED_SEARCH_THRESHOLD = 5


class StaySearch:
    """One resolution call.

    Loads the eligible room types, their rooms and the bookings touching the
    window once, then answers the three option families from memory. The
    calendars and the reachability memo live on the instance, so a new
    ``StaySearch`` must be created for every request.
    """

    def __init__(
        self,
        booking_settings: BookingSettings,
        room_type_repository: RoomTypeRepository,
        room_repository: RoomRepository,
        reservation_repository: ReservationRepository,
    ):
        self.mode = booking_settings.calculation_mode
        self.room_type_repository = room_type_repository
        self.room_repository = room_repository
        self.reservation_repository = reservation_repository

        self.window: Optional[DateWindow] = None
        self.occupant_count = 0
        self.room_types: List[RoomTypeCapacity] = []
        self._room_counts: Dict[str, int] = {}
        self._rooms: Dict[str, List[Room]] = {}
        self._bookings: Dict[str, List[ExistingBookingInterval]] = {}
        self._calendars: Dict[str, Dict[date, bool]] = {}
        self._reach_memo: Dict[Tuple[str, date, date], Optional[date]] = {}

    # ==================== LOADING ====================
    async def load(self, window: DateWindow, occupant_count: int, room_type_ids: Optional[List[str]] = None) -> None:
        """Fetch room types, rooms and bookings, sequentially per room type"""
        self.window = window
        self.occupant_count = occupant_count

        room_types = await self.room_type_repository.find_all_active()
        room_types = sorted(room_types, key=lambda rt: (rt.price_per_unit, rt.name, rt.room_type_id))

        for room_type in room_types:
            if room_type_ids is not None and room_type.room_type_id not in room_type_ids:
                continue
            if room_type.max_occupants < occupant_count:
                continue
            total_rooms = await self.room_repository.count_by_room_type(room_type.room_type_id)
            if total_rooms == 0:
                continue
            self.room_types.append(room_type)
            self._room_counts[room_type.room_type_id] = total_rooms
            self._rooms[room_type.room_type_id] = await self.room_repository.find_by_room_type(room_type.room_type_id)
            self._bookings[room_type.room_type_id] = await self.reservation_repository.find_intersecting(
                room_type.room_type_id, window
            )

        logger.debug(
            "Searching %s..%s (%s) for %d occupant(s) across %d room type(s)",
            window.start, window.end, self.mode.value, occupant_count, len(self.room_types),
        )

    def calendar(self, room_type_id: str) -> Dict[date, bool]:
        if room_type_id not in self._calendars:
            self._calendars[room_type_id] = build_calendar(
                self.window, self._bookings[room_type_id], self._room_counts[room_type_id], self.mode
            )
        return self._calendars[room_type_id]

    def room_calendar(self, room_type_id: str, room: Room) -> Dict[date, bool]:
        """Availability of one room: its own bookings, plus the type still having a free room"""
        key = f"{room_type_id}/{room.room_id}"
        if key not in self._calendars:
            bookings = self._bookings[room_type_id]
            capacity = {
                d.day: d.has_capacity for d in build_calendar_days(
                    self.window, bookings, self._room_counts[room_type_id], self.mode
                )
            }
            own = build_calendar(
                self.window, [b for b in bookings if b.assigned_room_id == room.room_id], 1, self.mode
            )
            self._calendars[key] = {day: free and capacity[day] for day, free in own.items()}
        return self._calendars[key]

    def is_free(self, room_type_id: str, room_id: Optional[str] = None) -> bool:
        """Check the loaded window is still bookable in room_type_id (or in one of its rooms)"""
        if room_type_id not in self._rooms:
            return False
        room_type = next(rt for rt in self.room_types if rt.room_type_id == room_type_id)
        if room_id is None:
            return self._has_spare_room(room_type) or all(self.calendar(room_type_id).values())
        room = next((r for r in self._rooms[room_type_id] if r.room_id == room_id), None)
        return room is not None and all(self.room_calendar(room_type_id, room).values())

    # ==================== FAMILIES ====================
    async def run(self, window: DateWindow, occupant_count: int) -> Tuple[List[BookingOption], ...]:
        """Single, same-type and mixed options, before discount and ranking"""
        await self.load(window, occupant_count)

        single = self.find_single_options()
        same_type: List[BookingOption] = []
        mixed: List[BookingOption] = []
        if len(single) < SAME_TYPE_SEARCH_THRESHOLD:
            same_type = self.find_same_type_options()
        if len(single) + len(same_type) < MIXED_SEARCH_THRESHOLD:
            mixed = self.find_mixed_options()

        logger.info(
            "Found %d single, %d same-type and %d mixed option(s)",
            len(single), len(same_type), len(mixed),
        )
        return single, same_type, mixed

    def find_single_options(self) -> List[BookingOption]:
        options = []
        for room_type in self.room_types:
            room_id = None
            if not self._has_spare_room(room_type):
                room_id = self._free_room(room_type)
                if room_id is None:
                    continue
            segment = price_segment(room_type, self.window, self.occupant_count, self.mode, room_id)
            options.append(self._option(OptionType.SINGLE, [segment]))
        return options

    def _has_spare_room(self, room_type: RoomTypeCapacity) -> bool:
        """Rooms minus bookings overlapping the whole window"""
        overlapping = sum(
            1 for b in self._bookings[room_type.room_type_id]
            if stays_overlap(b.check_in, b.check_out, self.window.start, self.window.end, self.mode)
        )
        return self._room_counts[room_type.room_type_id] - overlapping > 0

    def _free_room(self, room_type: RoomTypeCapacity) -> Optional[str]:
        # Bookings spread over several rooms can still leave one room free throughout
        for room in self._rooms[room_type.room_type_id]:
            if all(self.room_calendar(room_type.room_type_id, room).values()):
                return room.room_id
        return None

    def find_same_type_options(self) -> List[BookingOption]:
        options = []
        for room_type in self.room_types:
            segments = find_segments(room_type, self.calendar(room_type.room_type_id), self.occupant_count, self.mode)
            if len(segments) < 2 or not self._tiles(segments):
                segments = self._room_chain(room_type)
            if segments is None or len(segments) < 2:
                continue

            self._check_tiling(segments)
            moves = len(segments) - 1
            warning = f"Requires {moves} room change{'s' if moves != 1 else ''} within {room_type.name}"
            options.append(self._option(OptionType.SAME_TYPE, segments, warning))
        return options

    def _room_chain(self, room_type: RoomTypeCapacity) -> Optional[List[Segment]]:
        """Greedy chain of rooms of one type, farthest-reaching room first"""
        rooms = self._rooms[room_type.room_type_id]
        segments: List[Segment] = []
        cursor = self.window.start

        while len(segments) < MAX_SEGMENT_DEPTH:
            best_end: Optional[date] = None
            best_room: Optional[Room] = None
            for room in rooms:
                if segments and segments[-1].assigned_room_id == room.room_id:
                    continue
                end = max_reachable_end(self.room_calendar(room_type.room_type_id, room), cursor, self.mode)
                if end is not None and (best_end is None or end > best_end):
                    best_end, best_room = end, room
            if best_end is None:
                return None

            segments.append(price_segment(
                room_type, DateWindow(start=cursor, end=best_end),
                self.occupant_count, self.mode, best_room.room_id,
            ))
            if best_end == self.window.end:
                return segments
            cursor = next_segment_start(best_end, self.mode)
        return None

    def find_mixed_options(self) -> List[BookingOption]:
        candidates: List[List[Segment]] = []
        self._extend(self.window.start, [], candidates)

        options = []
        for segments in candidates:
            if len({s.room_type_id for s in segments}) < 2:
                continue
            self._check_tiling(segments)
            moves = len(segments) - 1
            route = " -> ".join(s.room_type_name for s in segments)
            warning = f"Requires {moves} relocation{'s' if moves != 1 else ''} between room types: {route}"
            options.append(self._option(OptionType.MIXED, segments, warning))
        return options

    def _extend(self, cursor: date, path: List[Segment], candidates: List[List[Segment]]) -> None:
        """Depth-first walk over room types from cursor, bounded by depth and candidate count"""
        for room_type in self.room_types:
            if len(candidates) >= MAX_RAW_CANDIDATES:
                return
            end = self._reachable_end(room_type.room_type_id, cursor)
            if end is None:
                continue

            path.append(price_segment(
                room_type, DateWindow(start=cursor, end=end), self.occupant_count, self.mode
            ))
            if end == self.window.end:
                candidates.append(list(path))
            elif len(path) < MAX_SEGMENT_DEPTH:
                self._extend(next_segment_start(end, self.mode), path, candidates)
            path.pop()

    def _reachable_end(self, room_type_id: str, cursor: date) -> Optional[date]:
        key = (room_type_id, cursor, self.window.end)
        if key not in self._reach_memo:
            self._reach_memo[key] = max_reachable_end(self.calendar(room_type_id), cursor, self.mode)
        return self._reach_memo[key]

    # ==================== HELPERS ====================
    def _tiles(self, segments: List[Segment]) -> bool:
        return covers_window([s.window for s in segments], self.window, self.mode)

    def _check_tiling(self, segments: List[Segment]) -> None:
        if not self._tiles(segments):
            raise InvariantViolation(
                "Produced segments do not tile "
                f"{self.window.start}..{self.window.end}: "
                + ", ".join(f"{s.window.start}..{s.window.end}" for s in segments)
            )

    def _option(self, option_type: OptionType, segments: List[Segment], warning: Optional[str] = None) -> BookingOption:
        return BookingOption(
            option_type=option_type,
            segments=segments,
            total_price=sum((s.price for s in segments), Decimal("0")),
            total_units=sum(s.units for s in segments),
            transfer_count=len(segments) - 1,
            priority=option_type.priority,
            warning=warning,
        )
