"""Availability calendar and segment finder for a single room type"""
import logging
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel

from domain.calculation import (
    ONE_DAY, each_day, minimum_units, occupies_day, unit_count,
)
from domain.enums import CalculationMode
from domain.value_objects import DateWindow, ExistingBookingInterval, RoomTypeCapacity, Segment

logger = logging.getLogger(__name__)


class DayAvailability(BaseModel):
    """Occupancy of one room type on one calendar day"""
    day: date
    occupied: int
    total_rooms: int
    is_check_in_day: bool = False
    is_check_out_day: bool = False
    available: bool = False

    @property
    def has_capacity(self) -> bool:
        return self.occupied < self.total_rooms

    class Config:
        frozen = True


# ==================== CALENDAR BUILDER ====================

def build_calendar_days(
    window: DateWindow,
    bookings: Iterable[ExistingBookingInterval],
    total_rooms: int,
    mode: CalculationMode,
) -> List[DayAvailability]:
    """Per-day occupancy of a room type over every day of window, both ends included"""
    bookings = list(bookings)
    days = []
    for day in each_day(window.start, window.end):
        occupied = sum(1 for b in bookings if occupies_day(b.check_in, b.check_out, day, mode))
        is_check_in_day = any(b.check_in == day for b in bookings)
        is_check_out_day = any(b.check_out == day for b in bookings)

        available = total_rooms > 0 and occupied < total_rooms
        if mode == CalculationMode.BY_DAY and (is_check_in_day or is_check_out_day):
            # Turnover days are blacked out: the room is serviced that day
            available = False
        elif mode == CalculationMode.BY_NIGHT and is_check_out_day and not is_check_in_day:
            # A departure day can always open a new stay
            available = total_rooms > 0

        days.append(DayAvailability(
            day=day,
            occupied=occupied,
            total_rooms=total_rooms,
            is_check_in_day=is_check_in_day,
            is_check_out_day=is_check_out_day,
            available=available,
        ))
        logger.debug(
            "[AVAIL] %s mode=%s occupied=%d/%d check_in=%s check_out=%s => %s",
            day.isoformat(), mode.value, occupied, total_rooms,
            is_check_in_day, is_check_out_day, available,
        )
    return days


def build_calendar(
    window: DateWindow,
    bookings: Iterable[ExistingBookingInterval],
    total_rooms: int,
    mode: CalculationMode,
) -> Dict[date, bool]:
    """Map of day -> at least one room of the type is free"""
    return {d.day: d.available for d in build_calendar_days(window, bookings, total_rooms, mode)}


# ==================== SEGMENT FINDER ====================

def price_segment(
    room_type: RoomTypeCapacity,
    window: DateWindow,
    occupant_count: int,
    mode: CalculationMode,
    assigned_room_id: Optional[str] = None,
) -> Segment:
    """Build a priced segment for room_type over window"""
    units = unit_count(window.start, window.end, mode)
    base_price = room_type.price_per_unit * units
    extra_occupants = max(0, occupant_count - 1)
    additional_price = room_type.price_per_additional_occupant * extra_occupants * units
    return Segment(
        room_type_id=room_type.room_type_id,
        room_type_name=room_type.name,
        window=window,
        units=units,
        base_price=Decimal(base_price),
        additional_occupant_price=Decimal(additional_price),
        price=Decimal(base_price + additional_price),
        assigned_room_id=assigned_room_id,
    )


def _run_to_window(first_day: date, last_day: date, mode: CalculationMode) -> Optional[DateWindow]:
    """Stay from the first to the last free day of a run, or None when it is below the minimum stay"""
    if last_day <= first_day or unit_count(first_day, last_day, mode) < minimum_units(mode):
        return None
    return DateWindow(start=first_day, end=last_day)


def find_free_windows(calendar: Dict[date, bool], mode: CalculationMode) -> List[DateWindow]:
    """Maximal runs of available days, as stay windows long enough to book"""
    windows = []
    run_start: Optional[date] = None
    previous: Optional[date] = None

    for day in sorted(calendar):
        if calendar[day]:
            if run_start is None:
                run_start = day
        elif run_start is not None:
            window = _run_to_window(run_start, previous, mode)
            if window is not None:
                windows.append(window)
            run_start = None
        previous = day

    if run_start is not None:
        window = _run_to_window(run_start, previous, mode)
        if window is not None:
            windows.append(window)
    return windows


def find_segments(
    room_type: RoomTypeCapacity,
    calendar: Dict[date, bool],
    occupant_count: int,
    mode: CalculationMode,
    assigned_room_id: Optional[str] = None,
) -> List[Segment]:
    """Priced free segments of room_type, chronological, possibly not covering the window"""
    segments = [
        price_segment(room_type, window, occupant_count, mode, assigned_room_id)
        for window in find_free_windows(calendar, mode)
    ]
    if segments:
        logger.debug(
            "[SEGMENTS] %s: %s", room_type.name,
            ", ".join(f"{s.window.start}..{s.window.end} ({s.units})" for s in segments),
        )
    else:
        logger.debug("[SEGMENTS] no segments for %s", room_type.name)
    return segments


def max_reachable_end(
    calendar: Dict[date, bool],
    start: date,
    mode: CalculationMode,
) -> Optional[date]:
    """End date of the uninterrupted free run beginning at start, if bookable"""
    last_free: Optional[date] = None
    day = start
    while calendar.get(day, False):
        last_free = day
        day += ONE_DAY

    if last_free is None:
        return None
    window = _run_to_window(start, last_free, mode)
    return window.end if window is not None else None
