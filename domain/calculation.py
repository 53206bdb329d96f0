"""Calculation mode policy.

Every piece of day/night arithmetic lives here. ``BY_DAY`` bills every
calendar day the guest occupies, the arrival and the departure day included,
and both days belong to the stay. ``BY_NIGHT`` bills nights: the departure day
is released at check-out time and may be the next guest's arrival day.
"""
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_EVEN
from typing import Iterator, List

from domain.enums import CalculationMode
from domain.value_objects import DateWindow

ONE_DAY = timedelta(days=1)
CENT = Decimal("0.01")


# ==================== UNIT ARITHMETIC ====================

def unit_count(start: date, end: date, mode: CalculationMode) -> int:
    """Billable units between two dates: days (both ends included) or nights"""
    days = (end - start).days
    if mode == CalculationMode.BY_DAY:
        return days + 1
    return days


def minimum_units(mode: CalculationMode) -> int:
    """Shortest bookable stay"""
    return 2 if mode == CalculationMode.BY_DAY else 1


def are_sequential(first_end: date, second_start: date, mode: CalculationMode) -> bool:
    """Check if a stay starting on second_start directly follows one ending on first_end"""
    if mode == CalculationMode.BY_DAY:
        return second_start == first_end + ONE_DAY
    return second_start in (first_end, first_end + ONE_DAY)


def overlaps(first: DateWindow, second: DateWindow, mode: CalculationMode) -> bool:
    """Check if two stays would claim the same room at the same time"""
    return stays_overlap(first.start, first.end, second.start, second.end, mode)


def stays_overlap(first_start: date, first_end: date, second_start: date, second_end: date,
                  mode: CalculationMode) -> bool:
    # Booked stays may be zero-length after an arrival-day checkout, so no DateWindow here
    if mode == CalculationMode.BY_DAY:
        return first_start <= second_end and first_end >= second_start
    return first_start < second_end and first_end > second_start


def next_segment_start(prior_end: date, mode: CalculationMode) -> date:
    """Earliest start of the segment that follows one ending on prior_end"""
    if mode == CalculationMode.BY_DAY:
        return prior_end + ONE_DAY
    return prior_end


def each_day(start: date, end: date) -> Iterator[date]:
    """Every calendar day from start to end, both included"""
    current = start
    while current <= end:
        yield current
        current += ONE_DAY


def occupies_day(start: date, end: date, day: date, mode: CalculationMode) -> bool:
    """Check if a stay from start to end keeps its room busy on day"""
    if mode == CalculationMode.BY_DAY:
        return start <= day <= end
    return start <= day < end


def covers_window(windows: List[DateWindow], target: DateWindow, mode: CalculationMode) -> bool:
    """Check if chronologically ordered windows tile target with no gap or overlap"""
    if not windows:
        return False
    if windows[0].start != target.start or windows[-1].end != target.end:
        return False
    for previous, current in zip(windows, windows[1:]):
        if current.start != next_segment_start(previous.end, mode):
            return False
    return True


def unit_name(mode: CalculationMode, count: int) -> str:
    if mode == CalculationMode.BY_DAY:
        return "day" if count == 1 else "days"
    return "night" if count == 1 else "nights"


# ==================== MONEY ====================

def round_money(amount: Decimal) -> Decimal:
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_EVEN)


def normalize_discount(percent) -> Decimal:
    """Clamp a discount percent to [0, 100] with two decimals"""
    value = Decimal(str(percent))
    if value < 0:
        return Decimal("0")
    if value > 100:
        return Decimal("100")
    return round_money(value)


def apply_discount(amount: Decimal, percent) -> Decimal:
    """Discounted amount, rounded to cents"""
    if amount <= 0:
        return Decimal("0")
    normalized = normalize_discount(percent)
    if normalized <= 0:
        return round_money(amount)
    return round_money(amount * (1 - normalized / Decimal("100")))
