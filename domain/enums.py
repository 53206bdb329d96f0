"""Domain Enums"""
from enum import Enum


class CalculationMode(str, Enum):
    BY_DAY = "BY_DAY"
    BY_NIGHT = "BY_NIGHT"


class ReservationStatus(str, Enum):
    PENDING = "PENDING"
    AWAITING_PAYMENT = "AWAITING_PAYMENT"
    CONFIRMED = "CONFIRMED"
    CHECKED_IN = "CHECKED_IN"
    CHECKED_OUT = "CHECKED_OUT"
    CANCELLED = "CANCELLED"


class OptionType(str, Enum):
    SINGLE = "SINGLE"
    SAME_TYPE = "SAME_TYPE"
    MIXED = "MIXED"

    @property
    def priority(self) -> int:
        """Display priority: 0 for a single room, 1 same type, 2 mixed"""
        return _OPTION_PRIORITY[self]


_OPTION_PRIORITY = {
    OptionType.SINGLE: 0,
    OptionType.SAME_TYPE: 1,
    OptionType.MIXED: 2,
}


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    REFUNDED = "REFUNDED"
    FAILED = "FAILED"
