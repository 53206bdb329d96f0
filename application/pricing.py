"""Option Ranker & Pricer"""
from decimal import Decimal
from typing import List

from domain.calculation import apply_discount, normalize_discount, round_money
from domain.enums import OptionType
from domain.value_objects import BookingOption, BookingOptionsResult, DateWindow, PriceBreakdown

MAX_COMPOSITE_OPTIONS = 5


def apply_discount_to_option(option: BookingOption, discount_percent, occupant_count: int) -> BookingOption:
    """Discount every segment on its own, then total the discounted segments.

    Discounting the aggregate and splitting it afterwards would let the
    parent and the children of a composite drift apart by a cent.
    """
    percent = normalize_discount(discount_percent)
    segments = [
        segment.model_copy(update={"price": apply_discount(segment.price, percent)})
        for segment in option.segments
    ]

    base_price = sum((s.base_price for s in option.segments), Decimal("0"))
    additional_price = sum((s.additional_occupant_price for s in option.segments), Decimal("0"))
    original_total = sum((s.price for s in option.segments), Decimal("0"))
    total_price = sum((s.price for s in segments), Decimal("0"))

    return option.model_copy(update={
        "segments": segments,
        "total_price": total_price,
        "price_breakdown": PriceBreakdown(
            base_price=base_price,
            additional_occupant_price=additional_price,
            discount_amount=round_money(original_total - total_price),
            discount_percent=percent,
            unit_count=option.total_units,
            occupant_count=occupant_count,
        ),
    })


def _by_price(option: BookingOption):
    return option.total_price, option.transfer_count


def rank_options(
    window: DateWindow,
    occupant_count: int,
    single: List[BookingOption],
    same_type: List[BookingOption],
    mixed: List[BookingOption],
) -> BookingOptionsResult:
    """Shape the final result: all singles, and the best composites pooled and capped"""
    single = sorted(single, key=_by_price)
    composite = sorted(same_type + mixed, key=_by_price)[:MAX_COMPOSITE_OPTIONS]

    return BookingOptionsResult(
        window=window,
        occupant_count=occupant_count,
        single_options=single,
        same_type_options=[o for o in composite if o.option_type == OptionType.SAME_TYPE],
        mixed_options=[o for o in composite if o.option_type == OptionType.MIXED],
        total_options=len(single) + len(composite),
        has_perfect_options=bool(single),
    )


def price_and_rank(
    window: DateWindow,
    occupant_count: int,
    discount_percent,
    single: List[BookingOption],
    same_type: List[BookingOption],
    mixed: List[BookingOption],
) -> BookingOptionsResult:
    def discounted(options):
        return [apply_discount_to_option(o, discount_percent, occupant_count) for o in options]

    return rank_options(window, occupant_count, discounted(single), discounted(same_type), discounted(mixed))
