"""Sequential bidder-number assignment."""

from dataclasses import replace
from typing import List, Optional, Sequence, Union

from onboarding.models import EnrichedCompany

BIDDER_WIDTH = 10
BIDDER_STEP = 2


def parse_number(value: Union[str, int, None]) -> Optional[int]:
    """Non-negative integer from a digit string or int, else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            return int(text)
    return None


def format_bidder_number(value: int) -> str:
    # Wider values keep their last ten digits.
    return str(value).zfill(BIDDER_WIDTH)[-BIDDER_WIDTH:]


def normalize_bidder_number(value: str) -> str:
    """Left-pad or truncate an existing digit string to exactly ten characters."""
    number = parse_number(value)
    if number is None:
        raise ValueError(f"bidder number {value!r} is not numeric")
    return format_bidder_number(number)


def bidder_number_for(base: int, index: int) -> str:
    return format_bidder_number(base + BIDDER_STEP * index)


def assign(base_number: Union[str, int], selection: Sequence[EnrichedCompany]) -> List[EnrichedCompany]:
    """Renumber the whole selection from ``base_number`` in order.

    Returns new records and leaves the input untouched. An unparseable base
    returns the selection unchanged.
    """
    base = parse_number(base_number)
    if base is None:
        return list(selection)
    return [replace(company, bidder_number=bidder_number_for(base, index)) for index, company in enumerate(selection)]


def next_bidder_number(base_number: Union[str, int], selection: Sequence[EnrichedCompany]) -> str:
    """Number for a row appended to ``selection``: last number plus two, or the base."""
    base = parse_number(base_number)
    if base is None:
        base = 0
    if not selection:
        return format_bidder_number(base)
    last = parse_number(selection[-1].bidder_number)
    if last is None:
        last = base
    return format_bidder_number(last + BIDDER_STEP)
