import pytest

from onboarding.etl import bidder
from onboarding.models import CompanyCandidate, EnrichedCompany


def _selection(count, numbers=None):
    numbers = numbers or [""] * count
    return [
        EnrichedCompany(candidate=CompanyCandidate(identifier=f"V{i}", name=f"Company {i}"), bidder_number=numbers[i])
        for i in range(count)
    ]


def test_parse_number():
    assert bidder.parse_number("0000000100") == 100
    assert bidder.parse_number(7) == 7
    assert bidder.parse_number("") is None
    assert bidder.parse_number("12a") is None
    assert bidder.parse_number(-2) is None
    assert bidder.parse_number(None) is None
    assert bidder.parse_number(True) is None


def test_format_pads_and_truncates():
    assert bidder.format_bidder_number(42) == "0000000042"
    assert bidder.format_bidder_number(12345678901) == "2345678901"
    assert bidder.normalize_bidder_number("123") == "0000000123"
    with pytest.raises(ValueError):
        bidder.normalize_bidder_number("abc")


def test_assign_three_records_from_base_two():
    result = bidder.assign("0000000002", _selection(3))
    assert [company.bidder_number for company in result] == ["0000000002", "0000000004", "0000000006"]


@pytest.mark.parametrize("count", [1, 2, 5, 12])
def test_assign_steps_by_two_with_fixed_width(count):
    result = bidder.assign("0000500000", _selection(count))
    numbers = [company.bidder_number for company in result]
    assert all(len(number) == 10 and number.isdigit() for number in numbers)
    assert all(int(b) - int(a) == 2 for a, b in zip(numbers, numbers[1:]))


def test_assign_overwrites_manual_edits_and_keeps_input():
    selection = _selection(2, numbers=["0000000999", "0000000001"])
    result = bidder.assign(100, selection)

    assert [company.bidder_number for company in result] == ["0000000100", "0000000102"]
    assert [company.bidder_number for company in selection] == ["0000000999", "0000000001"]


def test_assign_with_unparseable_base_is_noop():
    selection = _selection(2, numbers=["0000000010", "0000000012"])
    result = bidder.assign("not-a-number", selection)
    assert [company.bidder_number for company in result] == ["0000000010", "0000000012"]


def test_assign_wraps_to_last_ten_digits():
    result = bidder.assign("9999999998", _selection(2))
    assert [company.bidder_number for company in result] == ["9999999998", "0000000000"]


def test_next_bidder_number():
    assert bidder.next_bidder_number("0000000100", []) == "0000000100"
    assert bidder.next_bidder_number("0000000100", _selection(1, ["0000000500"])) == "0000000502"
    # a blank last number counts from the base
    assert bidder.next_bidder_number("0000000100", _selection(1, [""])) == "0000000102"
