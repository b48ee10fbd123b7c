"""Fixed 16-column supplier rows and their text/spreadsheet renderings."""

import logging
from io import BytesIO
from typing import Iterable, List, Optional, Sequence, Union

from openpyxl import Workbook
from openpyxl.styles import Font

from onboarding.etl.bidder import bidder_number_for, normalize_bidder_number, parse_number
from onboarding.models import EnrichedCompany, ValidationError

logger = logging.getLogger(__name__)

LANGUAGE = "EN"
COUNTRY_CODE = "NG"
ORG_UNIT = "NPX1"
ACTIVE_FLAG = "X"
TRAILING_CODE = "0001"
SHEET_NAME = "Suppliers"

COLUMNS = (
    # The supplier upload keys each record by its bidder number, so it sits in
    # the leading record-tag slot instead of a constant tag.
    "BIDDER_NUMBER",
    "NAME",
    "SHORT_NAME",
    "LANGUAGE",
    "COUNTRY",
    "PHONE",
    "PHONE_COUNTRY",
    "EMAIL",
    "TOWN",
    "ORG_UNIT",
    "SEARCH_TERM_1",
    "SEARCH_TERM_2",
    "CORRESPONDENCE_LANGUAGE",
    "ACTIVE",
    "SUPPLIER_ID",
    "ACCOUNT_GROUP",
)


def _clean(value) -> str:
    if value is None:
        return ""
    # Tabs and line breaks would shift columns in the text rendering.
    return " ".join(str(value).split())


def row_bidder_number(company: EnrichedCompany, row_index: int, base_number: Union[str, int, None]) -> str:
    if company.bidder_number:
        try:
            return normalize_bidder_number(company.bidder_number)
        except ValueError:
            logger.warning("Ignoring malformed bidder number %r for %s", company.bidder_number, company.key)
    base = parse_number(base_number)
    if base is None:
        raise ValidationError(f"base number {base_number!r} is not a valid bidder number")
    return bidder_number_for(base, row_index)


def to_row(
    company: EnrichedCompany,
    row_index: int,
    base_number: Union[str, int, None],
    default_town: str,
) -> List[str]:
    """Field values for one supplier, shared by every export format.

    Column 1 is the bidder number in place of a constant record tag; the
    remaining fifteen fields follow ``COLUMNS``.
    """
    name = _clean(company.name)
    return [
        row_bidder_number(company, row_index, base_number),
        name,
        name,
        LANGUAGE,
        COUNTRY_CODE,
        _clean(company.candidate.phone),
        COUNTRY_CODE,
        _clean(company.candidate.email),
        _clean(company.town) or default_town,
        ORG_UNIT,
        name,
        name,
        LANGUAGE,
        ACTIVE_FLAG,
        _clean(company.identifier),
        TRAILING_CODE,
    ]


def to_rows(
    companies: Sequence[EnrichedCompany],
    base_number: Union[str, int, None],
    default_town: str,
) -> List[List[str]]:
    return [to_row(company, index, base_number, default_town) for index, company in enumerate(companies)]


def render_text(rows: Iterable[List[str]]) -> bytes:
    """Tab-delimited, one supplier per line."""
    lines = ["\t".join(row) for row in rows]
    return ("\n".join(lines) + "\n").encode("utf-8") if lines else b""


def render_workbook(rows: Iterable[List[str]], sheet_name: Optional[str] = None) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_name or SHEET_NAME
    for row in rows:
        ws.append(row)

    # Row 1 is bolded even though it holds data, not headers.
    if ws.max_row >= 1 and any(cell.value is not None for cell in ws[1]):
        for cell in ws[1]:
            cell.font = Font(bold=True)

    bio = BytesIO()
    wb.save(bio)
    return bio.getvalue()
