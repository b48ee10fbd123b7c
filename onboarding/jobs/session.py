"""Operator session: the ordered selection and the actions applied to it."""

from __future__ import annotations

import logging
import re
import threading
from contextlib import contextmanager
from datetime import date
from typing import Iterator, List, Optional, Union

from onboarding.core.config import Settings, get_settings
from onboarding.etl import bidder, export
from onboarding.etl.town_resolver import TownResolver
from onboarding.jobs.insert_batch import BatchResult, insert_batch
from onboarding.models import CompanyCandidate, EnrichedCompany, TownResult, ValidationError

logger = logging.getLogger(__name__)

REFRESH_TOWN = "refresh"


class SessionBusy(RuntimeError):
    """Raised when a long-running operation is already in flight."""


class AlreadySelected(ValidationError):
    """Raised when a candidate with the same identifier is already selected."""


class CompanyNotSelected(KeyError):
    """Raised when an operation names a company that is not in the selection."""


class Selection:
    """Companies in operator order, unique by identifier."""

    def __init__(self) -> None:
        self._items: List[EnrichedCompany] = []

    def __iter__(self) -> Iterator[EnrichedCompany]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, key: object) -> bool:
        return any(item.key == str(key) for item in self._items)

    @property
    def items(self) -> List[EnrichedCompany]:
        return list(self._items)

    def get(self, key: Union[str, int]) -> EnrichedCompany:
        for item in self._items:
            if item.key == str(key):
                return item
        raise CompanyNotSelected(key)

    def append(self, company: EnrichedCompany) -> None:
        if company.key in self:
            raise AlreadySelected(f"{company.name} is already selected")
        self._items.append(company)

    def remove(self, key: Union[str, int]) -> EnrichedCompany:
        company = self.get(key)
        self._items.remove(company)
        return company

    def replace_all(self, companies: List[EnrichedCompany]) -> None:
        self._items = list(companies)

    def clear(self) -> None:
        self._items.clear()


class OnboardingSession:
    def __init__(
        self,
        resolver: Optional[TownResolver] = None,
        settings: Optional[Settings] = None,
        base_number: str = "0000000000",
    ) -> None:
        self.settings = settings or get_settings()
        self.resolver = resolver or TownResolver(settings=self.settings)
        self.selection = Selection()
        self.base_number = base_number
        self._busy = threading.Lock()
        self._operation: Optional[str] = None

    @property
    def in_flight(self) -> Optional[str]:
        """Name of the running long operation, if any."""
        return self._operation

    @contextmanager
    def _long_running(self, operation: str):
        if not self._busy.acquire(blocking=False):
            raise SessionBusy(f"{self._operation or 'another operation'} is in progress")
        self._operation = operation
        try:
            yield
        finally:
            self._operation = None
            self._busy.release()

    def _resolve(self, address: Optional[str]) -> TownResult:
        with self._long_running("address lookup"):
            return self.resolver.resolve_town(address)

    def add(self, candidate: CompanyCandidate, town: str = "") -> EnrichedCompany:
        if candidate.key in self.selection:
            raise AlreadySelected(f"{candidate.name} is already selected")

        town = (town or "").strip()
        if not town:
            town = self._resolve(candidate.address).town

        company = EnrichedCompany(
            candidate=candidate,
            town=town,
            bidder_number=bidder.next_bidder_number(self.base_number, self.selection.items),
        )
        self.selection.append(company)
        logger.info("Added %s as bidder %s", candidate.key, company.bidder_number)
        return company

    def remove(self, key: Union[str, int]) -> EnrichedCompany:
        return self.selection.remove(key)

    def refresh_town(self, key: Union[str, int]) -> EnrichedCompany:
        company = self.selection.get(key)
        company.town = self._resolve(company.candidate.address).town
        return company

    def update(
        self,
        key: Union[str, int],
        town: Optional[str] = None,
        bidder_number: Optional[str] = None,
        date_prequal: Optional[Union[str, date]] = None,
    ) -> EnrichedCompany:
        company = self.selection.get(key)

        if bidder_number is not None:
            digits = re.sub(r"\D", "", str(bidder_number))[:10]
            if not digits:
                raise ValidationError("bidder number must contain digits")
            company.bidder_number = bidder.normalize_bidder_number(digits)

        if date_prequal is not None:
            if isinstance(date_prequal, str):
                try:
                    date_prequal = date.fromisoformat(date_prequal)
                except ValueError as exc:
                    raise ValidationError(f"invalid prequalification date {date_prequal!r}") from exc
            company.date_prequal = date_prequal

        if town is not None:
            town = town.strip()
            if town.lower() == REFRESH_TOWN or (not town and company.candidate.address):
                return self.refresh_town(key)
            company.town = town or self.settings.fallback_town

        return company

    def set_base_number(self, base_number: Union[str, int]) -> bool:
        """Resequence every row from the new base; False if it is not numeric."""
        if bidder.parse_number(base_number) is None:
            logger.info("Ignoring non-numeric base number %r", base_number)
            return False
        self.base_number = bidder.format_bidder_number(bidder.parse_number(base_number))
        self.selection.replace_all(bidder.assign(self.base_number, self.selection.items))
        return True

    def export_rows(self) -> List[List[str]]:
        if not len(self.selection):
            raise ValidationError("no companies selected")
        return export.to_rows(self.selection.items, self.base_number, self.settings.export_default_town)

    def export_text(self) -> bytes:
        return export.render_text(self.export_rows())

    def export_workbook(self) -> bytes:
        return export.render_workbook(self.export_rows())

    def insert(self, fail_fast: bool = True) -> BatchResult:
        with self._long_running("batch insert"):
            result = insert_batch(self.selection.items, fail_fast=fail_fast)

        if result.success:
            self.selection.clear()
            return result

        for outcome in result.inserted:
            self.selection.remove(outcome.company.key)
        for outcome in result.duplicates:
            outcome.company.duplicate = True
        return result

    def clear(self) -> None:
        self.selection.clear()
