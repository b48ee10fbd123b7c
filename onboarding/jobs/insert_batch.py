"""Sequential, duplicate-aware insertion of a supplier batch."""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from onboarding.core.db import DuplicateConflict, WriteError, insert_supplier
from onboarding.etl.bidder import parse_number
from onboarding.models import EnrichedCompany, ValidationError

logger = logging.getLogger(__name__)

INSERTED = "inserted"
DUPLICATE = "duplicate"
ERROR = "error"


@dataclass
class RecordOutcome:
    company: EnrichedCompany
    status: str
    message: str = ""
    conflict_value: Optional[str] = None
    conflict_label: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.company.identifier,
            "companyName": self.company.name,
            "status": self.status,
        }
        if self.message:
            payload["message"] = self.message
        if self.conflict_value is not None:
            payload["duplicateValue"] = self.conflict_value
            payload["duplicateField"] = self.conflict_label
        return payload


@dataclass
class BatchResult:
    outcomes: List[RecordOutcome] = field(default_factory=list)
    halted: bool = False

    def _with(self, status: str) -> List[RecordOutcome]:
        return [outcome for outcome in self.outcomes if outcome.status == status]

    @property
    def inserted(self) -> List[RecordOutcome]:
        return self._with(INSERTED)

    @property
    def duplicates(self) -> List[RecordOutcome]:
        return self._with(DUPLICATE)

    @property
    def errors(self) -> List[RecordOutcome]:
        return self._with(ERROR)

    @property
    def success(self) -> bool:
        return not self.duplicates and not self.errors

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "inserted": [outcome.to_dict() for outcome in self.inserted],
            "duplicates": [outcome.to_dict() for outcome in self.duplicates],
            "errors": [outcome.to_dict() for outcome in self.errors],
        }
        duplicates = self.duplicates
        if duplicates:
            first = duplicates[0]
            payload.update(
                {
                    "error": "DUPLICATE_ENTRY",
                    "duplicateId": first.company.identifier,
                    "companyName": first.company.name,
                    "message": first.message,
                }
            )
        else:
            payload["success"] = self.success
        return payload


def validate_batch(companies: Sequence[EnrichedCompany]) -> None:
    """Reject the batch before any write if a row lacks a name or bidder number."""
    if not companies:
        raise ValidationError("no companies to insert")
    invalid = []
    for company in companies:
        number = company.bidder_number or ""
        if not company.name or len(number) != 10 or parse_number(number) is None:
            invalid.append(company.key)
    if invalid:
        raise ValidationError(f"companies missing a name or 10-digit bidder number: {', '.join(invalid)}")


def insert_batch(
    companies: Sequence[EnrichedCompany],
    fail_fast: bool = True,
    writer: Callable[[EnrichedCompany], None] = insert_supplier,
) -> BatchResult:
    """Write ``companies`` one at a time in order.

    A duplicate stops the batch when ``fail_fast`` is set; write errors are
    recorded and the next record is attempted.
    """
    validate_batch(companies)

    result = BatchResult()
    for company in companies:
        try:
            writer(company)
        except DuplicateConflict as exc:
            value = exc.value if exc.value is not None else str(company.identifier)
            message = f"{company.name} ({exc.label} {value}) already exists"
            logger.warning("Duplicate supplier %s: %s", company.key, exc)
            result.outcomes.append(
                RecordOutcome(company, DUPLICATE, message, conflict_value=value, conflict_label=exc.label)
            )
            if fail_fast:
                result.halted = True
                break
        except WriteError as exc:
            logger.error("Failed to insert supplier %s: %s", company.key, exc)
            result.outcomes.append(RecordOutcome(company, ERROR, str(exc)))
        else:
            result.outcomes.append(RecordOutcome(company, INSERTED))

    logger.info(
        "Batch finished: inserted=%d duplicates=%d errors=%d halted=%s",
        len(result.inserted),
        len(result.duplicates),
        len(result.errors),
        result.halted,
    )
    return result
