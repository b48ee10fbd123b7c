"""Core data models shared by the supplier onboarding pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Mapping, Optional, Union

Identifier = Union[str, int]

# Payload keys accepted for each candidate field; the upper-case names are the
# column labels the operator UI historically sent.
_FIELD_ALIASES = {
    "identifier": ("id", "identifier", "suppuserid"),
    "name": ("name", "SUP_NAME"),
    "address": ("address", "SUP_Address1"),
    "phone": ("phone", "SUP_Phone"),
    "email": ("email", "SUP_Email"),
    "website": ("website", "SUP_Website"),
    "vendor_id": ("vendor_id",),
}


class ValidationError(ValueError):
    """Raised when caller input is malformed, before any network or store call."""


@dataclass(frozen=True)
class CompanyCandidate:
    """Snapshot of a company returned by the registry search."""

    identifier: Identifier
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    vendor_id: Optional[str] = None

    @property
    def key(self) -> str:
        return str(self.identifier)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "CompanyCandidate":
        if not isinstance(payload, Mapping):
            raise ValidationError("company payload must be an object")

        values: Dict[str, Any] = {}
        for attr, aliases in _FIELD_ALIASES.items():
            for alias in aliases:
                if payload.get(alias) not in (None, ""):
                    values[attr] = payload[alias]
                    break

        identifier = values.get("identifier")
        if identifier is None or isinstance(identifier, bool):
            raise ValidationError("company id is required")
        name = values.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValidationError(f"company {identifier} is missing a name")

        def _text(attr: str) -> Optional[str]:
            value = values.get(attr)
            return str(value).strip() if value is not None else None

        return cls(
            identifier=identifier,
            name=name.strip(),
            address=_text("address"),
            phone=_text("phone"),
            email=_text("email"),
            website=_text("website"),
            vendor_id=_text("vendor_id"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.identifier,
            "name": self.name,
            "address": self.address,
            "phone": self.phone,
            "email": self.email,
            "website": self.website,
            "vendor_id": self.vendor_id,
        }


@dataclass
class EnrichedCompany:
    """A selected candidate carrying its onboarding attributes."""

    candidate: CompanyCandidate
    town: str = ""
    bidder_number: str = ""
    date_prequal: date = field(default_factory=date.today)
    duplicate: bool = False
    extras: Dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return self.candidate.key

    @property
    def identifier(self) -> Identifier:
        return self.candidate.identifier

    @property
    def name(self) -> str:
        return self.candidate.name

    def to_dict(self) -> Dict[str, Any]:
        payload = self.candidate.to_dict()
        payload.update(
            {
                "town": self.town,
                "bidder_number": self.bidder_number,
                "date_prequal": self.date_prequal.isoformat(),
                "duplicate": self.duplicate,
            }
        )
        if self.extras:
            payload["extras"] = dict(self.extras)
        return payload


@dataclass(frozen=True)
class ProviderResult:
    """First match returned by the geocoding provider."""

    address: Dict[str, str]
    display_name: str


@dataclass(frozen=True)
class TownResult:
    town: str
    display_name: str
    source: str  # "geocoder", "cache" or "fallback"
