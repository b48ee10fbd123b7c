"""Database helpers for the registry and supplier store."""

import logging
import re
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import psycopg2
from psycopg2 import errorcodes, pool

from onboarding.core.config import get_settings
from onboarding.models import CompanyCandidate, EnrichedCompany

logger = logging.getLogger(__name__)

REGISTRY = "registry"
SUPPLIER = "supplier"

_pools: Dict[str, pool.SimpleConnectionPool] = {}

_DUPLICATE_DETAIL = re.compile(r"Key \((?P<column>[^)]+)\)=\((?P<value>.*)\) already exists")
_CONFLICT_LABELS = {
    "suppuserid": "supplier ID",
    "sup_email": "email",
}


class StoreError(RuntimeError):
    """Base class for supplier store write failures."""


class DuplicateConflict(StoreError):
    """The store rejected a write because a business key already exists."""

    def __init__(self, message: str, column: Optional[str] = None, value: Optional[str] = None) -> None:
        super().__init__(message)
        self.column = column
        self.value = value

    @property
    def label(self) -> str:
        return _CONFLICT_LABELS.get(self.column or "", self.column or "key")


class WriteError(StoreError):
    """Any store failure other than a uniqueness conflict."""


def _dsn_for(name: str) -> str:
    settings = get_settings()
    if name == REGISTRY:
        return settings.registry_database_url
    if name == SUPPLIER:
        return settings.supplier_database_url
    raise ValueError(f"unknown database {name!r}")


def init_pool(name: str = SUPPLIER, minconn: int = 1, maxconn: int = 5) -> pool.SimpleConnectionPool:
    """Initialise and return the shared connection pool for ``name``."""
    if name not in _pools:
        dsn = _dsn_for(name)
        if not dsn:
            raise RuntimeError(f"{name.upper()}_DATABASE_URL is required for database connections")
        _pools[name] = pool.SimpleConnectionPool(
            minconn,
            maxconn,
            dsn=dsn,
            connect_timeout=10,
        )
        logger.info("Database connection pool %s initialised", name)
    return _pools[name]


@contextmanager
def get_connection(name: str = SUPPLIER):
    """Context manager yielding a pooled connection.

    A connection that failed at the transport level is closed instead of being
    handed back to the pool.
    """
    pg_pool = init_pool(name)
    conn = pg_pool.getconn()
    broken = False
    try:
        yield conn
    except (psycopg2.InterfaceError, psycopg2.OperationalError):
        broken = True
        raise
    finally:
        pg_pool.putconn(conn, close=broken or bool(getattr(conn, "closed", False)))


_SEARCH_COMPANIES = """
SELECT
    fldi_company_id,
    fldv_companyname,
    fldi_vendor_id,
    fldv_address,
    fldv_phone,
    fldv_email,
    fldv_website
FROM tbl_company_mst
WHERE fldv_companyname ILIKE %(pattern)s
ORDER BY fldv_companyname
LIMIT %(limit)s;
"""


def _is_numeric_vendor(vendor_id: Any) -> bool:
    return vendor_id is not None and str(vendor_id).strip().isdigit()


def _escape_like(fragment: str) -> str:
    return fragment.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def search_companies(query: str, limit: Optional[int] = None) -> List[CompanyCandidate]:
    """Case-insensitive name search, skipping purely numeric vendor IDs."""
    fragment = (query or "").strip()
    if not fragment:
        raise ValueError("search query is required")
    limit = limit or get_settings().registry_search_limit

    params = {"pattern": f"%{_escape_like(fragment)}%", "limit": limit}
    with get_connection(REGISTRY) as conn:
        with conn.cursor() as cur:
            cur.execute(_SEARCH_COMPANIES, params)
            rows = cur.fetchall()

    candidates = []
    for company_id, name, vendor_id, address, phone, email, website in rows:
        if _is_numeric_vendor(vendor_id):
            continue
        candidates.append(
            CompanyCandidate(
                identifier=company_id,
                name=name,
                address=address,
                phone=phone,
                email=email,
                website=website,
                vendor_id=vendor_id,
            )
        )
    logger.debug("Search %r returned %d of %d rows", fragment, len(candidates), len(rows))
    return candidates


def _prepare_params(company: EnrichedCompany) -> Dict[str, Any]:
    candidate = company.candidate
    return {
        "suppuserid": str(candidate.identifier),
        "sup_name": candidate.name,
        "sup_address1": candidate.address,
        "sup_town": company.town or None,
        "sup_phone": candidate.phone,
        "sup_email": candidate.email or None,
        "sup_website": candidate.website,
        "date_prequal": company.date_prequal,
        "bidder_number": company.bidder_number,
    }


_INSERT_SUPPLIER = """
INSERT INTO tblsupplier (
    suppuserid,
    sup_name,
    sup_address1,
    sup_town,
    sup_phone,
    sup_email,
    sup_website,
    date_prequal,
    bidder_number
) VALUES (
    %(suppuserid)s,
    %(sup_name)s,
    %(sup_address1)s,
    %(sup_town)s,
    %(sup_phone)s,
    %(sup_email)s,
    %(sup_website)s,
    %(date_prequal)s,
    %(bidder_number)s
);
"""


def _duplicate_from(exc: psycopg2.Error) -> DuplicateConflict:
    diag = getattr(exc, "diag", None)
    detail = getattr(diag, "message_detail", None) or ""
    match = _DUPLICATE_DETAIL.search(detail)
    if match:
        return DuplicateConflict(detail, column=match.group("column"), value=match.group("value"))
    return DuplicateConflict(detail or str(exc).strip())


def _rollback(conn) -> None:
    try:
        conn.rollback()
    except psycopg2.Error as exc:
        logger.warning("Rollback failed on a broken connection: %s", exc)


def insert_supplier(company: EnrichedCompany) -> None:
    """Insert one supplier row, committing on success.

    Raises DuplicateConflict on a unique-key violation and WriteError on any
    other database failure.
    """
    params = _prepare_params(company)
    try:
        with get_connection(SUPPLIER) as conn:
            try:
                with conn.cursor() as cur:
                    cur.execute(_INSERT_SUPPLIER, params)
                conn.commit()
            except psycopg2.Error:
                _rollback(conn)
                raise
    except psycopg2.Error as exc:
        if exc.pgcode == errorcodes.UNIQUE_VIOLATION:
            raise _duplicate_from(exc) from exc
        raise WriteError(str(exc).strip() or exc.__class__.__name__) from exc
    logger.debug("Inserted supplier %s", params["suppuserid"])
