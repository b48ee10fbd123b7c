"""HTTP entrypoint for the supplier onboarding dashboard."""

from __future__ import annotations

import logging
import os
import threading
from functools import wraps
from io import BytesIO
from typing import Any, Callable, Dict, Optional

from flask import Flask, g, jsonify, request, send_file
from werkzeug.exceptions import HTTPException

from onboarding.core import db
from onboarding.core.config import get_settings
from onboarding.etl.town_resolver import TownResolver
from onboarding.jobs.session import CompanyNotSelected, OnboardingSession, SessionBusy
from onboarding.models import CompanyCandidate, ValidationError

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# ---------- App & sessions ----------
app = Flask(__name__)
_sessions: Dict[str, OnboardingSession] = {}
_sessions_lock = threading.Lock()
_resolver: Optional[TownResolver] = None


def get_resolver() -> TownResolver:
    """Process-wide resolver so every session shares one address cache."""
    global _resolver
    if _resolver is None:
        _resolver = TownResolver()
    return _resolver


def _credential() -> Optional[str]:
    token = request.cookies.get("token") or request.headers.get("Authorization") or ""
    if token.lower().startswith("bearer "):
        token = token[7:]
    return token.strip() or None


def require_auth(view: Callable) -> Callable:
    @wraps(view)
    def wrapper(*args, **kwargs):
        token = _credential()
        if not token:
            return jsonify({"error": "Access denied. No token provided."}), 401
        if token not in get_settings().auth_tokens:
            return jsonify({"error": "Invalid or expired token."}), 401
        g.token = token
        return view(*args, **kwargs)

    return wrapper


def current_session() -> OnboardingSession:
    with _sessions_lock:
        session = _sessions.get(g.token)
        if session is None:
            session = OnboardingSession(resolver=get_resolver())
            _sessions[g.token] = session
        return session


def _selection_payload(session: OnboardingSession) -> Dict[str, Any]:
    return {
        "base_number": session.base_number,
        "in_flight": session.in_flight,
        "companies": [company.to_dict() for company in session.selection],
    }


# ---------- Error handlers ----------


@app.errorhandler(ValidationError)
def handle_validation_error(exc: ValidationError) -> Any:
    return jsonify({"error": str(exc)}), 400


@app.errorhandler(SessionBusy)
def handle_busy(exc: SessionBusy) -> Any:
    return jsonify({"error": str(exc)}), 409


@app.errorhandler(CompanyNotSelected)
def handle_missing_company(exc: CompanyNotSelected) -> Any:
    return jsonify({"error": f"company {exc.args[0]} is not selected"}), 404


@app.errorhandler(Exception)
def handle_unexpected(exc: Exception) -> Any:
    if isinstance(exc, HTTPException):
        return exc
    logger.exception("Unhandled error: %s", exc)
    return jsonify({"error": "unexpected error"}), 500


# ---------- Routes ----------


@app.get("/healthz")
def healthcheck() -> Any:
    return jsonify({"status": "ok", "revision": os.getenv("K_REVISION", "unknown")}), 200


@app.get("/api/companies/search")
@require_auth
def search_companies() -> Any:
    query = (request.args.get("query") or "").strip()
    if not query:
        return jsonify({"error": "Missing or invalid query parameter"}), 400
    candidates = db.search_companies(query)
    return jsonify({"data": [candidate.to_dict() for candidate in candidates]}), 200


@app.post("/api/companies/resolve-town")
@require_auth
def resolve_town() -> Any:
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    result = get_resolver().resolve_town(payload.get("address"))
    return jsonify({"data": {"town": result.town, "display_name": result.display_name, "source": result.source}}), 200


@app.get("/api/selection")
@require_auth
def get_selection() -> Any:
    return jsonify({"data": _selection_payload(current_session())}), 200


@app.delete("/api/selection")
@require_auth
def clear_selection() -> Any:
    session = current_session()
    session.clear()
    return jsonify({"data": _selection_payload(session)}), 200


@app.post("/api/selection/companies")
@require_auth
def add_company() -> Any:
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    candidate = CompanyCandidate.from_payload(payload)
    session = current_session()
    if candidate.key in session.selection:
        return jsonify({"error": f"{candidate.name} is already in your selection"}), 409
    company = session.add(candidate, town=payload.get("town") or payload.get("SUP_Town") or "")
    return jsonify({"data": company.to_dict()}), 201


@app.patch("/api/selection/companies/<company_id>")
@require_auth
def update_company(company_id: str) -> Any:
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    company = current_session().update(
        company_id,
        town=payload.get("town"),
        bidder_number=payload.get("bidder_number"),
        date_prequal=payload.get("date_prequal"),
    )
    return jsonify({"data": company.to_dict()}), 200


@app.delete("/api/selection/companies/<company_id>")
@require_auth
def remove_company(company_id: str) -> Any:
    session = current_session()
    session.remove(company_id)
    return jsonify({"data": _selection_payload(session)}), 200


@app.put("/api/selection/base-number")
@require_auth
def set_base_number() -> Any:
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    session = current_session()
    if not session.set_base_number(payload.get("base_number")):
        return jsonify({"error": "base_number must be numeric"}), 400
    return jsonify({"data": _selection_payload(session)}), 200


@app.post("/api/selection/export/text")
@require_auth
def export_text() -> Any:
    content = current_session().export_text()
    return send_file(
        BytesIO(content),
        mimetype="text/plain",
        as_attachment=True,
        download_name="suppliers.txt",
    )


@app.post("/api/selection/export/excel")
@require_auth
def export_excel() -> Any:
    content = current_session().export_workbook()
    return send_file(
        BytesIO(content),
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name="suppliers.xlsx",
    )


@app.post("/api/selection/insert")
@require_auth
def insert_selection() -> Any:
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    fail_fast = payload.get("fail_fast", True)
    if not isinstance(fail_fast, bool):
        raise ValidationError("fail_fast must be true or false")
    result = current_session().insert(fail_fast=fail_fast)
    status = 409 if result.duplicates else 200
    return jsonify(result.to_payload()), status


def main() -> None:
    port = get_settings().worker_port
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
