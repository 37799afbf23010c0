"""Flask glue shared by every controller.

Responses use one envelope: ``{success, message, data?, errors?}``. Domain
errors raised by services are mapped to status codes here, once.
"""

from __future__ import annotations

import logging
import time
from functools import wraps
from typing import Any, Mapping, Optional

from flask import Flask, current_app, g, jsonify, request, session
from werkzeug.exceptions import HTTPException

from ..access.model import Principal
from ..access.scope import AccessScope
from ..common.pagination import Page, PageRequest
from ..core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    DomainError,
    NotFoundError,
    ServerError,
    UnresolvedIdentity,
    ValidationError,
)

logger = logging.getLogger(__name__)

EXTENSION_KEY = "presence_tracker"

STATUS_BY_ERROR: dict[type, int] = {
    ValidationError: 422,
    ConflictError: 400,
    UnresolvedIdentity: 400,
    AuthenticationError: 401,
    AuthorizationError: 403,
    NotFoundError: 404,
    ServerError: 500,
}


def ok(data: Any = None, message: str = "", status: int = 200):
    body: dict[str, Any] = {"success": True, "message": message}
    if data is not None:
        body["data"] = data
    return jsonify(body), status


def fail(message: str, status: int, errors: Optional[Mapping[str, Any]] = None):
    body: dict[str, Any] = {"success": False, "message": message}
    if errors:
        body["errors"] = dict(errors)
    return jsonify(body), status


def paginated(page: Page, items: list) -> dict:
    return {
        "items": items,
        "total": page.total,
        "page": page.page,
        "per_page": page.per_page,
        "last_page": page.last_page,
    }


def payload() -> dict:
    """JSON body, falling back to form fields for multipart uploads."""

    body = request.get_json(silent=True)
    if isinstance(body, dict):
        return body
    return request.form.to_dict()


def page_request() -> PageRequest:
    return PageRequest.from_args(request.args, current_app.config.get("DEFAULT_PER_PAGE", 15))


def container():
    return current_app.extensions[EXTENSION_KEY]


def _bearer_token() -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return None


def current_principal() -> Optional[Principal]:
    """Principal from the session, else from a bearer token; None when anonymous."""

    if "principal" in g:
        return g.principal

    auth = container().auth_service
    principal = None
    if "user_id" in session:
        try:
            principal = auth.principal_for(int(session["user_id"]))
        except AuthenticationError:
            session.clear()
    if principal is None:
        token = _bearer_token()
        if token:
            principal = auth.resolve_token(token)

    g.principal = principal
    return principal


def current_scope() -> AccessScope:
    principal = current_principal()
    if principal is None:
        raise AuthenticationError()
    return AccessScope(principal)


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        principal = current_principal()
        if principal is None:
            raise AuthenticationError()
        if not principal.is_active:
            raise AuthorizationError("Account is inactive")
        return view(*args, **kwargs)

    return wrapper


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def handle_domain_error(exc: DomainError):
        status = 500
        for cls in type(exc).__mro__:
            if cls in STATUS_BY_ERROR:
                status = STATUS_BY_ERROR[cls]
                break
        if status >= 500:
            logger.error("Request failed: %s", exc.message)
        errors = exc.errors if isinstance(exc, ValidationError) else None
        return fail(exc.message, status, errors)

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return fail(exc.description or exc.name, exc.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return fail("Internal server error", 500)


def register_request_logging(app: Flask) -> None:
    @app.before_request
    def start_timer():
        g.request_started = time.perf_counter()

    @app.after_request
    def log_request(response):
        started = g.get("request_started")
        elapsed_ms = (time.perf_counter() - started) * 1000 if started else 0.0
        principal = g.get("principal")
        logger.info(
            "%s %s -> %s (user=%s, %.1fms)",
            request.method,
            request.path,
            response.status_code,
            principal.user_id if principal else "-",
            elapsed_ms,
        )
        return response
