from __future__ import annotations

from functools import wraps

from flask import Flask, current_app, g, jsonify, request, session

from ..core.enums import Role
from ..core.exceptions import (
    AuthorizationError,
    ConflictError,
    DomainError,
    InfrastructureError,
    InvalidTransition,
    NotFoundError,
    TokenAlreadyUsed,
    TokenExpired,
    TokenNotFound,
    ValidationError,
)
from ..users.model import Identity

_STATUS_BY_ERROR = (
    (AuthorizationError, 403),
    (NotFoundError, 404),
    (TokenNotFound, 404),
    (InvalidTransition, 409),
    (ConflictError, 409),
    (TokenAlreadyUsed, 409),
    (TokenExpired, 410),
    (ValidationError, 400),
)


def status_for(exc: DomainError) -> int:
    for cls, status in _STATUS_BY_ERROR:
        if isinstance(exc, cls):
            return status
    return 400


def identity_required(view):
    """Read the identity the auth layer stored in the session."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        if "user_id" not in session or "role" not in session:
            return jsonify({"success": False, "error": "unauthenticated", "message": "login required"}), 401
        try:
            g.identity = Identity(user_id=int(session["user_id"]), role=Role(session["role"]))
        except (TypeError, ValueError):
            return jsonify({"success": False, "error": "unauthenticated", "message": "invalid session"}), 401
        return view(*args, **kwargs)

    return wrapper


def current_identity() -> Identity:
    return g.identity


def ok(data=None, *, message: str | None = None, status: int = 200):
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    return jsonify(body), status


def request_json() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("request body must be a JSON object")
    return data


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def handle_domain_error(exc: DomainError):
        return jsonify({"success": False, "error": exc.kind, "message": str(exc)}), status_for(exc)

    @app.errorhandler(InfrastructureError)
    def handle_infrastructure_error(exc: InfrastructureError):
        current_app.logger.error("infrastructure error: %s", exc)
        return (
            jsonify({"success": False, "error": exc.kind, "message": "storage temporarily unavailable, retry"}),
            503,
        )
