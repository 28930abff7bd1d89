# Overview: Flask API routes for event sessions (scopes).

from flask import Blueprint, request, jsonify

from ..services import scope_service, audit_service
from ..errors import NotFound
from . import json_body, require_field, require_date, optional_date, optional_int


scopes_bp = Blueprint("scopes", __name__, url_prefix="/api/scopes")


@scopes_bp.get("")
def list_scopes_route():
    return jsonify({"items": [s.to_dict() for s in scope_service.list_scopes()]})


@scopes_bp.get("/active")
def active_scope_route():
    scope = scope_service.get_active_scope()
    if not scope:
        raise NotFound("No active event session")
    return jsonify(scope.to_dict())


@scopes_bp.post("")
def create_scope_route():
    """
    Create an event session.

    Request body:
    {
        "name": "Summer Fair 2026",   // required
        "start_date": "2026-07-01",   // required
        "end_date": "2026-07-14",     // optional
        "activate": true              // optional, default false
    }
    """
    data = json_body()
    scope = scope_service.create_scope(
        require_field(data, "name"),
        require_date(data, "start_date"),
        optional_date(data, "end_date"),
        activate=bool(data.get("activate", False)),
    )
    return jsonify(scope.to_dict()), 201


@scopes_bp.post("/<int:scope_id>/activate")
def activate_scope_route(scope_id: int):
    return jsonify(scope_service.activate_scope(scope_id).to_dict())


@scopes_bp.get("/<int:scope_id>/audit")
def scope_audit_route(scope_id: int):
    """Most recent audit entries for a session. Query: limit (default 100)."""
    scope_service.get_scope(scope_id)
    limit = optional_int(request.args, "limit") or 100
    entries = audit_service.list_audit_entries(event_session_id=scope_id, limit=limit)
    return jsonify({"items": [e.to_dict() for e in entries]})
