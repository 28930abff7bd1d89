# Overview: Shared request parsing helpers and JSON error mapping for the ticketing blueprints.

from flask import current_app, jsonify, request

from ..errors import TicketingError, NotFound
from ..validation import ValidationError, ConflictError, parse_int, parse_date
from ..services.scope_service import get_active_scope


def json_body() -> dict:
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    return data


def require_field(data: dict, field: str):
    value = data.get(field)
    if value is None or value == "":
        raise ValidationError(f"{field} is required")
    return value


def optional_int(data, field: str) -> int | None:
    value = data.get(field)
    if value is None or value == "":
        return None
    return parse_int(value, field)


def optional_date(data, field: str):
    value = data.get(field)
    if value is None or value == "":
        return None
    return parse_date(value, field)


def require_date(data, field: str):
    return parse_date(require_field(data, field), field)


def require_int(data, field: str) -> int:
    return parse_int(require_field(data, field), field)


def resolve_scope_id(data) -> int:
    """scope_id from the body/query string, falling back to the active event session."""
    scope_id = optional_int(data, "scope_id")
    if scope_id is not None:
        return scope_id
    scope = get_active_scope()
    if not scope:
        raise NotFound("No active event session; pass scope_id explicitly")
    return scope.id


def upload_text(data: dict) -> str:
    """CSV content from a multipart "file" field or a JSON "csv" string."""
    upload = request.files.get("file")
    if upload is not None:
        return upload.read().decode("utf-8-sig")
    return require_field(data, "csv")


def register_error_handlers(app) -> None:
    @app.errorhandler(TicketingError)
    def handle_ticketing_error(e: TicketingError):
        return jsonify(e.to_dict()), e.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(e: ValidationError):
        return jsonify({"error": str(e), "code": "VALIDATION_ERROR"}), 400

    @app.errorhandler(ConflictError)
    def handle_conflict_error(e: ConflictError):
        return jsonify({"error": str(e), "code": "CONFLICT"}), 409

    @app.errorhandler(500)
    def handle_internal_error(e):
        current_app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"error": "Internal server error"}), 500
