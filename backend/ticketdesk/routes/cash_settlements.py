# Overview: Flask API routes for staff cash reconciliation.

from flask import Blueprint, request, jsonify

from ..services import cash_reconciliation_service
from ..validation import ValidationError, parse_int
from . import (
    json_body, require_int, optional_int, optional_date, resolve_scope_id,
)


cash_settlements_bp = Blueprint("cash_settlements", __name__, url_prefix="/api/cash-settlements")


@cash_settlements_bp.get("")
def list_cash_settlements_route():
    scope_id = resolve_scope_id(request.args)
    records = cash_reconciliation_service.list_staff_settlements(
        scope_id,
        staff_id=optional_int(request.args, "staff_id"),
        status=request.args.get("status") or None,
    )
    return jsonify({"items": [r.to_dict() for r in records]})


@cash_settlements_bp.get("/expected")
def expected_cash_route():
    """
    Cash a staff member should be holding.

    Query parameters:
    - staff_id: required
    - scope_id: default active session
    - as_of: ISO date, default no upper bound
    """
    scope_id = resolve_scope_id(request.args)
    staff_id = require_int(request.args, "staff_id")
    expected = cash_reconciliation_service.compute_expected(
        staff_id, scope_id, as_of=optional_date(request.args, "as_of"),
    )
    return jsonify({"staff_id": staff_id, "scope_id": scope_id, "expected_cents": expected})


@cash_settlements_bp.post("")
def record_cash_settlement_route():
    """
    Record declared cash against expected.

    Request body:
    {
        "staff_id": 3,             // required
        "expected_cents": 500000,  // optional, computed when omitted
        "actual_cents": 480000,    // required
        "notes": "...",            // optional
        "settlement_date": "...",  // optional, default today
        "scope_id": 1,             // optional
        "user_id": 1               // optional
    }

    Returns:
        201: short/excess recorded
        200: amounts matched, nothing recorded
    """
    data = json_body()
    scope_id = resolve_scope_id(data)
    staff_id = require_int(data, "staff_id")
    expected = optional_int(data, "expected_cents")
    if expected is None:
        expected = cash_reconciliation_service.compute_expected(staff_id, scope_id)

    record = cash_reconciliation_service.record_settlement(
        staff_id,
        scope_id,
        expected,
        require_int(data, "actual_cents"),
        data.get("notes"),
        settlement_date=optional_date(data, "settlement_date"),
        user_id=optional_int(data, "user_id"),
    )
    if record is None:
        return jsonify({"recorded": False, "expected_cents": expected})
    return jsonify({"recorded": True, "settlement": record.to_dict()}), 201


@cash_settlements_bp.post("/clear")
def clear_cash_settlements_route():
    data = json_body()
    ids = data.get("settlement_ids")
    if not isinstance(ids, list) or not ids:
        raise ValidationError("settlement_ids must be a non-empty list")
    cleared = cash_reconciliation_service.clear_batch(
        [parse_int(i, "settlement_ids") for i in ids],
        user_id=optional_int(data, "user_id"),
        cleared_on=optional_date(data, "cleared_on"),
    )
    return jsonify({"cleared": [r.id for r in cleared]})


@cash_settlements_bp.get("/unsettled-totals")
def unsettled_totals_route():
    scope_id = resolve_scope_id(request.args)
    return jsonify({"items": cash_reconciliation_service.unsettled_totals(scope_id)})


@cash_settlements_bp.get("/review")
def review_unsettled_route():
    scope_id = resolve_scope_id(request.args)
    grouped = cash_reconciliation_service.review_unsettled(scope_id)
    return jsonify({
        "items": [
            {"staff_name": name, **bucket}
            for name, bucket in grouped.items()
        ]
    })


@cash_settlements_bp.get("/<int:settlement_id>")
def get_cash_settlement_route(settlement_id: int):
    return jsonify(cash_reconciliation_service.get_staff_settlement(settlement_id).to_dict())
