# Overview: Flask API routes for settling, unsettling and importing ticket sales.

from flask import Blueprint, request, jsonify

from ..services import settlement_service, bulk_upload_service
from . import (
    json_body, require_int, require_date, optional_int, optional_date,
    resolve_scope_id, upload_text,
)


settlements_bp = Blueprint("settlements", __name__, url_prefix="/api/settlements")


@settlements_bp.post("/<int:distribution_id>/settle")
def settle_route(distribution_id: int):
    """
    Settle a distribution from the first unsold serial number.

    Request body:
    {
        "returned_start_number": 61,     // required; bundle end + 1 when all sold
        "electronic_cents": 20000,       // optional, default 0
        "cash_cents": 40000,             // optional, default revenue - electronic
        "settlement_date": "2026-07-02", // optional, default distribution date
        "scope_id": 1,                   // optional, default active session
        "user_id": 1                     // optional
    }

    Returns:
        200: {distribution, remainder, ledger_entry}
        400: Returned serial out of range
        409: Already settled
    """
    data = json_body()
    result = settlement_service.settle_distribution(
        distribution_id,
        require_int(data, "returned_start_number"),
        scope_id=resolve_scope_id(data),
        electronic_cents=optional_int(data, "electronic_cents"),
        cash_cents=optional_int(data, "cash_cents"),
        settlement_date=optional_date(data, "settlement_date"),
        user_id=optional_int(data, "user_id"),
    )
    return jsonify({
        "distribution": result.distribution.to_dict(),
        "remainder": result.remainder.to_dict() if result.remainder else None,
        "ledger_entry": result.ledger_entry.to_dict() if result.ledger_entry else None,
    })


@settlements_bp.post("/<int:distribution_id>/unsettle")
def unsettle_route(distribution_id: int):
    data = json_body()
    dist = settlement_service.unsettle_distribution(
        distribution_id,
        scope_id=resolve_scope_id(data),
        user_id=optional_int(data, "user_id"),
    )
    return jsonify(dist.to_dict())


@settlements_bp.post("/imported")
def import_sale_route():
    """
    Record a legacy sale with no physical stock.

    Request body:
    {
        "sale_date": "2025-08-01",  // required
        "ride_id": 2,               // required
        "tickets_sold": 120,        // required
        "electronic_cents": 0,      // optional
        "rate_cents": 800,          // optional, overrides the ride rate
        "staff_id": 3,              // optional
        "scope_id": 1,              // optional
        "user_id": 1                // optional
    }
    """
    data = json_body()
    dist = settlement_service.import_sale(
        resolve_scope_id(data),
        require_date(data, "sale_date"),
        require_int(data, "ride_id"),
        require_int(data, "tickets_sold"),
        electronic_cents=optional_int(data, "electronic_cents"),
        rate_cents=optional_int(data, "rate_cents"),
        staff_id=optional_int(data, "staff_id"),
        user_id=optional_int(data, "user_id"),
    )
    return jsonify(dist.to_dict()), 201


@settlements_bp.put("/imported/<int:distribution_id>")
def update_imported_sale_route(distribution_id: int):
    data = json_body()
    dist = settlement_service.update_imported_sale(
        distribution_id,
        scope_id=resolve_scope_id(data),
        sale_date=optional_date(data, "sale_date"),
        ride_id=optional_int(data, "ride_id"),
        tickets_sold=optional_int(data, "tickets_sold"),
        electronic_cents=optional_int(data, "electronic_cents"),
        rate_cents=optional_int(data, "rate_cents"),
        user_id=optional_int(data, "user_id"),
    )
    return jsonify(dist.to_dict())


@settlements_bp.delete("/imported/<int:distribution_id>")
def delete_imported_sale_route(distribution_id: int):
    data = json_body()
    settlement_service.delete_imported_sale(
        distribution_id,
        scope_id=resolve_scope_id(data),
        user_id=optional_int(data, "user_id"),
    )
    return jsonify({"deleted": distribution_id})


@settlements_bp.post("/imported/bulk")
def bulk_import_sales_route():
    """All-or-nothing upload of date,rideName,rate,ticketsSold[,electronic] lines."""
    data = request.form if request.files else json_body()
    dists = bulk_upload_service.bulk_import_sales(
        resolve_scope_id(data),
        upload_text(data),
        user_id=optional_int(data, "user_id"),
    )
    return jsonify({"created": len(dists), "items": [d.to_dict() for d in dists]}), 201
