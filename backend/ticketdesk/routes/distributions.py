# Overview: Flask API routes for ticket distributions to staff.

from flask import Blueprint, request, jsonify

from ..services import distribution_service, bulk_upload_service
from . import (
    json_body, require_int, require_date, optional_int, optional_date,
    resolve_scope_id, upload_text,
)


distributions_bp = Blueprint("distributions", __name__, url_prefix="/api/distributions")


@distributions_bp.get("")
def list_distributions_route():
    scope_id = resolve_scope_id(request.args)
    dists = distribution_service.list_distributions(
        scope_id,
        status=request.args.get("status") or None,
        staff_id=optional_int(request.args, "staff_id"),
    )
    return jsonify({"items": [d.to_dict() for d in dists], "count": len(dists)})


@distributions_bp.post("")
def distribute_route():
    """
    Hand a whole Available bundle to a staff member.

    Request body:
    {
        "scope_id": 1,                      // optional, default active session
        "staff_id": 3,                      // required
        "ride_id": 2,                       // required
        "bundle_id": 10,                    // required
        "distribution_date": "2026-07-02",  // required
        "user_id": 1                        // optional
    }

    Returns:
        201: Distribution created
        404: Staff, ride or bundle not found
        409: Bundle not available
    """
    data = json_body()
    dist = distribution_service.distribute(
        resolve_scope_id(data),
        require_int(data, "staff_id"),
        require_int(data, "ride_id"),
        require_int(data, "bundle_id"),
        require_date(data, "distribution_date"),
        user_id=optional_int(data, "user_id"),
    )
    return jsonify(dist.to_dict()), 201


@distributions_bp.get("/<int:distribution_id>")
def get_distribution_route(distribution_id: int):
    return jsonify(distribution_service.get_distribution(distribution_id).to_dict())


@distributions_bp.put("/<int:distribution_id>")
def edit_distribution_route(distribution_id: int):
    data = json_body()
    dist = distribution_service.edit_distribution(
        distribution_id,
        scope_id=resolve_scope_id(data),
        staff_id=optional_int(data, "staff_id"),
        ride_id=optional_int(data, "ride_id"),
        bundle_id=optional_int(data, "bundle_id"),
        distribution_date=optional_date(data, "distribution_date"),
        user_id=optional_int(data, "user_id"),
    )
    return jsonify(dist.to_dict())


@distributions_bp.post("/<int:distribution_id>/cancel")
def cancel_distribution_route(distribution_id: int):
    data = json_body()
    dist = distribution_service.cancel_distribution(
        distribution_id,
        scope_id=resolve_scope_id(data),
        user_id=optional_int(data, "user_id"),
    )
    return jsonify(dist.to_dict())


@distributions_bp.delete("/<int:distribution_id>")
def delete_distribution_route(distribution_id: int):
    data = json_body()
    distribution_service.delete_distribution(
        distribution_id,
        scope_id=resolve_scope_id(data),
        user_id=optional_int(data, "user_id"),
    )
    return jsonify({"deleted": distribution_id})


@distributions_bp.post("/bulk")
def bulk_distribute_route():
    """All-or-nothing upload of date,staffName,rideName,startSerial lines."""
    data = request.form if request.files else json_body()
    dists = bulk_upload_service.bulk_distribute(
        resolve_scope_id(data),
        upload_text(data),
        user_id=optional_int(data, "user_id"),
    )
    return jsonify({"created": len(dists), "items": [d.to_dict() for d in dists]}), 201
