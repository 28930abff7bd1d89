# Overview: Flask API routes for the ride rate catalog.

from flask import Blueprint, request, jsonify

from ..services import rate_service
from . import json_body, require_field, require_int, optional_int


rides_bp = Blueprint("rides", __name__, url_prefix="/api/rides")


@rides_bp.get("")
def list_rides_route():
    active_only = request.args.get("active_only", "false").lower() == "true"
    return jsonify({"items": [r.to_dict() for r in rate_service.list_rides(active_only)]})


@rides_bp.post("")
def create_ride_route():
    """
    Create a ride.

    Request body:
    {
        "name": "Ferris Wheel",  // required, unique
        "rate_cents": 1000,      // required, unit price
        "user_id": 1             // optional, acting user
    }
    """
    data = json_body()
    ride = rate_service.create_ride(
        require_field(data, "name"),
        require_int(data, "rate_cents"),
        user_id=optional_int(data, "user_id"),
    )
    return jsonify(ride.to_dict()), 201


@rides_bp.post("/<int:ride_id>/toggle")
def toggle_ride_route(ride_id: int):
    data = json_body()
    ride = rate_service.toggle_ride_active(ride_id, user_id=optional_int(data, "user_id"))
    return jsonify(ride.to_dict())


@rides_bp.delete("/<int:ride_id>")
def delete_ride_route(ride_id: int):
    data = json_body()
    rate_service.delete_ride(ride_id, user_id=optional_int(data, "user_id"))
    return jsonify({"deleted": ride_id})
