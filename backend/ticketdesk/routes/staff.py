# Overview: Flask API routes for the staff directory.

from flask import Blueprint, request, jsonify

from ..services import staff_service
from . import json_body, require_field


staff_bp = Blueprint("staff", __name__, url_prefix="/api/staff")


@staff_bp.get("")
def list_staff_route():
    active_only = request.args.get("active_only", "false").lower() == "true"
    return jsonify({"items": [s.to_dict() for s in staff_service.list_staff(active_only)]})


@staff_bp.post("")
def create_staff_route():
    data = json_body()
    staff = staff_service.create_staff(
        require_field(data, "name"),
        phone=data.get("phone"),
        role=data.get("role"),
    )
    return jsonify(staff.to_dict()), 201


@staff_bp.get("/<int:staff_id>")
def get_staff_route(staff_id: int):
    return jsonify(staff_service.get_staff(staff_id).to_dict())
