# Overview: Flask API routes for ticket stock bundles; creation, corrections, listing and bulk upload.

from flask import Blueprint, request, jsonify

from ..services import stock_service, bulk_upload_service
from . import (
    json_body, require_field, require_int, optional_int,
    resolve_scope_id, upload_text,
)


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


@stock_bp.get("")
def list_stock_route():
    """
    List bundles in an event session.

    Query parameters:
    - scope_id: event session (default: active session)
    - status: Available | Distributed | Settled | Cancelled
    - q: color substring, or a serial number contained in the range
    """
    scope_id = resolve_scope_id(request.args)
    bundles = stock_service.list_bundles(
        scope_id,
        status=request.args.get("status") or None,
        q=request.args.get("q"),
    )
    return jsonify({"items": [b.to_dict() for b in bundles], "count": len(bundles)})


@stock_bp.get("/summary")
def stock_summary_route():
    scope_id = resolve_scope_id(request.args)
    return jsonify({"items": stock_service.stock_summary(scope_id)})


@stock_bp.post("")
def create_stock_route():
    """
    Add a bundle.

    Request body:
    {
        "scope_id": 1,          // optional, default active session
        "price_cents": 1000,    // required
        "color": "Red",         // required
        "start_number": 1,      // required
        "end_number": 100,      // required
        "user_id": 1            // optional
    }
    """
    data = json_body()
    bundle = stock_service.create_bundle(
        resolve_scope_id(data),
        require_int(data, "price_cents"),
        require_field(data, "color"),
        require_int(data, "start_number"),
        require_int(data, "end_number"),
        user_id=optional_int(data, "user_id"),
    )
    return jsonify(bundle.to_dict()), 201


@stock_bp.get("/<int:bundle_id>")
def get_stock_route(bundle_id: int):
    return jsonify(stock_service.get_bundle(bundle_id).to_dict())


@stock_bp.put("/<int:bundle_id>")
def update_stock_route(bundle_id: int):
    data = json_body()
    bundle = stock_service.update_bundle(
        bundle_id,
        scope_id=resolve_scope_id(data),
        price_cents=optional_int(data, "price_cents"),
        color=data.get("color"),
        start_number=optional_int(data, "start_number"),
        end_number=optional_int(data, "end_number"),
        user_id=optional_int(data, "user_id"),
    )
    return jsonify(bundle.to_dict())


@stock_bp.post("/<int:bundle_id>/retire")
def retire_stock_route(bundle_id: int):
    data = json_body()
    bundle = stock_service.retire_bundle(
        bundle_id,
        scope_id=resolve_scope_id(data),
        user_id=optional_int(data, "user_id"),
    )
    return jsonify(bundle.to_dict())


@stock_bp.post("/bulk")
def bulk_stock_route():
    """
    All-or-nothing stock upload.

    Accepts a multipart "file" or a JSON body {"csv": "..."} with lines of
    price,color,startSerial,endSerial.
    """
    data = request.form if request.files else json_body()
    bundles = bulk_upload_service.bulk_create_stock(
        resolve_scope_id(data),
        upload_text(data),
        user_id=optional_int(data, "user_id"),
    )
    return jsonify({"created": len(bundles), "items": [b.to_dict() for b in bundles]}), 201
