# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

import json

from flask import Blueprint, request, jsonify, g

from ..services import inventory_service
from ..decorators import require_auth, require_permission
from ..services.permission_service import INVENTORY
from ..errors import ValidationError
from . import register_error_handlers, json_body, int_arg


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")
register_error_handlers(inventory_bp)


@inventory_bp.post("/movements")
@require_auth
@require_permission(INVENTORY)
def create_movement_route():
    """
    Manual stock adjustment.

    Body: product_id, type IN|OUT, quantity, note?

    Returns:
        201: movement recorded (movement is null when only the stock
             change could be saved; see reconcile)
        409: OUT movement would make stock negative
    """
    data = json_body()
    product_id = data.get("product_id")
    if not isinstance(product_id, int) or isinstance(product_id, bool):
        return jsonify({"error": "product_id must be an integer"}), 400

    product, movement = inventory_service.record_movement(
        g.context,
        product_id,
        data.get("type"),
        data.get("quantity"),
        note=data.get("note"),
    )
    return jsonify({
        "product": product.to_dict(),
        "movement": movement.to_dict() if movement else None,
        "audit_recorded": movement is not None,
    }), 201


@inventory_bp.get("/movements")
@require_auth
@require_permission(INVENTORY)
def list_movements_route():
    """Query: product_id, source, limit, offset."""
    movements = inventory_service.list_movements(
        g.context,
        product_id=int_arg("product_id"),
        source=request.args.get("source"),
        limit=int_arg("limit", 100),
        offset=int_arg("offset", 0),
    )
    return jsonify({"items": [m.to_dict() for m in movements], "count": len(movements)}), 200


@inventory_bp.get("/reconcile")
@require_auth
@require_permission(INVENTORY)
def reconcile_route():
    mismatches = inventory_service.reconcile_stock(g.context, product_id=int_arg("product_id"))
    return jsonify({"ok": not mismatches, "mismatches": mismatches}), 200


def _receipt_payload() -> tuple[dict, bytes | None, str | None, str | None]:
    """JSON body, or multipart form with a `file` part and `lines` as a JSON string."""
    if not request.files and not request.form:
        return json_body(), None, None, None

    data = dict(request.form)
    try:
        data["lines"] = json.loads(data.get("lines") or "[]")
    except ValueError:
        raise ValidationError("lines must be a JSON array")

    upload = request.files.get("file")
    if upload is None or not upload.filename:
        return data, None, None, None
    return data, upload.read(), upload.mimetype, upload.filename


@inventory_bp.post("/receipts")
@require_auth
@require_permission(INVENTORY)
def create_receipt_route():
    """
    Record a purchase receipt.

    Body: lines [{product_id, quantity, unit_cost}], supplier_name?,
    reference_number?, notes? (JSON, or multipart with an attachment `file`)
    """
    data, attachment, content_type, filename = _receipt_payload()
    receipt = inventory_service.record_purchase_receipt(
        g.context,
        data.get("lines"),
        supplier_name=data.get("supplier_name"),
        reference_number=data.get("reference_number"),
        notes=data.get("notes"),
        attachment=attachment,
        attachment_content_type=content_type,
        attachment_filename=filename,
    )
    return jsonify({"receipt": receipt.to_dict()}), 201


@inventory_bp.get("/receipts")
@require_auth
@require_permission(INVENTORY)
def list_receipts_route():
    receipts = inventory_service.list_purchase_receipts(g.context, limit=int_arg("limit", 50))
    return jsonify({"items": [r.to_dict() for r in receipts], "count": len(receipts)}), 200


@inventory_bp.get("/receipts/<int:receipt_id>")
@require_auth
@require_permission(INVENTORY)
def get_receipt_route(receipt_id: int):
    receipt = inventory_service.get_purchase_receipt(g.context, receipt_id)
    return jsonify({"receipt": receipt.to_dict()}), 200
