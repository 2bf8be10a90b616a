# Overview: Flask API routes for clients operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g

from ..services import client_service
from ..decorators import require_auth, require_permission
from ..services.permission_service import CLIENTS
from . import register_error_handlers, json_body


clients_bp = Blueprint("clients", __name__, url_prefix="/api/clients")
register_error_handlers(clients_bp)


@clients_bp.get("")
@require_auth
@require_permission(CLIENTS)
def list_clients_route():
    clients = client_service.list_clients(g.context, search=request.args.get("search"))
    return jsonify({"items": [c.to_dict() for c in clients], "count": len(clients)}), 200


@clients_bp.get("/<int:client_id>")
@require_auth
@require_permission(CLIENTS)
def get_client_route(client_id: int):
    client = client_service.get_client(g.context, client_id)
    return jsonify({"client": client.to_dict()}), 200


@clients_bp.post("")
@require_auth
@require_permission(CLIENTS)
def create_client_route():
    client = client_service.create_client(g.context, json_body())
    return jsonify({"client": client.to_dict()}), 201
