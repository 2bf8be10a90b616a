# Overview: Flask API routes for products operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g

from ..services import catalog_service
from ..decorators import require_auth, require_permission
from ..services.permission_service import POS, PRODUCTS
from . import register_error_handlers, json_body, int_arg


products_bp = Blueprint("products", __name__, url_prefix="/api/products")
register_error_handlers(products_bp)


@products_bp.get("")
@require_auth
@require_permission(POS)
def list_products_route():
    """
    List tenant products (each with stock_status OUT/LOW/OK).

    Query: search, category, include_inactive=1, page, per_page
    """
    result = catalog_service.list_products(
        g.context,
        search=request.args.get("search"),
        category=request.args.get("category"),
        include_inactive=request.args.get("include_inactive") in ("1", "true"),
        page=int_arg("page"),
        per_page=int_arg("per_page"),
    )
    return jsonify(result), 200


@products_bp.get("/low-stock")
@require_auth
@require_permission(POS)
def low_stock_route():
    products = catalog_service.low_stock_products(g.context)
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)}), 200


@products_bp.get("/valuation")
@require_auth
@require_permission(PRODUCTS)
def valuation_route():
    return jsonify(catalog_service.stock_valuation(g.context)), 200


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission(POS)
def get_product_route(product_id: int):
    product = catalog_service.get_product(g.context, product_id)
    return jsonify({"product": product.to_dict()}), 200


@products_bp.post("")
@require_auth
@require_permission(PRODUCTS)
def create_product_route():
    """
    Create product.

    Body: sku, name, price, [description, category, stock, min_stock,
    recommended_discount_percent]. A positive stock is recorded as an
    INITIAL inventory movement.
    """
    product = catalog_service.create_product(g.context, json_body())
    return jsonify({"product": product.to_dict()}), 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_permission(PRODUCTS)
def update_product_route(product_id: int):
    product = catalog_service.update_product(g.context, product_id, json_body())
    return jsonify({"product": product.to_dict()}), 200


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission(PRODUCTS)
def deactivate_product_route(product_id: int):
    """Soft delete: products referenced by orders stay in the database."""
    product = catalog_service.deactivate_product(g.context, product_id)
    return jsonify({"product": product.to_dict()}), 200
