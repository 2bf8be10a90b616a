# Overview: Shared helpers for API blueprints.

from flask import jsonify, request, current_app
from werkzeug.exceptions import HTTPException

from ..errors import DomainError, ValidationError
from ..time_utils import parse_date_range


def register_error_handlers(bp) -> None:
    """
    Translate service errors for every route of a blueprint.

    DomainError -> {"error", "code", "details"} with the error's status;
    anything unexpected is logged and reported as 500.
    """
    @bp.errorhandler(DomainError)
    def handle_domain_error(e):
        return jsonify(e.to_dict()), e.status_code

    @bp.errorhandler(Exception)
    def handle_unexpected(e):
        if isinstance(e, HTTPException):
            return jsonify({"error": e.description}), e.code
        current_app.logger.exception("Unhandled error in %s", bp.name)
        return jsonify({"error": "Internal server error"}), 500


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("JSON body must be an object")
    return data


def int_arg(name: str, default: int | None = None) -> int | None:
    value = request.args.get(name)
    if value in (None, ""):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer")


def date_range_args():
    """(from, to) query args as inclusive UTC bounds; a bare date in `to` covers the whole day."""
    try:
        return parse_date_range(request.args.get("from"), request.args.get("to"))
    except ValueError:
        raise ValidationError("from/to must be ISO-8601 dates or datetimes, with from <= to")
