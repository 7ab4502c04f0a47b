from flask import Blueprint, jsonify

from api.schemas.api_responses import ok

health_bp = Blueprint("health", __name__)


@health_bp.route("/health", methods=["GET"])
def health():
    """Liveness probe; does not touch the database."""
    return jsonify(ok({"status": "ok"})), 200
