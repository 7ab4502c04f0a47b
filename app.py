import os
import time

from flask import Flask, jsonify, request

from api.blueprint import create_api_blueprint
from api.schemas.api_responses import fail
from logging_utils import configure_app_logging, get_logger


def init_db() -> None:
    """Create missing tables and the 'Unknown' objects_map row.

    Kept out of default startup path to minimize app spin-up time.
    """

    import db
    from utils.recreate_sqlite_db import ensure_schema

    ensure_schema(db.engine)


def create_app() -> Flask:
    app = Flask(__name__)

    # Load config from file.
    app.config.from_pyfile("settings.py")

    # Configure unified app logging (UTC timestamps, per-file logs, daily rotation)
    configure_app_logging(app.config.get("LOG_LEVEL", "INFO"))
    logger = get_logger(__name__)

    slow_ms = int(app.config.get("SLOW_REQUEST_MS", 250))

    @app.before_request
    def _start_timer():
        if slow_ms > 0:
            request.environ["_req_start_ns"] = time.perf_counter_ns()

    @app.after_request
    def _log_slow_requests(resp):
        if slow_ms <= 0:
            return resp

        start_ns = request.environ.get("_req_start_ns")
        if not start_ns:
            return resp

        elapsed_ms = (time.perf_counter_ns() - int(start_ns)) / 1_000_000.0
        if elapsed_ms >= slow_ms:
            logger.warning(
                "SLOW_REQUEST ms=%.1f status=%s method=%s path=%s query=%s",
                elapsed_ms,
                getattr(resp, "status_code", "?"),
                request.method,
                request.path,
                request.query_string.decode("utf-8", errors="replace"),
            )
        return resp

    app.register_blueprint(create_api_blueprint())

    # Error handlers (JSON envelopes; the API has no HTML pages)
    @app.errorhandler(404)
    def not_found(_err):
        return jsonify(fail("Not found", code="not_found")), 404

    @app.errorhandler(500)
    def server_error(_err):
        logger.exception("Unhandled server error")
        return jsonify(fail("Internal server error", code="server_error")), 500

    # Optional: initialize tables on startup only when explicitly requested.
    if os.getenv("INIT_DB_ON_STARTUP", "0") == "1":
        logger.info("INIT_DB_ON_STARTUP=1; initializing database schema")
        init_db()

    return app


# NOTE: Do not instantiate the Flask app at import time.
# Tests patch the DB engine/sessionmaker before calling create_app().
app: Flask | None = None


if __name__ == "__main__":
    app = create_app()
    get_logger(__name__).info("Starting Flask app")
    app.run(debug=True, use_reloader=False)
