# utils.py

import logging
import traceback

from flask import Flask, jsonify, request

logger = logging.getLogger(__name__)


def setup_cors(app: Flask, origins=("*",)):
    """Configures CORS headers for the Flask app (bot gateway + dashboard)."""
    # Use flask-cors to add common CORS headers automatically.
    from flask_cors import CORS
    allow_all = "*" in origins
    CORS(app, origins="*" if allow_all else list(origins))

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if not allow_all and origin in origins:
            response.headers["Access-Control-Allow-Origin"] = origin
        response.headers.setdefault("Access-Control-Allow-Methods", "GET, POST, OPTIONS")
        response.headers.setdefault("Access-Control-Allow-Headers", "Content-Type, Authorization, X-Requested-With")
        response.headers.setdefault("Access-Control-Max-Age", "3600")
        return response


def server_error(message, error, expose_details=False, key="error"):
    """Log an unexpected failure and build the 500 answer; details only when exposed."""
    logger.error("%s: %s", message, traceback.format_exc())
    body = {key: message}
    if key == "message":
        body["success"] = False
    if expose_details:
        body["details"] = str(error)
    return jsonify(body), 500
