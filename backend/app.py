import os
import logging

from dotenv import load_dotenv
from flask import Flask

from admin_routes import admin_bp
from appointment_routes import appointment_bp
from booking import BookingService
from config import BookingConfig, load_config
from notifications import WhatsAppNotifier
from store import ClinicStore
from utils import setup_cors

# --- Initialization ---
load_dotenv()

logger = logging.getLogger(__name__)


def create_app(config: BookingConfig = None, store=None, notifier=None):
    """Factory function to create and configure the Flask application."""
    config = config or load_config()
    store = store or ClinicStore.from_config(config)

    app = Flask(__name__)
    setup_cors(app, config.cors_origins)

    # Shared components, read by the Blueprints through current_app.config
    app.config['BOOKING_CONFIG'] = config
    app.config['CLINIC_STORE'] = store
    app.config['BOOKING_SERVICE'] = BookingService(store, config)
    app.config['NOTIFIER'] = notifier or WhatsAppNotifier(config)

    app.register_blueprint(appointment_bp)
    app.register_blueprint(admin_bp)

    @app.route("/", methods=["GET"])
    def health():
        return "🚀 CronosFlow Backend Online!", 200

    logger.info(
        "Booking API ready (policy=%s, redirect_to_holding=%s, grid=%s..%s)",
        config.availability_policy,
        config.redirect_to_holding,
        config.time_grid[0] if config.time_grid else "-",
        config.time_grid[-1] if config.time_grid else "-",
    )
    return app


# ======================================================
# 🚀 APP ENTRY POINT
# ======================================================
def main():
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
    app = create_app()
    port = int(os.getenv("PORT", "3000"))
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
