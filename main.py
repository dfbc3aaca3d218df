"""
Trip scheduler – main application entry point

* Flask app exposing the itinerary planner under ``/planner``.
* The itinerary being edited lives in the signed session cookie; the
  persistence layer that owns trips long-term is a separate service.
"""

import os
import logging

from flask import Flask
from flask_cors import CORS
from dotenv import load_dotenv

from trip_scheduler.api.config import get_port, get_secret_key
from trip_scheduler.routes import create_planner_blueprint

# --------------------------------------------------------------------------- #
# Environment & logging
# --------------------------------------------------------------------------- #
load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# --------------------------------------------------------------------------- #
# Flask initialisation
# --------------------------------------------------------------------------- #
def create_app(config=None):
    """Build the Flask application.

    Args:
        config: Optional mapping applied on top of the defaults (tests use it)
    """
    app = Flask(__name__)

    secret_key = get_secret_key()
    if not secret_key:
        logger.warning("No FLASK_SECRET_KEY found. Generated a temporary key.")
        secret_key = os.urandom(32).hex()
    app.secret_key = secret_key

    app.config.update(
        SESSION_COOKIE_SECURE=False,
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE="Lax",
        PERMANENT_SESSION_LIFETIME=86400,
    )
    if config:
        app.config.update(config)

    # CORS for local dev / cross‑origin front‑end requests
    CORS(app, origins="*", supports_credentials=True)

    app.register_blueprint(create_planner_blueprint())

    @app.route("/debug")
    def debug():
        """Simple JSON health endpoint."""
        return {
            "status": "ok",
            "endpoints": {
                "itinerary": "/planner/api/itinerary",
                "health": "/planner/health",
            },
        }

    return app


app = create_app()

# --------------------------------------------------------------------------- #
# Local development runner ( `python main.py` )
# --------------------------------------------------------------------------- #
if __name__ == "__main__":
    port = get_port()
    logger.info("Starting planner on http://localhost:%d", port)
    app.run(host="0.0.0.0", port=port, debug=False)

__all__ = ["app", "create_app"]
