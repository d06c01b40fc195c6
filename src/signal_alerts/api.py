# src/signal_alerts/api.py
"""
HTTP surface for the alert pipeline.

POST /api/process-signal-alerts   database webhook for inserted/updated signals
GET  /health                      liveness probe
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from flask import Flask, jsonify, request

from signal_alerts import __version__
from signal_alerts.alerts.pipeline import AlertPipeline, create_pipeline
from signal_alerts.config import Settings

logger = logging.getLogger(__name__)


def create_app(pipeline: Optional[AlertPipeline] = None, settings: Optional[Settings] = None) -> Flask:
    """Build the Flask app around an injected (or freshly wired) pipeline."""
    settings = settings or Settings()
    pipeline = pipeline or create_pipeline(settings)

    app = Flask(__name__)

    @app.route("/api/process-signal-alerts", methods=["POST"])
    def process_signal_alerts():
        """Handle incoming signal trigger."""
        logger.info("🚀 Processing signal alerts API call...")
        body = request.get_json(silent=True)
        result = pipeline.process(body)
        return jsonify(result.body), result.status_code

    @app.route("/health", methods=["GET"])
    def health():
        """Health check endpoint."""
        return jsonify({
            "status": "healthy",
            "service": "signal-alerts",
            "version": __version__,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

    return app


def run_server(settings: Optional[Settings] = None):
    settings = settings or Settings()
    app = create_app(settings=settings)
    logger.info(f"Starting signal alerts server on port {settings.port}")
    app.run(host="0.0.0.0", port=settings.port)
