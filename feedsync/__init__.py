from __future__ import annotations

import os
import time
from typing import Optional

import sentry_sdk
from flask import Flask, Response, g, request
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from sentry_sdk.integrations.flask import FlaskIntegration

from feedsync.logging import configure_logging
from feedsync.blueprints.api import api_bp, sync_api_bp
from feedsync.blueprints.api.sync import EXTENSION_KEY
from feedsync.services.triggers import HTTP_TRIGGER, HttpTrigger, OrchestratorFactory


REQUEST_COUNT = Counter(
    "flask_app_requests_total", "Total HTTP requests", ["method", "path", "status_code"]
)
REQUEST_LATENCY = Histogram(
    "flask_app_request_latency_seconds", "Request latency", ["endpoint"]
)


def create_app(orchestrator_factory: Optional[OrchestratorFactory] = None) -> Flask:
    configure_logging()
    dsn = os.getenv("SENTRY_DSN")
    if dsn:
        sentry_sdk.init(dsn=dsn, integrations=[FlaskIntegration()])

    app = Flask(__name__)
    app.config.from_object("config.Config")

    app.register_blueprint(api_bp, url_prefix="/api")

    if HTTP_TRIGGER in app.config.get("SYNC_TRIGGERS", ()):
        if orchestrator_factory is None:
            from feedsync.tasks.sync import build_orchestrator

            def orchestrator_factory():
                return build_orchestrator(app.config)

        app.extensions[EXTENSION_KEY] = HttpTrigger(orchestrator_factory)
        app.register_blueprint(sync_api_bp, url_prefix="/api/sync")

    @app.before_request
    def _start_timer() -> None:  # pragma: no cover - request timing
        g.start_time = time.perf_counter()

    @app.after_request
    def _record_request(
        response: Response,
    ) -> Response:  # pragma: no cover - request timing
        elapsed = time.perf_counter() - getattr(g, "start_time", time.perf_counter())
        endpoint = request.endpoint or "unknown"
        REQUEST_LATENCY.labels(endpoint).observe(elapsed)
        REQUEST_COUNT.labels(request.method, request.path, response.status_code).inc()
        return response

    @app.route("/metrics")
    def metrics() -> Response:
        return Response(generate_latest(), mimetype=CONTENT_TYPE_LATEST)

    @app.route("/health")
    def health() -> tuple[str, int]:
        return "ok", 200

    @app.route("/ready")
    def ready() -> tuple[str, int]:
        return "ok", 200

    return app
