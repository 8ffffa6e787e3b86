import atexit
import datetime
import json
import signal
import sys
import time
from typing import Any, Dict

import pytz
from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from core.config import Settings, load_settings
from core.errors import ExtractionError, ExtractionTimeout, InvalidURL
from core.logger import get_logger
from core.models import StrategyTag
from core.orchestrator import Deadline, ExtractionOrchestrator
from core.urls import sanitize
from core.validators import validate_preview_request
from extractors import build_extractors
from extractors.rendering import BrowserRenderer
from extractors.vision import OpenAIDescriber

logger = get_logger(__name__)

VERSION = "4.0.0"


def error_response(message: str, status_code: int):
    return jsonify({"error": True, "message": message, "statusCode": status_code}), status_code


def build_preview_response(outcome, source_url: str, started: float) -> Dict[str, Any]:
    data = outcome.record.to_dict()
    data["sourceUrl"] = source_url
    return {
        "success": True,
        "data": data,
        "metadata": {
            "extractionMethod": outcome.strategy.extraction_method,
            "confidence": outcome.confidence,
            "processingTime": round((time.monotonic() - started) * 1000),
            "aiUsed": outcome.strategy is StrategyTag.AI_ASSISTED,
            "fieldsExtracted": outcome.record.field_count(),
            "url": outcome.canonical_url,
            "timestamp": datetime.datetime.now(tz=pytz.UTC).isoformat(),
        },
    }


def create_app(settings: Settings | None = None, orchestrator=None, ai_configured=None) -> Flask:
    settings = settings or load_settings()
    if orchestrator is None:
        orchestrator = ExtractionOrchestrator(
            build_extractors(settings), settings.server.request_timeout
        )
    if ai_configured is None:
        ai_configured = settings.openai.configured

    app = Flask(__name__)
    app.json.sort_keys = False
    app.config["MAX_CONTENT_LENGTH"] = settings.server.max_request_bytes
    started_at = time.time()

    @app.before_request
    def log_request():
        logger.info(
            "Request received: %s %s from %s (%s)",
            request.method,
            request.path,
            request.remote_addr,
            request.headers.get("User-Agent", "-"),
        )

    @app.route("/", methods=["GET"])
    def info():
        return jsonify(
            {
                "success": True,
                "message": "AI-assisted URL preview extraction service",
                "version": VERSION,
                "endpoints": {
                    "preview": "POST /api/preview",
                    "health": "GET /api/health",
                },
            }
        )

    @app.route("/api/health", methods=["GET"])
    def health():
        return jsonify(
            {
                "success": True,
                "message": "AI-assisted URL preview extraction service",
                "timestamp": datetime.datetime.now(tz=pytz.UTC).isoformat(),
                "version": VERSION,
                "uptime": round(time.time() - started_at, 1),
                "features": {
                    "openai": bool(ai_configured),
                    "extractionMethods": [t.extraction_method for t in StrategyTag],
                },
            }
        )

    @app.route("/api/preview", methods=["POST"])
    def preview():
        started = time.monotonic()
        payload = request.get_json(silent=True)

        errors = validate_preview_request(payload, settings.security)
        if errors:
            logger.info("Rejected preview request: %s", ", ".join(errors))
            return error_response(", ".join(errors), 400)

        url = sanitize(payload["url"])
        raw_html = payload.get("raw_html")

        try:
            outcome = orchestrator.extract(
                url,
                raw_html=raw_html,
                deadline=Deadline(settings.server.request_timeout),
            )
        except InvalidURL as exc:
            return error_response(str(exc), 400)
        except ExtractionTimeout as exc:
            logger.warning("Preview for %s timed out: %s", url, exc)
            return error_response("Request timeout - processing took too long", 408)
        except ExtractionError as exc:
            logger.error("Preview extraction error for %s: %s", url, exc)
            return error_response("Internal server error", 500)

        return jsonify(build_preview_response(outcome, url, started))

    @app.errorhandler(404)
    def not_found(e):
        return error_response(f"Route {request.method} {request.path} not found", 404)

    @app.errorhandler(405)
    def method_not_allowed(e):
        return error_response(f"Method {request.method} not allowed for {request.path}", 405)

    @app.errorhandler(413)
    def payload_too_large(e):
        return error_response(
            f"Payload too large (max {settings.server.max_request_bytes} bytes)", 413
        )

    @app.errorhandler(Exception)
    def unhandled(e):
        if isinstance(e, HTTPException):
            return error_response(e.description or e.name, e.code or 500)
        logger.exception("Unhandled error: %s", e)
        return error_response("Internal server error", 500)

    return app


def run_once(url: str, settings: Settings) -> int:
    """Extract a single URL and print the response body as JSON."""
    renderer = BrowserRenderer(settings.render, settings.security)
    try:
        orchestrator = ExtractionOrchestrator(
            build_extractors(settings, renderer=renderer), settings.server.request_timeout
        )
        started = time.monotonic()
        outcome = orchestrator.extract(sanitize(url))
        print(json.dumps(build_preview_response(outcome, sanitize(url), started), indent=2))
        return 0
    finally:
        renderer.close()


def serve(settings: Settings) -> None:
    renderer = BrowserRenderer(settings.render, settings.security)
    describer = OpenAIDescriber(settings.openai)
    orchestrator = ExtractionOrchestrator(
        build_extractors(settings, renderer=renderer, describer=describer),
        settings.server.request_timeout,
    )
    app = create_app(settings, orchestrator, ai_configured=describer.is_configured())

    atexit.register(renderer.close)

    def _shutdown(signum, frame):
        logger.info("Received signal %d, shutting down.", signum)
        raise SystemExit(0)

    signal.signal(signal.SIGTERM, _shutdown)

    logger.info(
        "Starting preview service on port %d (OpenAI configured: %s).",
        settings.server.port,
        describer.is_configured(),
    )
    app.run(host="0.0.0.0", port=settings.server.port, threaded=True)


if __name__ == "__main__":
    try:
        cfg = load_settings()
        if len(sys.argv) > 1:
            raise SystemExit(run_once(sys.argv[1], cfg))
        serve(cfg)
    except ExtractionError as e:
        logger.error("Extraction failed: %s", e)
        raise SystemExit(1)
    except Exception as e:
        logger.exception("Fatal service error: %s", e)
        raise SystemExit(2)
