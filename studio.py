from __future__ import annotations

import argparse
import json
import logging
import os
import secrets
import signal
import sys
import threading
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from flask import (
    Blueprint,
    Flask,
    Response,
    current_app,
    g,
    jsonify,
    redirect,
    render_template,
    request,
    session,
    url_for,
)
from prometheus_client import CollectorRegistry, Counter
from werkzeug.exceptions import NotFound, RequestEntityTooLarge
from werkzeug.serving import make_server

from api import init_app
from api.v1.routes import IMAGE_SERVICE_EXTENSION
from config import Config, get_config
from ui.panels import EditorPanel, PanelBusyError, get_executor, shutdown_executor
from ui.shell import EDITOR_TAB, GENERATOR_TAB, SessionStore, Shell
from utils.providers.base import ImageService
from utils.providers.gemini import GeminiImageService
from utils.providers.registry import get_image_service

# Logging --------------------------------------------------------------------

def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


class JsonFormatter(logging.Formatter):
    """Render log records as structured JSON."""

    _RESERVED = {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
    }

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - logging API
        payload: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key in self._RESERVED or key.startswith("_"):
                continue
            payload[key] = value

        return json.dumps(payload, default=_json_default)


def setup_logging() -> logging.Logger:
    """Configure the ``imagestudio`` logger tree with JSON formatting."""

    logger = logging.getLogger("imagestudio")
    if logger.handlers:
        return logger

    log_level = os.environ.get("IMAGE_STUDIO_LOG_LEVEL", "INFO").upper()
    logger.setLevel(log_level)
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    logger.propagate = False

    logging.getLogger("werkzeug").setLevel(logging.WARNING)
    logging.captureWarnings(True)

    return logger


LOGGER = setup_logging()


DRAINING = threading.Event()


def configure_app_logging(flask_app: Flask) -> None:
    """Ensure Flask's logger shares the JSON formatter."""

    flask_app.logger.handlers = []
    for handler in LOGGER.handlers:
        flask_app.logger.addHandler(handler)
    flask_app.logger.setLevel(LOGGER.level)
    flask_app.logger.propagate = False


# CLI ------------------------------------------------------------------------

def _configure_mock_mode(enable_mock: bool) -> None:
    if not enable_mock or os.environ.get("USE_MOCK_IMAGES") == "1":
        return

    os.environ["USE_MOCK_IMAGES"] = "1"
    LOGGER.info("mock.images.enabled", extra={"use_mock_images": True})


def _build_cli_parser(*, add_help: bool = True) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="AI Image Studio web server", add_help=add_help)
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to run the studio on (defaults to server.port from config)",
    )
    parser.add_argument(
        "--host",
        default=None,
        help="Host interface to bind (defaults to server.host from config)",
    )
    parser.add_argument(
        "--use_mock_images",
        action="store_true",
        help="Serve placeholder images instead of calling Gemini",
    )
    return parser


def parse_cli_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments when running the studio directly."""

    return _build_cli_parser().parse_args(argv)


# Application ----------------------------------------------------------------

SESSION_STORE_EXTENSION = "imagestudio.sessions"
REQUEST_COUNTER_EXTENSION = "imagestudio.request_counter"
SESSION_KEY = "studio_session"

IGNORED_LOG_ENDPOINTS = {"studio.livez", "studio.healthz", "prometheus_metrics"}

studio_bp = Blueprint("studio", __name__)


def _build_request_counter(registry: CollectorRegistry) -> Counter:
    return Counter(
        "imagestudio_requests_total",
        "Total HTTP requests processed by the image studio",
        ["method", "endpoint", "status"],
        registry=registry,
    )


def create_app(
    config: Optional[Config] = None,
    *,
    image_service: Optional[ImageService] = None,
    executor=None,
) -> Flask:
    """Instantiate and configure the Flask application."""

    config = config or get_config()
    flask_app = Flask(__name__, template_folder="templates", static_folder="static")
    configure_app_logging(flask_app)

    secret_key = config.get("ui.secret_key")
    if not secret_key:
        secret_key = secrets.token_hex(32)
        if config.is_production:
            LOGGER.warning("studio.secret_key.generated")

    flask_app.config.update(
        SECRET_KEY=secret_key,
        MAX_CONTENT_LENGTH=config.max_upload_bytes,
        ACCEPTED_MIME_TYPES=list(config.get("ui.accepted_mime_types", [])),
        MAX_UPLOAD_MB=config.get("ui.max_upload_mb", 10),
    )

    service = image_service or get_image_service(config)
    submit_executor = executor or get_executor(int(config.get("server.workers", 4)))
    editor_prompt = config.get("ui.editor_default_prompt", "")
    generator_prompt = config.get("ui.generator_default_prompt", "")

    def _new_shell() -> Shell:
        return Shell(
            service,
            editor_prompt=editor_prompt,
            generator_prompt=generator_prompt,
            executor=submit_executor,
        )

    registry = CollectorRegistry()
    flask_app.extensions[IMAGE_SERVICE_EXTENSION] = service
    flask_app.extensions[SESSION_STORE_EXTENSION] = SessionStore(
        _new_shell,
        ttl_seconds=float(config.get("ui.session_ttl_seconds", 1800)),
    )
    flask_app.extensions[REQUEST_COUNTER_EXTENSION] = _build_request_counter(registry)

    init_app(flask_app, registry=registry)
    flask_app.register_blueprint(studio_bp)

    LOGGER.info(
        "studio.app.initialized",
        extra={"env": config.env, "image_service": type(service).__name__},
    )
    return flask_app


@studio_bp.before_app_request
def _record_request_start():
    g.request_start_time = time.time()
    g.request_id = request.headers.get("X-Request-Id") or secrets.token_hex(8)


@studio_bp.after_app_request
def _log_request(response: Response):
    endpoint = request.endpoint or "unknown"
    status_code = str(response.status_code)

    counter = current_app.extensions.get(REQUEST_COUNTER_EXTENSION)
    if counter is not None:
        counter.labels(request.method, endpoint, status_code).inc()

    duration = None
    if hasattr(g, "request_start_time"):
        duration = max(time.time() - g.request_start_time, 0)

    if endpoint not in IGNORED_LOG_ENDPOINTS:
        LOGGER.info(
            "http.request",
            extra={
                "http_method": request.method,
                "http_path": request.path,
                "http_status": int(status_code),
                "duration_ms": round((duration or 0) * 1000, 2),
                "request_id": getattr(g, "request_id", None),
                "user_agent": request.headers.get("User-Agent"),
            },
        )

    if getattr(g, "request_id", None):
        response.headers.setdefault("X-Request-Id", g.request_id)

    if endpoint == "prometheus_metrics":
        response.headers.setdefault("Cache-Control", "no-store")

    return response


@studio_bp.app_errorhandler(RequestEntityTooLarge)
def _upload_too_large(exc: RequestEntityTooLarge):
    limit = current_app.config.get("MAX_UPLOAD_MB")
    message = f"The uploaded file is too large (max {limit}MB)."
    if request.path.startswith("/api/"):
        return jsonify({"error": {"message": message, "type": "invalid_request_error"}}), 413

    LOGGER.info("studio.upload.too_large", extra={"http_path": request.path, "limit_mb": limit})
    shell = _current_shell()
    shell.select(EDITOR_TAB)
    return _render(shell, notice=message, status=413)


@studio_bp.route("/healthz", methods=["GET"])
def healthz():
    store = current_app.extensions[SESSION_STORE_EXTENSION]
    service = current_app.extensions[IMAGE_SERVICE_EXTENSION]
    status = {
        "status": "ok",
        "imageService": type(service).__name__,
        "activeSessions": len(store),
    }

    if DRAINING.is_set():
        status["status"] = "draining"
        status.setdefault("details", {})["shutdown"] = True
        response = jsonify(status)
        response.status_code = 503
        response.headers["Retry-After"] = "0"
        response.headers.setdefault("Cache-Control", "no-store")
        return response

    if isinstance(service, GeminiImageService) and not service.api_key:
        status["status"] = "degraded"
        status.setdefault("details", {})["apiKey"] = "missing"
        return jsonify(status), 503

    return jsonify(status)


@studio_bp.route("/livez", methods=["GET"])
def livez():
    return jsonify({"status": "alive"})


# UI ---------------------------------------------------------------------------

def _current_shell() -> Shell:
    store: SessionStore = current_app.extensions[SESSION_STORE_EXTENSION]
    session_id, shell = store.get(session.get(SESSION_KEY))
    session[SESSION_KEY] = session_id
    return shell


def _render(shell: Shell, *, notice: Optional[str] = None, status: int = 200):
    panel = shell.active_panel
    context = {
        "tabs": shell.tabs,
        "active_tab": shell.active_tab,
        "state": panel.state,
        "can_submit": panel.can_submit,
        "preview": panel.preview if isinstance(panel, EditorPanel) else None,
        "notice": notice,
        "accept": ", ".join(current_app.config.get("ACCEPTED_MIME_TYPES") or []),
        "max_upload_mb": current_app.config.get("MAX_UPLOAD_MB"),
    }
    return render_template("index.html", **context), status


@studio_bp.route("/")
def index():
    shell = _current_shell()
    tab = request.args.get("tab")
    if tab:
        try:
            shell.select(tab)
        except ValueError:
            raise NotFound(f"Unknown tab: {tab}")
    return _render(shell)


@studio_bp.route("/editor/upload", methods=["POST"])
def editor_upload():
    shell = _current_shell()
    panel = shell.select(EDITOR_TAB)

    if "prompt" in request.form:
        panel.set_prompt(request.form["prompt"])

    upload = request.files.get("image")
    if upload is not None and upload.filename:
        panel.select_file(upload)

    return redirect(url_for("studio.index", tab=EDITOR_TAB))


def _submit(tab: str):
    shell = _current_shell()
    panel = shell.select(tab)
    try:
        future = panel.submit(request.form.get("prompt"))
    except PanelBusyError as exc:
        return _render(shell, notice=str(exc), status=409)

    future.result()
    return redirect(url_for("studio.index", tab=tab))


@studio_bp.route("/editor/submit", methods=["POST"])
def editor_submit():
    return _submit(EDITOR_TAB)


@studio_bp.route("/generator/submit", methods=["POST"])
def generator_submit():
    return _submit(GENERATOR_TAB)


# Entrypoint -------------------------------------------------------------------

def serve(flask_app: Flask, host: str, port: int) -> None:
    """Run the studio using Werkzeug's threaded server."""

    server = make_server(host, port, flask_app, threaded=True)
    ctx = flask_app.app_context()
    ctx.push()

    shutdown_requested = threading.Event()

    def _handle_signal(signum, _frame):
        LOGGER.info("studio.shutdown_signal", extra={"signal": signum})
        shutdown_requested.set()
        DRAINING.set()
        threading.Thread(target=server.shutdown, daemon=True).start()

    signal.signal(signal.SIGTERM, _handle_signal)
    signal.signal(signal.SIGINT, _handle_signal)

    LOGGER.info("studio.startup", extra={"host": host, "port": port})

    try:
        server.serve_forever()
    finally:
        ctx.pop()
        shutdown_executor(wait=False)
        LOGGER.info(
            "studio.shutdown",
            extra={"requested": shutdown_requested.is_set()},
        )


def main(argv: list[str] | None = None) -> None:
    args = parse_cli_args(argv)
    _configure_mock_mode(args.use_mock_images)

    config = get_config()
    host = os.environ.get("STUDIO_HOST") or args.host or config.get("server.host", "127.0.0.1")
    port_value = os.environ.get("STUDIO_PORT") or args.port or config.get("server.port", 5010)
    try:
        port = int(port_value)
    except ValueError:
        LOGGER.warning("studio.invalid_port", extra={"port": port_value})
        port = int(config.get("server.port", 5010))

    serve(create_app(config), host, port)


if __name__ == '__main__':  # pragma: no cover
    main()
