"""Image studio JSON API package."""

import os
from flask import jsonify
from flask_limiter import Limiter
from flask_limiter.errors import RateLimitExceeded
from flask_limiter.util import get_remote_address
from prometheus_flask_exporter import PrometheusMetrics

from api.v1 import routes as v1_routes


def _build_rate_limit_response(exc: RateLimitExceeded):
    """Return an OpenAI-style JSON error response for rate limit breaches."""

    rate_limit_description = str(exc.limit.limit)
    retry_after = getattr(exc, "retry_after", None)
    if retry_after is None:
        # Fall back to the configured window length when precise timing is unavailable.
        retry_after = int(exc.limit.limit.get_expiry())

    payload = {
        "error": {
            "message": (
                f"Rate limit exceeded: {rate_limit_description}. Try again in {retry_after} seconds."
            ),
            "type": "rate_limit_error",
            "code": "rate_limit_exceeded",
            "param": None,
        }
    }

    response = jsonify(payload)
    response.status_code = exc.code
    response.headers["Retry-After"] = str(retry_after)
    return response


def init_app(app, registry=None):
    """Attach rate limiting, Prometheus metrics and the v1 blueprint to ``app``.

    Only the JSON API is rate limited; the browser pages are not.
    """

    limiter = Limiter(get_remote_address, app=app, default_limits=[])

    @app.errorhandler(RateLimitExceeded)
    def _handle_rate_limit(exc: RateLimitExceeded):
        return _build_rate_limit_response(exc)

    api_limits = ";".join(
        value.strip()
        for value in (
            os.environ.get("API_RATE_LIMIT", "60/hour"),
            os.environ.get("API_DAILY_QUOTA", "1000/day"),
        )
        if value and value.strip()
    )
    if api_limits:
        limiter.limit(api_limits)(v1_routes.v1_bp)

    metrics = PrometheusMetrics(app, registry=registry)
    app.register_blueprint(v1_routes.v1_bp)
    app.extensions["imagestudio.metrics"] = metrics

    return limiter
