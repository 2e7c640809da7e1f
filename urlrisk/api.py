"""Main Flask API for urlrisk.

Run: python -m urlrisk.api
"""

import os
import logging
from datetime import datetime, timezone

from flask import Flask, request, jsonify, abort
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
import redis as redis_lib

from . import __version__
from .app.scanner import scan_url
from .batch import MAX_BATCH_SIZE, scan_batch, summarize
from .extract_features import extract_features
from .app.corroboration import build_corroborator
from .policy import load_policy

# Logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("api")

# Flask app
app = Flask(__name__)

# Risk policy is loaded once; an invalid override file fails startup
POLICY = load_policy()

# Optional AI second opinion (None unless URLRISK_AI_* is configured)
corroborator = build_corroborator()

SCAN_LIMIT = os.getenv("URLRISK_SCAN_LIMIT", "30 per minute")
BATCH_LIMIT = os.getenv("URLRISK_BATCH_LIMIT", "10 per minute")

# Rate limiter: prefer Redis storage in production when REDIS_URL is set
REDIS_URL = os.getenv("REDIS_URL")
if REDIS_URL:
    try:
        redis_client = redis_lib.from_url(REDIS_URL)
        redis_client.ping()
        limiter = Limiter(app=app, key_func=get_remote_address,
                          default_limits=["60 per minute"], storage_uri=REDIS_URL)
        logger.info("Using Redis at %s for rate limiting", REDIS_URL)
    except redis_lib.RedisError:
        logger.exception("Failed to connect to Redis, falling back to in-memory limiter")
        limiter = Limiter(app=app, key_func=get_remote_address, default_limits=["60 per minute"])
else:
    limiter = Limiter(app=app, key_func=get_remote_address, default_limits=["60 per minute"])

# API key
API_KEY = os.getenv("URLRISK_API_KEY", None)
if API_KEY:
    logger.info("API key enabled")


def require_api_key() -> None:
    if not API_KEY:
        return
    key = request.headers.get("X-API-Key") or request.args.get("api_key")
    if not key or key != API_KEY:
        abort(401, description="Invalid or missing API key")


@app.errorhandler(401)
def unauthorized(e):
    return jsonify({"error": "unauthorized", "detail": e.description}), 401


@app.errorhandler(429)
def rate_limited(e):
    return jsonify({"error": "rate_limited", "detail": str(e.description)}), 429


def _wants_corroboration(data: dict) -> bool:
    return bool(data.get("corroborate", True))


@app.route("/health", methods=["GET"])
def health():
    return jsonify({"status": "ok", "version": __version__})


@app.route("/scan", methods=["POST"])
@limiter.limit(SCAN_LIMIT)
def scan():
    require_api_key()
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or "url" not in data:
        return jsonify({"error": "missing 'url' in JSON body"}), 400
    if not isinstance(data["url"], str):
        return jsonify({"error": "'url' must be a string"}), 400

    url = data["url"].strip()
    if not url:
        return jsonify({"error": "empty url"}), 400

    helper = corroborator if _wants_corroboration(data) else None
    try:
        result = scan_url(url, corroborator=helper, policy=POLICY)
    except Exception as e:
        logger.exception("Scanner failed: %s", e)
        return jsonify({"error": "scanner_failed", "detail": str(e)}), 500

    return jsonify(result), 200


@app.route("/extract", methods=["POST"])
@limiter.limit(SCAN_LIMIT)
def extract():
    require_api_key()
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not isinstance(data.get("url"), str):
        return jsonify({"error": "missing 'url' in JSON body"}), 400
    url = data["url"].strip()
    if not url:
        return jsonify({"error": "empty url"}), 400
    return jsonify({"url": url, "features": extract_features(url).to_dict()}), 200


@app.route("/batch", methods=["POST"])
@limiter.limit(BATCH_LIMIT)
def batch():
    require_api_key()
    data = request.get_json(silent=True)
    urls = data.get("urls") if isinstance(data, dict) else None
    if not isinstance(urls, list) or not urls:
        return jsonify({"error": "URLs array is required and must not be empty"}), 400
    if len(urls) > MAX_BATCH_SIZE:
        return jsonify({"error": f"Maximum {MAX_BATCH_SIZE} URLs allowed per batch"}), 400
    if not all(isinstance(u, str) for u in urls):
        return jsonify({"error": "each URL must be a string"}), 400

    helper = corroborator if _wants_corroboration(data) else None
    results = scan_batch([u.strip() for u in urls], corroborator=helper, policy=POLICY)

    return jsonify({
        "total": len(urls),
        "results": results,
        "summary": summarize(results),
        "analyzed_at": datetime.now(timezone.utc).isoformat(),
    }), 200


@app.route("/config/policy", methods=["GET"])
def config_policy():
    """Return the active weights and thresholds."""
    return jsonify(POLICY.to_dict()), 200


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", 5050)), debug=False)
