# app.py

from flask import Flask, jsonify, request, g
from flask_cors import CORS
from config import Config
from datetime import datetime
import logging
import numpy as np
from bson import ObjectId
from typing import Any
from werkzeug.exceptions import HTTPException

from utils.errors import PipelineError, SessionNotFoundError, UserNotFoundError, ValidationError

logging.basicConfig(level=getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO))
logger = logging.getLogger(__name__)


def _json_safe(obj: Any) -> Any:
    """Recursively convert ObjectIds, datetimes and numpy numbers so jsonify works."""
    if isinstance(obj, dict):
        return {k: _json_safe(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_json_safe(x) for x in obj]
    if isinstance(obj, ObjectId):
        return str(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, np.floating):
        return float(obj)
    if isinstance(obj, np.integer):
        return int(obj)
    return obj


def _build_store(config):
    from database.db_connection import get_client, get_db
    from database.store import MongoStore

    return MongoStore(get_db(), client=get_client(), use_transactions=config.MONGO_TRANSACTIONS)


def create_app(config=None, store=None):
    """Initialize Flask app and load configuration"""
    config = config or Config
    app = Flask(__name__)
    app.config.from_object(config)

    CORS(
        app,
        resources={r"/api/*": {"origins": config.CORS_ORIGINS}},
        allow_headers=["Content-Type", "Authorization"],
        expose_headers=["X-Token-Expire-Soon"],
        methods=["GET", "POST", "DELETE", "OPTIONS"],
        max_age=86400,
    )

    # -----------------------------
    # Deferred imports
    # -----------------------------
    from database.models import public_user
    from modules.interview.submission import SubmissionCoordinator
    from modules.results.query_assembler import ALL, DEFAULT_LIMIT, SessionQueryAssembler
    from modules.users.accounts import authenticate, delete_account, kakao_login, register_user
    from utils.auth import generate_token, token_required

    store = store or _build_store(config)
    coordinator = SubmissionCoordinator.from_config(store, config)
    assembler = SessionQueryAssembler(store, expected_samples=config.EXPECTED_SAMPLES)
    app.extensions["store"] = store

    # -----------------------------
    # Helpers
    # -----------------------------
    def _ok(data=None, status=200, message=None, meta=None):
        body = {"success": True, "data": _json_safe(data)}
        if message:
            body["message"] = message
        if meta is not None:
            body["meta"] = meta
        return jsonify(body), status

    def _json_body():
        data = request.get_json(silent=True)
        if data is None:
            raise ValidationError("Request body must be valid JSON")
        return data

    def _token_response(user, status=200):
        token = generate_token(user, config.JWT_SECRET, config.JWT_EXPIRES_HOURS)
        return _ok({"token": token, "user": public_user(user)}, status=status)

    def _cached(response):
        resp, status = response
        resp.headers["Cache-Control"] = f"private, max-age={config.RESULTS_CACHE_SECONDS}"
        return resp, status

    # =============================
    # Error handling
    # =============================
    @app.errorhandler(PipelineError)
    def handle_pipeline_error(e):
        if e.status_code >= 500:
            logger.error("%s error: %s", e.kind, e.message)
        else:
            logger.debug("%s error: %s", e.kind, e.message)
        return jsonify(_json_safe(e.to_dict())), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({"success": False, "error": e.description, "kind": "http"}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"success": False, "error": "Something went wrong!", "kind": "error"}), 500

    # =============================
    # Health / Root
    # =============================
    @app.route("/health")
    def health():
        return jsonify({"ok": True}), 200

    # =============================
    # Users
    # =============================
    @app.route("/api/users/register", methods=["POST"])
    def register():
        user = register_user(store, _json_body())
        return _token_response(user, status=201)

    @app.route("/api/users/login", methods=["POST"])
    def login():
        data = _json_body()
        user = authenticate(store, data.get("email"), data.get("password"))
        return _token_response(user)

    @app.route("/api/users/kakao-login", methods=["POST"])
    def kakao_login_route():
        header = request.headers.get("Authorization", "")
        kakao_token = header[7:].strip() if header.startswith("Bearer ") else ""
        user = kakao_login(store, kakao_token)
        return _token_response(user)

    @app.route("/api/users/me", methods=["GET"])
    @token_required
    def me():
        user = store.find_user(g.user_id)
        if not user:
            raise UserNotFoundError("User not found")
        return _ok(public_user(user))

    @app.route("/api/users/me", methods=["DELETE"])
    @token_required
    def delete_me():
        removed = delete_account(store, g.user_id)
        return _ok({"removed": removed}, message="Account deleted")

    # =============================
    # Interview submission
    # =============================
    @app.route("/api/interviews/submit", methods=["POST"])
    @token_required
    def submit_interview():
        out = coordinator.submit(g.user_id, _json_body())
        return _ok(out, status=201, message="Interview submitted successfully")

    @app.route("/api/interviews/<int:session_count>/analyses", methods=["POST"])
    @token_required
    def append_analyses(session_count):
        out = coordinator.append_samples(g.user_id, session_count, _json_body())
        return _ok(out, status=201, message="Analysis results recorded")

    # =============================
    # Results
    # =============================
    @app.route("/api/results/stats", methods=["GET"])
    @token_required
    def result_stats():
        start = request.args.get("start", ALL)
        end = request.args.get("end", ALL)
        return _cached(_ok(assembler.get_statistics(g.user_id, start, end)))

    @app.route("/api/results/<int:session_count>", methods=["GET"])
    @token_required
    def get_result(session_count):
        view = assembler.get_session(g.user_id, session_count)
        if view is None:
            raise SessionNotFoundError("Result not found for this interview count", {"session_count": session_count})
        return _ok(view)

    @app.route("/api/results/period/<start_date>/<end_date>", methods=["GET"])
    @token_required
    def get_period(start_date, end_date):
        history = assembler.get_history(
            g.user_id,
            start_date,
            end_date,
            page=request.args.get("page", 1),
            limit=request.args.get("limit", DEFAULT_LIMIT),
        )
        return _cached(_ok(history["items"], meta=history["meta"]))

    return app


# =============================
# 🚀 Run the Application
# =============================
if __name__ == "__main__":
    application = create_app()
    application.run(host="0.0.0.0", port=5000, debug=Config.DEBUG)
