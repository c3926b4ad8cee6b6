# utils/auth.py
from datetime import datetime, timedelta, timezone
from functools import wraps

import jwt
from flask import current_app, g, jsonify, request

JWT_ALGORITHM = "HS256"
EXPIRE_SOON_SECONDS = 300


def generate_token(user, secret, expires_hours=24):
    """Generate JWT token for user"""
    payload = {
        "user_id": str(user["_id"]),
        "email": user["email"],
        "exp": datetime.now(timezone.utc) + timedelta(hours=expires_hours),
    }
    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


def _auth_error(code, message, details=None):
    return jsonify({
        "success": False,
        "error": message,
        "kind": "auth",
        "code": f"AUTH_{code}",
        "details": details,
    }), 401


def token_required(f):
    """Decorator to verify the bearer token and expose g.user_id / g.email"""
    @wraps(f)
    def decorated(*args, **kwargs):
        header = request.headers.get("Authorization", "")
        token = header[7:].strip() if header.startswith("Bearer ") else ""

        if not token:
            return _auth_error("MISSING_TOKEN", "Authentication token is required")

        try:
            payload = jwt.decode(
                token,
                current_app.config["JWT_SECRET"],
                algorithms=[JWT_ALGORITHM],
                options={"require": ["exp", "user_id", "email"]},
            )
        except jwt.ExpiredSignatureError:
            return _auth_error("TOKEN_EXPIRED", "Token has expired")
        except jwt.InvalidTokenError as e:
            return _auth_error("INVALID_TOKEN", "Invalid token", {"detail": str(e)})

        g.user_id = payload["user_id"]
        g.email = payload["email"]

        response = current_app.make_response(f(*args, **kwargs))
        remaining = payload["exp"] - datetime.now(timezone.utc).timestamp()
        if remaining < EXPIRE_SOON_SECONDS:
            response.headers["X-Token-Expire-Soon"] = "true"
        return response

    return decorated
