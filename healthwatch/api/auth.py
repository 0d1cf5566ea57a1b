"""
JWT authentication helpers and middleware for the Flask API.

Session tokens are issued by the identity provider; the role they carry is a
cached claim and may lag behind the provider's current value.
"""

from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Any, Dict, Optional

import jwt
from flask import request, jsonify

from healthwatch.config import JWT_ALGORITHM, JWT_ISSUER, JWT_SECRET_KEY, TOKEN_EXPIRY_HOURS
from healthwatch.errors import Unauthenticated
from healthwatch.models import Identity

_METADATA_CLAIMS = ("public_metadata", "publicMetadata", "metadata")


def generate_token(subject: str, role: Optional[str] = None, email: Optional[str] = None,
                   expiry_hours: int = TOKEN_EXPIRY_HOURS) -> str:
    """Issue a session token in the provider's claim format (development and tests)."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "public_metadata": {"role": role} if role else {},
        "iat": now,
        "exp": now + timedelta(hours=expiry_hours),
    }
    if email:
        payload["email"] = email
    if JWT_ISSUER:
        payload["iss"] = JWT_ISSUER
    return jwt.encode(payload, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def verify_token(token: str) -> Optional[Dict[str, Any]]:
    """Verify a JWT token and return the decoded payload (or None)."""
    options = {"require": ["sub", "exp"]}
    try:
        return jwt.decode(
            token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM],
            issuer=JWT_ISSUER, options=options,
        )
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def identity_from_claims(claims: Dict[str, Any]) -> Identity:
    """Wrap the untyped claim set in an Identity."""
    attributes: Dict[str, Any] = {}
    for key in _METADATA_CLAIMS:
        value = claims.get(key)
        if isinstance(value, dict):
            attributes = dict(value)
            break
    email = claims.get("email")
    return Identity(
        subject=str(claims["sub"]),
        attributes=attributes,
        email=str(email) if email else None,
    )


def _bearer_token() -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if not header:
        return None
    parts = header.split(" ")
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1]:
        raise Unauthenticated("Invalid authorization header format")
    return parts[1]


def current_identity() -> Optional[Identity]:
    """Identity of the caller, or None when the request carries no valid token."""
    token = _bearer_token()
    if not token:
        return None
    claims = verify_token(token)
    if not claims:
        raise Unauthenticated("Invalid or expired token")
    return identity_from_claims(claims)


def token_required(f):
    """Decorator that protects endpoints with JWT authentication."""
    @wraps(f)
    def decorated(*args, **kwargs):
        try:
            identity = current_identity()
        except Unauthenticated as e:
            return jsonify(e.to_dict()), 401
        if identity is None:
            return jsonify(Unauthenticated("Authentication token is missing").to_dict()), 401

        request.identity = identity
        return f(*args, **kwargs)

    return decorated


def token_optional(f):
    """Like token_required, but anonymous callers get request.identity = None."""
    @wraps(f)
    def decorated(*args, **kwargs):
        try:
            request.identity = current_identity()
        except Unauthenticated as e:
            return jsonify(e.to_dict()), 401
        return f(*args, **kwargs)

    return decorated
