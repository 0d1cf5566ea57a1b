"""
Centralised configuration constants and environment helpers.
"""

import os
import sys

from dotenv import load_dotenv

load_dotenv()

# ── Database ─────────────────────────────────────────────────────────
DB_URI = os.getenv("DB_URI", "sqlite:///healthwatch.db")

# ── Roles ────────────────────────────────────────────────────────────
ROLE_CITIZEN = "citizen"
ROLE_ASHA = "asha"
ROLE_ADMIN = "admin"
DEFAULT_ROLE = ROLE_CITIZEN
PRIVILEGED_ROLES = {ROLE_ASHA, ROLE_ADMIN}

# Invite codes required to self-assign a privileged role.
ASHA_INVITE_CODE = os.getenv("ASHA_INVITE_CODE", "ASHA2025")
ADMIN_INVITE_CODE = os.getenv("ADMIN_INVITE_CODE", "ADMIN2025")

# ── Session tokens (issued by the identity provider) ─────────────────
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-key-change-in-production")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_ISSUER = os.getenv("JWT_ISSUER") or None
TOKEN_EXPIRY_HOURS = 24

# ── Identity provider ────────────────────────────────────────────────
IDENTITY_PROVIDER = os.getenv("IDENTITY_PROVIDER", "database").strip().lower()
CLERK_API_URL = os.getenv("CLERK_API_URL", "https://api.clerk.com/v1")
ROLE_VERIFY_TIMEOUT_SECONDS = float(os.getenv("ROLE_VERIFY_TIMEOUT_SECONDS", "5"))

# ── API server ───────────────────────────────────────────────────────
FRONTEND_URL = os.getenv("FRONTEND_URL", "")
FLASK_ENV = os.getenv("FLASK_ENV", "production")
DEV_ORIGINS = ["http://localhost:3000", "http://localhost:3001"]


def allowed_origins():
    """Origins the API accepts cross-site requests from."""
    return [o for o in [FRONTEND_URL, *DEV_ORIGINS] if o]


def get_env(name: str) -> str:
    """Return an environment variable or exit with an error message."""
    value = os.getenv(name)
    if not value:
        print(f"ERROR: env var {name} is not set", file=sys.stderr)
        sys.exit(1)
    return value
