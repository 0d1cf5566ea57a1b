"""
Identity provider clients – the authoritative source of a user's role attribute.
"""

import sys
from typing import Any, Dict, Optional

import requests
from sqlalchemy import insert, select, update

from healthwatch.config import (
    CLERK_API_URL,
    IDENTITY_PROVIDER,
    ROLE_VERIFY_TIMEOUT_SECONDS,
    get_env,
)
from healthwatch.database import portal_users, storage_errors
from healthwatch.errors import NotFound, UpstreamError
from healthwatch.models import utc_now_iso


class IdentityProvider:
    """Interface every identity provider client implements."""

    name = "identity-provider"

    def get_user_attributes(self, user_id: str, timeout: Optional[float] = None) -> Dict[str, Any]:
        """Return the user's public metadata bag (untyped)."""
        raise NotImplementedError

    def set_user_role(self, user_id: str, role: str) -> None:
        raise NotImplementedError

    def ping(self) -> bool:
        return True


class ClerkIdentityProvider(IdentityProvider):
    """Hosted identity provider, accessed through its backend REST API."""

    name = "clerk"

    def __init__(self, secret_key: str, api_url: str = CLERK_API_URL,
                 timeout: float = ROLE_VERIFY_TIMEOUT_SECONDS, session=None):
        self.secret_key = secret_key
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    def _request(self, method: str, path: str, timeout: Optional[float] = None, **kwargs):
        url = f"{self.api_url}/{path.lstrip('/')}"
        try:
            response = self.session.request(
                method, url, headers=self._headers(),
                timeout=timeout or self.timeout, **kwargs,
            )
        except requests.Timeout as e:
            raise UpstreamError(f"Identity provider timed out: {e}") from e
        except requests.RequestException as e:
            raise UpstreamError(f"Identity provider unreachable: {e}") from e

        if response.status_code == 404:
            raise NotFound(f"User not found in identity provider: {path}")
        if response.status_code >= 400:
            raise UpstreamError(
                f"Identity provider returned {response.status_code}: {response.text[:200]}"
            )
        return response.json()

    def get_user_attributes(self, user_id: str, timeout: Optional[float] = None) -> Dict[str, Any]:
        user = self._request("GET", f"users/{user_id}", timeout=timeout)
        return dict(user.get("public_metadata") or {})

    def set_user_role(self, user_id: str, role: str) -> None:
        self._request(
            "PATCH", f"users/{user_id}/metadata",
            json={"public_metadata": {"role": role}},
        )

    def ping(self) -> bool:
        return bool(self.secret_key)


class DatabaseIdentityProvider(IdentityProvider):
    """Local user table standing in for a hosted provider (development and tests)."""

    name = "database"

    def __init__(self, engine):
        self.engine = engine

    def get_user_attributes(self, user_id: str, timeout: Optional[float] = None) -> Dict[str, Any]:
        with storage_errors("get_user_attributes"), self.engine.connect() as conn:
            row = conn.execute(
                select(portal_users).where(portal_users.c.user_id == user_id)
            ).mappings().first()
        if not row:
            return {}
        return {"role": row["role"]}

    def set_user_role(self, user_id: str, role: str) -> None:
        now = utc_now_iso()
        with storage_errors("set_user_role"), self.engine.begin() as conn:
            result = conn.execute(
                update(portal_users)
                .where(portal_users.c.user_id == user_id)
                .values(role=role, updated_at=now)
            )
            if result.rowcount == 0:
                conn.execute(
                    insert(portal_users).values(user_id=user_id, role=role, created_at=now)
                )


def init_identity_provider(engine, kind: str = IDENTITY_PROVIDER) -> IdentityProvider:
    """Build the configured identity provider client."""
    if kind == "clerk":
        provider = ClerkIdentityProvider(get_env("CLERK_SECRET_KEY"))
    elif kind == "database":
        provider = DatabaseIdentityProvider(engine)
    else:
        print(f"ERROR: unknown IDENTITY_PROVIDER '{kind}'", file=sys.stderr)
        sys.exit(1)
    print(f"[init] Using identity provider: {provider.name}")
    return provider
