"""
Cross-channel role verification.

Session claims are only refreshed on a new sign-in, so a freshly promoted user
can present a stale "citizen" claim. The verifier re-fetches the authoritative
role from the identity provider for the *same* authenticated subject and lets a
write proceed under that role only when it backs what the caller asked for.
"""

import sys
from typing import Optional

from healthwatch.config import ROLE_VERIFY_TIMEOUT_SECONDS
from healthwatch.errors import Unauthenticated, Unauthorized, UpstreamError
from healthwatch.identity import IdentityProvider
from healthwatch.models import Identity, RoleCheck, utc_now_iso
from healthwatch.rbac import authorize, is_allowed, resolve_role, CREATE_RECORD


class RoleVerifier:

    def __init__(self, provider: Optional[IdentityProvider],
                 timeout: float = ROLE_VERIFY_TIMEOUT_SECONDS):
        self.provider = provider
        self.timeout = timeout

    def verify(self, identity: Optional[Identity]) -> RoleCheck:
        """Fetch the authoritative role for the caller from the identity provider."""
        if identity is None:
            raise Unauthenticated()
        if self.provider is None:
            raise UpstreamError("No identity provider configured for role verification")

        try:
            attributes = self.provider.get_user_attributes(identity.subject, timeout=self.timeout)
        except UpstreamError:
            raise
        except Exception as e:
            raise UpstreamError(f"Failed to verify role: {e}") from e

        role = resolve_role(attributes)
        return RoleCheck(
            user_id=identity.subject,
            role=role,
            has_permission=is_allowed(role, CREATE_RECORD),
            raw_attributes=dict(attributes or {}),
            verified_at=utc_now_iso(),
        )

    def effective_role(self, identity: Optional[Identity], action: str,
                       verified_role: Optional[str] = None) -> str:
        """
        Authorize *action*, falling back to an authoritative re-check when the
        cached claim is denied and the caller asked for one via *verified_role*.
        """
        try:
            return authorize(identity, action)
        except Unauthorized as denial:
            if not verified_role:
                raise
            cached_denial = denial

        requested = resolve_role(verified_role)
        try:
            check = self.verify(identity)
        except UpstreamError as e:
            print(
                f"[WARN] Role verification unavailable for {identity.subject}; "
                f"using cached claim only: {e}",
                file=sys.stderr,
            )
            raise cached_denial

        if check.role != requested:
            print(
                f"[WARN] Rejected verified role '{verified_role}' for {identity.subject}: "
                f"identity provider reports '{check.role}'",
                file=sys.stderr,
            )
            raise cached_denial

        role = authorize(identity, action, role=check.role)
        print(
            f"[WARN] trust exception: {identity.subject} authorized for {action} as "
            f"'{role}' by identity provider re-check (cached claim: "
            f"'{resolve_role(identity)}')",
            file=sys.stderr,
        )
        return role
