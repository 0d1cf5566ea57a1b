#!/usr/bin/env python3
"""
Development credentials: session tokens and signing keys.

Usage:
  python scripts/issue_dev_token.py <user_id> [role] [email]
  python scripts/issue_dev_token.py --new-key

Tokens are signed with JWT_SECRET_KEY. The role is only the *cached claim*;
the identity provider's stored role is what /api/verify-role reports.
--new-key prints a fresh signing key as .env lines instead.
"""

import secrets
import sys

from healthwatch.api.auth import generate_token
from healthwatch.config import IDENTITY_PROVIDER, JWT_ALGORITHM, TOKEN_EXPIRY_HOURS


def new_signing_key(nbytes=32):
    """Random hex key for HMAC-signed session tokens."""
    return secrets.token_hex(nbytes)


def signing_key_env_lines(key, algorithm=JWT_ALGORITHM):
    lines = [f"JWT_SECRET_KEY={key}", f"JWT_ALGORITHM={algorithm}"]
    if not algorithm.upper().startswith("HS"):
        lines.append(f"# {algorithm} needs the provider's public key, not a random secret")
    return lines


def main(argv=None):
    args = sys.argv[1:] if argv is None else argv
    if not args:
        print(__doc__.strip(), file=sys.stderr)
        return 1

    if args[0] == "--new-key":
        for line in signing_key_env_lines(new_signing_key()):
            print(line)
        if IDENTITY_PROVIDER == "clerk":
            print("# IDENTITY_PROVIDER=clerk: use the provider's JWT verification key instead")
        return 0

    user_id = args[0]
    role = args[1] if len(args) > 1 else None
    email = args[2] if len(args) > 2 else None

    token = generate_token(user_id, role=role, email=email)
    print(f"# subject={user_id} role_claim={role or '(none)'} expires_in={TOKEN_EXPIRY_HOURS}h")
    print(token)
    return 0


if __name__ == "__main__":
    sys.exit(main())
