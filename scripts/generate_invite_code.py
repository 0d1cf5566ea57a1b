#!/usr/bin/env python3
"""
Generate invite codes for the privileged roles.
Users must present the matching code to /api/set-role to become ASHA or admin.
"""

import secrets
import string


def generate_invite_code(prefix, length=10):
    """Generate a random, easy-to-type invite code."""
    chars = string.ascii_uppercase + string.digits
    random_part = "".join(secrets.choice(chars) for _ in range(length))
    return f"{prefix}-{random_part}"


if __name__ == "__main__":
    print("=" * 70)
    print("HealthWatch Invite Code Generator")
    print("=" * 70)
    print()

    asha_code = generate_invite_code("ASHA")
    admin_code = generate_invite_code("ADMIN", length=16)

    print(f"ASHA_INVITE_CODE={asha_code}")
    print(f"ADMIN_INVITE_CODE={admin_code}")
    print()
    print("=" * 70)
    print("Copy these lines to your .env file and share each code only with")
    print("people who should receive that role. Unset codes fall back to the")
    print("development defaults ASHA2025 / ADMIN2025.")
    print("=" * 70)
