"""
Role-Based Access Control – resolving roles and building policies.
"""

from dataclasses import dataclass
from typing import Any, FrozenSet, Mapping, Optional, Union

from healthwatch.config import ROLE_ADMIN, ROLE_ASHA, ROLE_CITIZEN, DEFAULT_ROLE
from healthwatch.errors import Forbidden, Unauthenticated, Unauthorized
from healthwatch.models import Identity

# ── Actions ──────────────────────────────────────────────────────────
CREATE_RECORD = "create_record"
READ_OWN_RECORDS = "read_own_records"
READ_REGISTERED_RECORDS = "read_registered_records"
UPDATE_OWN_RECORD = "update_own_record"
UPDATE_ANY_RECORD = "update_any_record"
REGISTER_OWN_RECORD = "register_own_record"
REGISTER_ANY_RECORD = "register_any_record"
READ_VILLAGE_SUMMARY = "read_village_summary"
READ_VILLAGE_DETAIL = "read_village_detail"

_CITIZEN_ACTIONS = frozenset({READ_VILLAGE_SUMMARY})
_ASHA_ACTIONS = _CITIZEN_ACTIONS | {
    CREATE_RECORD,
    READ_OWN_RECORDS,
    READ_REGISTERED_RECORDS,
    UPDATE_OWN_RECORD,
    REGISTER_OWN_RECORD,
    READ_VILLAGE_DETAIL,
}
_ADMIN_ACTIONS = _ASHA_ACTIONS | {UPDATE_ANY_RECORD, REGISTER_ANY_RECORD}

_DENIAL_MESSAGES = {
    CREATE_RECORD: "Only ASHA/Admin can create records",
    READ_OWN_RECORDS: "Only ASHA/Admin can view disease records",
    READ_REGISTERED_RECORDS: "Only ASHA/Admin can view registered records",
    UPDATE_OWN_RECORD: "Only ASHA/Admin can update disease records",
    REGISTER_OWN_RECORD: "Only ASHA/Admin can register disease records",
    READ_VILLAGE_DETAIL: "Only ASHA/Admin can view detailed village reports",
}


@dataclass(frozen=True)
class Policy:
    """RBAC policy for a resolved role."""
    role: str
    allowed_actions: FrozenSet[str]
    bypasses_ownership: bool
    notes: str


def resolve_role(source: Union[Identity, Mapping[str, Any], str, None]) -> str:
    """
    Normalise a raw role string, attribute bag or Identity to citizen / asha / admin.
    Never raises; anything unrecognised is a citizen.
    """
    if source is None:
        return DEFAULT_ROLE
    if isinstance(source, Identity):
        raw = source.role_claim
    elif isinstance(source, str):
        raw = source
    elif isinstance(source, Mapping):
        raw = source.get("role")
    else:
        return DEFAULT_ROLE
    if raw is None:
        return DEFAULT_ROLE
    role = str(raw).lower().strip()
    if role in (ROLE_ASHA, ROLE_ADMIN):
        return role
    return DEFAULT_ROLE


def build_policy(role: str) -> Policy:
    """Derive the RBAC Policy for a normalised role."""

    if role == ROLE_ADMIN:
        return Policy(
            role=ROLE_ADMIN,
            allowed_actions=frozenset(_ADMIN_ACTIONS),
            bypasses_ownership=True,
            notes="Admin can create, edit and register any record.",
        )

    if role == ROLE_ASHA:
        return Policy(
            role=ROLE_ASHA,
            allowed_actions=frozenset(_ASHA_ACTIONS),
            bypasses_ownership=False,
            notes="ASHA workers can create records and edit or register their own.",
        )

    return Policy(
        role=ROLE_CITIZEN,
        allowed_actions=_CITIZEN_ACTIONS,
        bypasses_ownership=False,
        notes="Citizens only see aggregate disease counts per village.",
    )


def is_allowed(role: str, action: str) -> bool:
    return action in build_policy(resolve_role(role)).allowed_actions


def can_create_record(role: str) -> bool:
    return is_allowed(role, CREATE_RECORD)


def authorize(identity: Optional[Identity], action: str, role: Optional[str] = None) -> str:
    """
    Check the base permission for *action* and return the role it was granted under.

    *role* overrides the claim-derived role (used after an authoritative re-check).
    """
    if identity is None:
        raise Unauthenticated()
    role = role or resolve_role(identity)
    if not is_allowed(role, action):
        message = _DENIAL_MESSAGES.get(action, f"Role '{role}' is not allowed to {action}")
        raise Unauthorized(f'{message}. Your current role is: "{role}".', role=role)
    return role


def authorize_record(identity: Optional[Identity], own_action: str, any_action: str,
                     created_by: str, role: Optional[str] = None) -> str:
    """Base permission plus ownership: the caller must own the record unless admin."""
    role = authorize(identity, own_action, role=role)
    if created_by == identity.subject:
        return role
    if is_allowed(role, any_action) and build_policy(role).bypasses_ownership:
        return role
    raise Forbidden("You can only modify your own records")
