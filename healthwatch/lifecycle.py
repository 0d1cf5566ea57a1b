"""
Disease record lifecycle: draft → registered, one-way.
"""

from healthwatch.errors import InvalidTransition
from healthwatch.models import STATUS_DRAFT, STATUS_REGISTERED

INITIAL_STATUS = STATUS_DRAFT
TERMINAL_STATUSES = {STATUS_REGISTERED}
ALL_STATUSES = {STATUS_DRAFT, STATUS_REGISTERED}

# Registered records stay patchable under the same ownership rule.
EDITABLE_STATUSES = {STATUS_DRAFT, STATUS_REGISTERED}

_TRANSITIONS = {
    STATUS_DRAFT: {STATUS_REGISTERED},
    STATUS_REGISTERED: set(),
}


def is_editable(status: str) -> bool:
    return status in EDITABLE_STATUSES


def transition(current: str, target: str) -> str:
    """
    Return the status after moving *current* to *target*.

    Asking for the status a record already has in a terminal state is a no-op,
    so repeated registration is idempotent.
    """
    if current not in ALL_STATUSES:
        raise InvalidTransition(f"Unknown record status '{current}'", field="status")
    if target not in ALL_STATUSES:
        raise InvalidTransition(f"Unknown record status '{target}'", field="status")
    if current == target and current in TERMINAL_STATUSES:
        return current
    if target not in _TRANSITIONS[current]:
        raise InvalidTransition(
            f"Cannot move a record from '{current}' to '{target}'", field="status"
        )
    return target
