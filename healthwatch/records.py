"""
Record store facade – every report/record operation, scoped by role and ownership.
"""

import math
import numbers
from collections import Counter
from typing import Any, Callable, Dict, List, Mapping, Optional

from healthwatch import lifecycle
from healthwatch.database import RecordStore
from healthwatch.errors import NotFound, ValidationError
from healthwatch.identity import IdentityProvider
from healthwatch.models import (
    STATUS_REGISTERED,
    DiseaseRecord,
    HealthReport,
    Identity,
    SupplyItem,
    utc_now_iso,
)
from healthwatch.rbac import (
    CREATE_RECORD,
    READ_OWN_RECORDS,
    READ_REGISTERED_RECORDS,
    READ_VILLAGE_DETAIL,
    READ_VILLAGE_SUMMARY,
    REGISTER_ANY_RECORD,
    REGISTER_OWN_RECORD,
    UPDATE_ANY_RECORD,
    UPDATE_OWN_RECORD,
    authorize,
    authorize_record,
    is_allowed,
    resolve_role,
)
from healthwatch.verification import RoleVerifier

# Largest quantity the integer columns hold.
MAX_QUANTITY = 2**31 - 1


# ── Payload validation ───────────────────────────────────────────────

def _require_str(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{key} is required", field=key)
    return value.strip()


def _optional_str(payload: Mapping[str, Any], key: str) -> Optional[str]:
    value = payload.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string", field=key)
    return value


def positive_quantity(value: Any, field: str, label: Optional[str] = None) -> int:
    """
    Accept positive integers (and integral floats) up to MAX_QUANTITY.

    Bools, non-finite floats, zero, negatives and anything too large for the
    integer column raise ValidationError. *label* names the offending value in
    the message when it differs from *field*.
    """
    message = f"{label or field} must be a positive integer up to {MAX_QUANTITY}"
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ValidationError(message, field=field)
    if not isinstance(value, numbers.Integral) and not math.isfinite(value):
        raise ValidationError(message, field=field)
    if value != int(value):
        raise ValidationError(message, field=field)
    if not 0 < int(value) <= MAX_QUANTITY:
        raise ValidationError(message, field=field)
    return int(value)


def parse_supplies(raw: Any) -> List[SupplyItem]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError("medicalSupplies must be a list", field="medicalSupplies")
    supplies = []
    for i, entry in enumerate(raw):
        if not isinstance(entry, Mapping):
            raise ValidationError(
                f"medicalSupplies[{i}] must be an object", field="medicalSupplies"
            )
        name = entry.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValidationError(
                f"medicalSupplies[{i}].name is required", field="medicalSupplies"
            )
        quantity = positive_quantity(
            entry.get("quantity"), "medicalSupplies", label=f"medicalSupplies[{i}].quantity"
        )
        supplies.append(SupplyItem(name=name.strip(), quantity=quantity))
    return supplies


def parse_record_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Mutable disease-record fields; identity and status keys are never read."""
    return {
        "disease_name": _require_str(payload, "diseaseName"),
        "description": _require_str(payload, "description"),
        "image_url": _optional_str(payload, "imageUrl"),
        "location": _optional_str(payload, "location"),
        "medical_supplies": parse_supplies(payload.get("medicalSupplies")),
    }


def parse_report_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    symptoms = payload.get("symptoms", [])
    if not isinstance(symptoms, list) or not all(isinstance(s, str) for s in symptoms):
        raise ValidationError("symptoms must be a list of strings", field="symptoms")
    return {
        "disease": _require_str(payload, "disease"),
        "description": _require_str(payload, "description"),
        "symptoms": [s.strip() for s in symptoms if s.strip()],
        "village": _require_str(payload, "village"),
        "location": _require_str(payload, "location"),
        "date": _require_str(payload, "date"),
        "image": _optional_str(payload, "image"),
        "item_name": _require_str(payload, "itemName"),
        "item_quantity": positive_quantity(payload.get("itemQuantity"), "itemQuantity"),
    }


# ── Service ──────────────────────────────────────────────────────────

class RecordService:
    """Authorization-checked operations over health reports and disease records."""

    def __init__(self, store: RecordStore, provider: Optional[IdentityProvider] = None,
                 verifier: Optional[RoleVerifier] = None,
                 clock: Callable[[], str] = utc_now_iso):
        self.store = store
        self.verifier = verifier or RoleVerifier(provider)
        self.clock = clock

    # ── Create ───────────────────────────────────────────────────────

    def create_report(self, payload: Mapping[str, Any], identity: Optional[Identity],
                      verified_role: Optional[str] = None) -> HealthReport:
        role = self.verifier.effective_role(identity, CREATE_RECORD, verified_role)
        fields = parse_report_fields(payload)
        return self.store.insert_report({
            **fields,
            "created_by": identity.subject,
            "created_by_role": role,
            "created_at": self.clock(),
        })

    def create_draft_record(self, payload: Mapping[str, Any], identity: Optional[Identity],
                            verified_role: Optional[str] = None) -> DiseaseRecord:
        role = self.verifier.effective_role(identity, CREATE_RECORD, verified_role)
        fields = parse_record_fields(payload)
        return self.store.insert_record({
            **fields,
            "status": lifecycle.INITIAL_STATUS,
            "created_by": identity.subject,
            "created_by_role": role,
            "created_at": self.clock(),
        })

    # ── Read ─────────────────────────────────────────────────────────

    def list_own_draft_records(self, identity: Optional[Identity]) -> List[DiseaseRecord]:
        authorize(identity, READ_OWN_RECORDS)
        return self.store.list_records_by_owner(identity.subject)

    def list_registered_records(self, identity: Optional[Identity]) -> List[DiseaseRecord]:
        authorize(identity, READ_REGISTERED_RECORDS)
        return self.store.list_records_by_status(STATUS_REGISTERED)

    def get_village_summary(self, village: str, identity: Optional[Identity]) -> Dict[str, Any]:
        role = authorize(identity, READ_VILLAGE_SUMMARY)
        if not isinstance(village, str) or not village.strip():
            raise ValidationError("village is required", field="village")
        village = village.strip()
        reports = self.store.list_reports_by_village(village)

        if not is_allowed(role, READ_VILLAGE_DETAIL):
            by_disease = Counter(r.disease for r in reports)
            return {"type": "summary", "village": village, "byDisease": dict(by_disease)}

        return {
            "type": "detailed",
            "village": village,
            "reports": [r.to_dict() for r in reports],
        }

    def check_role(self, identity: Optional[Identity]) -> Dict[str, Any]:
        """Diagnostic view of the caller's cached claim."""
        if identity is None:
            return {"authenticated": False, "error": "Not authenticated", "identity": None}
        role = resolve_role(identity)
        return {
            "authenticated": True,
            "role": role,
            "hasPermission": is_allowed(role, CREATE_RECORD),
            "attributes": dict(identity.attributes or {}),
            "identity": {"subject": identity.subject, "email": identity.email},
        }

    # ── Mutate ───────────────────────────────────────────────────────

    def _get_existing(self, record_id: int) -> DiseaseRecord:
        record = self.store.get_record(record_id)
        if record is None:
            raise NotFound(f"Record {record_id} not found")
        return record

    def update_record(self, record_id: int, patch: Mapping[str, Any],
                      identity: Optional[Identity],
                      verified_role: Optional[str] = None) -> DiseaseRecord:
        role = self.verifier.effective_role(identity, UPDATE_OWN_RECORD, verified_role)
        record = self._get_existing(record_id)
        authorize_record(identity, UPDATE_OWN_RECORD, UPDATE_ANY_RECORD,
                         record.created_by, role=role)
        if not lifecycle.is_editable(record.status):
            raise ValidationError(
                f"Record {record_id} can no longer be edited ({record.status})", field="status"
            )
        fields = parse_record_fields(patch)
        updated = self.store.update_record_fields(record_id, fields, self.clock())
        if updated is None:
            raise NotFound(f"Record {record_id} not found")
        return updated

    def register_record(self, record_id: int, identity: Optional[Identity],
                        verified_role: Optional[str] = None) -> DiseaseRecord:
        role = self.verifier.effective_role(identity, REGISTER_OWN_RECORD, verified_role)
        record = self._get_existing(record_id)
        authorize_record(identity, REGISTER_OWN_RECORD, REGISTER_ANY_RECORD,
                         record.created_by, role=role)
        lifecycle.transition(record.status, STATUS_REGISTERED)

        # A concurrent registration may win the conditional update; either way
        # the record ends up registered exactly once.
        if not self.store.mark_registered(record_id, self.clock()):
            print(f"[records] Record {record_id} already registered; nothing to do")
        return self._get_existing(record_id)
