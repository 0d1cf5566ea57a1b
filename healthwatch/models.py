"""
Domain dataclasses used across the application.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

STATUS_DRAFT = "draft"
STATUS_REGISTERED = "registered"


def utc_now_iso() -> str:
    """Current UTC time, fixed-width so string order matches time order."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


@dataclass
class Identity:
    """The authenticated caller, as described by their (possibly stale) session claim."""
    subject: str
    attributes: Mapping[str, Any] = field(default_factory=dict)  # raw public metadata
    email: Optional[str] = None

    @property
    def role_claim(self) -> Optional[str]:
        """Raw role attribute from the claim, or None when absent."""
        value = self.attributes.get("role") if self.attributes else None
        return None if value is None else str(value)


@dataclass
class SupplyItem:
    name: str
    quantity: int

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "quantity": self.quantity}


@dataclass
class HealthReport:
    """Village-level report, created by ASHA workers or admins. Immutable."""
    id: int
    disease: str
    description: str
    symptoms: List[str]
    village: str
    location: str
    date: str
    image: Optional[str]
    item_name: str
    item_quantity: int
    created_by: str
    created_by_role: str
    created_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "disease": self.disease,
            "description": self.description,
            "symptoms": list(self.symptoms),
            "village": self.village,
            "location": self.location,
            "date": self.date,
            "image": self.image,
            "itemName": self.item_name,
            "itemQuantity": self.item_quantity,
            "createdBy": self.created_by,
            "createdByRole": self.created_by_role,
            "createdAt": self.created_at,
        }


@dataclass
class DiseaseRecord:
    """Detailed, editable disease record with a draft → registered lifecycle."""
    id: int
    disease_name: str
    description: str
    image_url: Optional[str]
    location: Optional[str]
    medical_supplies: List[SupplyItem]
    status: str                  # "draft" or "registered"
    created_by: str
    created_by_role: str
    created_at: str
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "diseaseName": self.disease_name,
            "description": self.description,
            "imageUrl": self.image_url,
            "location": self.location,
            "medicalSupplies": [s.to_dict() for s in self.medical_supplies],
            "status": self.status,
            "createdBy": self.created_by,
            "createdByRole": self.created_by_role,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class RoleCheck:
    """Result of an authoritative role lookup against the identity provider."""
    user_id: str
    role: str
    has_permission: bool
    raw_attributes: Dict[str, Any]
    verified_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "role": self.role,
            "hasPermission": self.has_permission,
            "rawAttributes": self.raw_attributes,
            "verifiedAt": self.verified_at,
        }
