"""
Shared fixtures: in-memory database, fake identity provider, fake clock.
"""

from datetime import datetime, timedelta, timezone

import pytest

from healthwatch.database import make_engine, metadata, RecordStore
from healthwatch.errors import UpstreamError
from healthwatch.identity import IdentityProvider
from healthwatch.models import Identity
from healthwatch.records import RecordService


# ── Fakes ────────────────────────────────────────────────────────────

class FakeIdentityProvider(IdentityProvider):
    """Authoritative roles kept in a dict; can be switched to fail like an outage."""

    name = "fake"

    def __init__(self, roles=None):
        self.roles = dict(roles or {})
        self.fail_with = None
        self.calls = []

    def get_user_attributes(self, user_id, timeout=None):
        self.calls.append(("get", user_id, timeout))
        if self.fail_with:
            raise self.fail_with
        if user_id not in self.roles:
            return {}
        return {"role": self.roles[user_id]}

    def set_user_role(self, user_id, role):
        self.calls.append(("set", user_id, role))
        if self.fail_with:
            raise self.fail_with
        self.roles[user_id] = role


class FakeClock:
    """Returns strictly increasing ISO timestamps, one second apart."""

    def __init__(self):
        self.now = datetime(2025, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        self.now += timedelta(seconds=1)
        return self.now.isoformat(timespec="microseconds")


# ── Fixtures ─────────────────────────────────────────────────────────

@pytest.fixture
def engine():
    eng = make_engine("sqlite://")
    metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def store(engine):
    return RecordStore(engine)


@pytest.fixture
def provider():
    return FakeIdentityProvider()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def service(store, provider, clock):
    return RecordService(store, provider, clock=clock)


@pytest.fixture
def outage():
    return UpstreamError("Identity provider timed out")


@pytest.fixture
def asha():
    return Identity(subject="user_asha_a", attributes={"role": "asha"})


@pytest.fixture
def other_asha():
    return Identity(subject="user_asha_b", attributes={"role": "ASHA "})


@pytest.fixture
def admin():
    return Identity(subject="user_admin", attributes={"role": "admin"})


@pytest.fixture
def citizen():
    return Identity(subject="user_citizen", attributes={})


@pytest.fixture
def record_payload():
    return {
        "diseaseName": "Dengue",
        "description": "High fever in three households",
        "location": "Rampur",
        "imageUrl": "data:image/png;base64,iVBORw0KGgo=",
        "medicalSupplies": [
            {"name": "ORS packets", "quantity": 10},
            {"name": "Paracetamol", "quantity": 1},
        ],
    }


@pytest.fixture
def report_payload():
    return {
        "disease": "flu",
        "description": "Cough and fever after the fair",
        "symptoms": ["fever", "cough"],
        "village": "Rampur",
        "location": "Ward 4",
        "date": "2025-01-03",
        "itemName": "Paracetamol",
        "itemQuantity": 20,
    }
