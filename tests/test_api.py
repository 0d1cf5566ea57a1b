"""
API tests – Flask test client against an in-memory database.
"""

import jwt
import pytest

from healthwatch.api.app import create_app
from healthwatch.api.auth import generate_token, identity_from_claims, verify_token
from healthwatch.config import ADMIN_INVITE_CODE, ASHA_INVITE_CODE, JWT_ALGORITHM


# ── Helpers ──────────────────────────────────────────────────────────

@pytest.fixture
def client(engine, provider, service):
    app = create_app(engine=engine, provider=provider, service=service)
    app.config["TESTING"] = True
    return app.test_client()


def auth(subject, role=None):
    return {"Authorization": f"Bearer {generate_token(subject, role=role)}"}


ASHA = auth("user_asha_a", "asha")
OTHER_ASHA = auth("user_asha_b", "asha")
ADMIN = auth("user_admin", "admin")
CITIZEN = auth("user_citizen")

RECORD = {
    "diseaseName": "Dengue",
    "description": "High fever in three households",
    "location": "Rampur",
    "medicalSupplies": [{"name": "ORS packets", "quantity": 10}],
}


def _create_record(client, headers=ASHA, **overrides):
    response = client.post("/api/records", json=dict(RECORD, **overrides), headers=headers)
    assert response.status_code == 201, response.get_json()
    return response.get_json()["record"]


# ── Tests: tokens ────────────────────────────────────────────────────

def test_token_round_trip_builds_identity():
    claims = verify_token(generate_token("user_1", role="asha", email="a@example.org"))
    identity = identity_from_claims(claims)
    assert identity.subject == "user_1"
    assert identity.attributes == {"role": "asha"}
    assert identity.email == "a@example.org"


def test_identity_accepts_camel_case_metadata_claim():
    identity = identity_from_claims({"sub": "u", "publicMetadata": {"role": "admin"}})
    assert identity.role_claim == "admin"


def test_identity_ignores_non_mapping_metadata():
    identity = identity_from_claims({"sub": "u", "public_metadata": "admin"})
    assert identity.attributes == {}


def test_expired_or_forged_tokens_rejected():
    assert verify_token(generate_token("u", expiry_hours=-1)) is None
    forged = jwt.encode({"sub": "u", "exp": 9999999999}, "wrong-key-" * 4, algorithm=JWT_ALGORITHM)
    assert verify_token(forged) is None


# ── Tests: health / info ─────────────────────────────────────────────

def test_index(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.get_json()["status"] == "running"


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json()["checks"] == {"database": True, "identity_provider": True}


def test_unknown_endpoint_is_json_404(client):
    response = client.get("/api/nope")
    assert response.status_code == 404
    assert response.get_json()["error"] == "Endpoint not found"


# ── Tests: CORS ──────────────────────────────────────────────────────

def test_cors_allows_listed_origin(client):
    response = client.get("/health", headers={"Origin": "http://localhost:3000"})
    assert response.headers["Access-Control-Allow-Origin"] == "http://localhost:3000"
    assert response.headers["Access-Control-Allow-Credentials"] == "true"


def test_cors_preflight_for_listed_origin(client):
    response = client.options("/api/records", headers={
        "Origin": "http://localhost:3001",
        "Access-Control-Request-Method": "PUT",
        "Access-Control-Request-Headers": "Authorization",
    })
    assert response.headers["Access-Control-Allow-Origin"] == "http://localhost:3001"
    assert "PUT" in response.headers["Access-Control-Allow-Methods"]


def test_cors_ignores_unlisted_origin(client):
    response = client.get("/health", headers={"Origin": "http://evil.example"})
    assert response.status_code == 200
    assert "Access-Control-Allow-Origin" not in response.headers


# ── Tests: authentication ────────────────────────────────────────────

def test_missing_token_is_401(client):
    response = client.get("/api/records/mine")
    assert response.status_code == 401
    assert response.get_json()["reason"] == "not_authenticated"


def test_malformed_header_is_401(client):
    response = client.get("/api/records/mine", headers={"Authorization": "Token abc"})
    assert response.status_code == 401


def test_invalid_token_is_401(client):
    response = client.get("/api/records/mine", headers={"Authorization": "Bearer nope"})
    assert response.status_code == 401
    assert "Invalid or expired" in response.get_json()["error"]


# ── Tests: role endpoints ────────────────────────────────────────────

def test_check_role_anonymous(client):
    data = client.get("/api/check-role").get_json()
    assert data["authenticated"] is False


def test_check_role_uses_cached_claim(client):
    data = client.get("/api/check-role", headers=ASHA).get_json()
    assert data["role"] == "asha"
    assert data["hasPermission"] is True


def test_verify_role_requires_auth(client):
    assert client.get("/api/verify-role").status_code == 401


def test_verify_role_reads_provider(client, provider):
    provider.roles["user_citizen"] = "asha"
    response = client.get("/api/verify-role", headers=CITIZEN)
    data = response.get_json()
    assert response.status_code == 200
    assert data["userId"] == "user_citizen"
    assert data["role"] == "asha"
    assert data["hasPermission"] is True
    assert data["rawAttributes"] == {"role": "asha"}
    assert data["verifiedAt"]


def test_verify_role_provider_failure_is_500(client, provider, outage):
    provider.fail_with = outage
    response = client.get("/api/verify-role", headers=ASHA)
    assert response.status_code == 500
    assert "timed out" in response.get_json()["error"]


def test_set_role_requires_role(client):
    response = client.post("/api/set-role", json={"userId": "u1"})
    assert response.status_code == 400
    assert response.get_json() == {"ok": False, "error": "role required"}


def test_set_role_requires_user_id(client):
    assert client.post("/api/set-role", json={"role": "citizen"}).status_code == 401


@pytest.mark.parametrize("role, invite", [("asha", None), ("asha", "WRONG"), ("ADMIN", ASHA_INVITE_CODE)])
def test_set_role_privileged_needs_matching_invite(client, provider, role, invite):
    response = client.post("/api/set-role", json={"role": role, "invite": invite, "userId": "u1"})
    assert response.status_code == 403
    assert response.get_json()["ok"] is False
    assert "u1" not in provider.roles


@pytest.mark.parametrize("role, invite", [("Asha", ASHA_INVITE_CODE), ("admin", ADMIN_INVITE_CODE)])
def test_set_role_privileged_with_invite(client, provider, role, invite):
    response = client.post("/api/set-role", json={"role": role, "invite": invite, "userId": "u1"})
    assert response.status_code == 200
    assert response.get_json() == {"ok": True, "role": role.lower()}
    assert provider.roles["u1"] == role.lower()


def test_set_role_citizen_needs_no_invite(client, provider):
    response = client.post("/api/set-role", json={"role": "citizen", "userId": "u1"})
    assert response.status_code == 200
    assert provider.roles["u1"] == "citizen"


def test_set_role_provider_failure_is_500(client, provider, outage):
    provider.fail_with = outage
    response = client.post("/api/set-role", json={"role": "citizen", "userId": "u1"})
    assert response.status_code == 500
    assert response.get_json() == {"ok": False, "error": "Identity provider timed out"}


# ── Tests: disease records ───────────────────────────────────────────

def test_create_record(client):
    record = _create_record(client)
    assert record["status"] == "draft"
    assert record["createdBy"] == "user_asha_a"
    assert record["medicalSupplies"] == [{"name": "ORS packets", "quantity": 10}]


def test_create_record_requires_json(client):
    response = client.post("/api/records", data="not json", headers=ASHA)
    assert response.status_code == 400


def test_citizen_create_is_403_with_role(client):
    response = client.post("/api/records", json=RECORD, headers=CITIZEN)
    data = response.get_json()
    assert response.status_code == 403
    assert data["reason"] == "role_insufficient"
    assert data["role"] == "citizen"


def test_zero_quantity_is_400(client):
    response = client.post(
        "/api/records",
        json=dict(RECORD, medicalSupplies=[{"name": "ORS", "quantity": 0}]),
        headers=ASHA,
    )
    assert response.status_code == 400
    assert response.get_json()["field"] == "medicalSupplies"


@pytest.mark.parametrize("quantity", ["Infinity", "NaN", "1000000000000000000000000000000"])
def test_unstorable_quantity_is_400(client, quantity):
    body = (
        '{"diseaseName": "Dengue", "description": "Fever",'
        ' "medicalSupplies": [{"name": "ORS", "quantity": ' + quantity + "}]}"
    )
    response = client.post("/api/records", data=body, content_type="application/json", headers=ASHA)
    assert response.status_code == 400
    assert response.get_json()["reason"] == "invalid_input"
    assert response.get_json()["field"] == "medicalSupplies"
    assert client.get("/api/records/mine", headers=ASHA).get_json()["count"] == 0


def test_oversized_item_quantity_is_400(client):
    report = {
        "disease": "flu", "description": "Fever cluster", "village": "Rampur",
        "location": "Ward 4", "date": "2025-01-03", "itemName": "ORS", "itemQuantity": 10**30,
    }
    response = client.post("/api/reports", json=report, headers=ASHA)
    assert response.status_code == 400
    assert response.get_json()["field"] == "itemQuantity"


def test_stale_claim_with_verified_role(client, provider):
    provider.roles["user_citizen"] = "asha"
    response = client.post("/api/records", json=dict(RECORD, verifiedRole="asha"), headers=CITIZEN)
    assert response.status_code == 201
    assert response.get_json()["record"]["createdByRole"] == "asha"


def test_unbacked_verified_role_is_403(client):
    response = client.post("/api/records", json=dict(RECORD, verifiedRole="asha"), headers=CITIZEN)
    assert response.status_code == 403
    assert response.get_json()["reason"] == "role_insufficient"


def test_stale_claim_can_update_and_register_with_verified_role(client, provider):
    provider.roles["user_citizen"] = "asha"
    record = _create_record(client, headers=CITIZEN, verifiedRole="asha")
    url = f"/api/records/{record['id']}"

    response = client.put(url, json=dict(RECORD, description="Revisit"), headers=CITIZEN)
    assert response.status_code == 403
    assert response.get_json()["reason"] == "role_insufficient"

    response = client.put(url, json=dict(RECORD, description="Revisit", verifiedRole="asha"),
                          headers=CITIZEN)
    assert response.status_code == 200
    assert response.get_json()["record"]["description"] == "Revisit"

    response = client.post(f"{url}/register", json={"verifiedRole": "asha"}, headers=CITIZEN)
    assert response.status_code == 200
    assert response.get_json()["record"]["status"] == "registered"


def test_register_with_unbacked_verified_role_is_403(client):
    record = _create_record(client)
    response = client.post(f"/api/records/{record['id']}/register",
                           json={"verifiedRole": "admin"}, headers=CITIZEN)
    assert response.status_code == 403
    assert response.get_json()["reason"] == "role_insufficient"


def test_list_mine_and_registered(client):
    first = _create_record(client)
    _create_record(client, headers=OTHER_ASHA)

    mine = client.get("/api/records/mine", headers=ASHA).get_json()
    assert mine["count"] == 1
    assert mine["records"][0]["id"] == first["id"]

    client.post(f"/api/records/{first['id']}/register", headers=ASHA)
    registered = client.get("/api/records/registered", headers=OTHER_ASHA).get_json()
    assert [r["id"] for r in registered["records"]] == [first["id"]]


def test_update_record_ownership(client):
    record = _create_record(client)
    patch = dict(RECORD, description="Updated")

    response = client.put(f"/api/records/{record['id']}", json=patch, headers=OTHER_ASHA)
    assert response.status_code == 403
    assert response.get_json()["reason"] == "not_owner"

    response = client.put(f"/api/records/{record['id']}", json=patch, headers=ADMIN)
    assert response.status_code == 200
    assert response.get_json()["record"]["description"] == "Updated"
    assert response.get_json()["record"]["updatedAt"]


def test_update_missing_record_is_404(client):
    response = client.put("/api/records/999", json=RECORD, headers=ASHA)
    assert response.status_code == 404
    assert response.get_json()["reason"] == "not_found"


def test_register_twice_is_ok(client):
    record = _create_record(client)
    url = f"/api/records/{record['id']}/register"

    first = client.post(url, headers=ASHA)
    second = client.post(url, headers=ADMIN)
    assert first.status_code == 200
    assert second.status_code == 200
    assert second.get_json()["record"]["status"] == "registered"
    assert second.get_json()["record"]["updatedAt"] == first.get_json()["record"]["updatedAt"]


# ── Tests: reports ───────────────────────────────────────────────────

def test_report_and_village_summary(client):
    report = {
        "description": "Fever cluster", "symptoms": ["fever"], "village": "Rampur",
        "location": "Ward 4", "date": "2025-01-03", "itemName": "ORS", "itemQuantity": 5,
    }
    for disease in ("flu", "flu", "cold"):
        response = client.post("/api/reports", json=dict(report, disease=disease), headers=ASHA)
        assert response.status_code == 201

    summary = client.get("/api/reports/summary?village=Rampur", headers=CITIZEN).get_json()
    assert summary["type"] == "summary"
    assert summary["byDisease"] == {"flu": 2, "cold": 1}
    assert "reports" not in summary

    detailed = client.get("/api/reports/summary?village=Rampur", headers=ADMIN).get_json()
    assert detailed["type"] == "detailed"
    assert len(detailed["reports"]) == 3


def test_village_summary_requires_village(client):
    response = client.get("/api/reports/summary", headers=CITIZEN)
    assert response.status_code == 400
