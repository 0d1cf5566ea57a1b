"""
Smoke checks for the HealthWatch API endpoints.
Run the API server first: python api_server.py
Then run this: python api_smoke.py <asha-token> [citizen-token]
(tokens can be issued with scripts/issue_dev_token.py)
"""

import json
import sys

import requests

BASE_URL = "http://localhost:8000"


def _show(title, response):
    print("\n" + "=" * 50)
    print(f"CHECK: {title}")
    print("=" * 50)
    print(f"Status Code: {response.status_code}")
    print(f"Response: {json.dumps(response.json(), indent=2)}")


def _auth(token):
    return {"Authorization": f"Bearer {token}"}


def check_health():
    response = requests.get(f"{BASE_URL}/health")
    _show("Health Check", response)
    return response.status_code == 200


def check_verify_role_without_token():
    response = requests.get(f"{BASE_URL}/api/verify-role")
    _show("Verify Role Without Token", response)
    return response.status_code == 401


def check_verify_role(token):
    response = requests.get(f"{BASE_URL}/api/verify-role", headers=_auth(token))
    _show("Verify Role", response)
    return response.status_code == 200


def check_create_record(token):
    response = requests.post(
        f"{BASE_URL}/api/records",
        headers=_auth(token),
        json={
            "diseaseName": "Dengue",
            "description": "Three households with high fever",
            "location": "Rampur",
            "medicalSupplies": [{"name": "ORS packets", "quantity": 10}],
        },
    )
    _show("Create Draft Record", response)
    if response.status_code == 201:
        return response.json()["record"]["id"]
    return None


def check_zero_quantity_rejected(token):
    response = requests.post(
        f"{BASE_URL}/api/records",
        headers=_auth(token),
        json={
            "diseaseName": "Dengue",
            "description": "Bad supply entry",
            "medicalSupplies": [{"name": "ORS packets", "quantity": 0}],
        },
    )
    _show("Zero Quantity Rejected", response)
    return response.status_code == 400


def check_register(token, record_id):
    response = requests.post(
        f"{BASE_URL}/api/records/{record_id}/register", headers=_auth(token)
    )
    _show("Register Record", response)
    return response.status_code == 200 and response.json()["record"]["status"] == "registered"


def check_registered_list(token):
    response = requests.get(f"{BASE_URL}/api/records/registered", headers=_auth(token))
    _show("Registered Records", response)
    return response.status_code == 200


def check_citizen_denied(token):
    response = requests.get(f"{BASE_URL}/api/records/registered", headers=_auth(token))
    _show("Citizen Denied", response)
    return response.status_code == 403 and response.json().get("reason") == "role_insufficient"


def main():
    print("=" * 50)
    print("HealthWatch API Smoke Checks")
    print("=" * 50)
    print(f"Base URL: {BASE_URL}")
    print("Make sure the API server is running!")

    if len(sys.argv) < 2:
        print("ERROR: an ASHA session token is required")
        return
    asha_token = sys.argv[1]
    citizen_token = sys.argv[2] if len(sys.argv) > 2 else None

    results = {}
    try:
        results["Health Check"] = check_health()
        results["Verify Role Without Token"] = check_verify_role_without_token()
        results["Verify Role"] = check_verify_role(asha_token)
        results["Zero Quantity Rejected"] = check_zero_quantity_rejected(asha_token)

        record_id = check_create_record(asha_token)
        results["Create Draft Record"] = record_id is not None
        if record_id is not None:
            results["Register Record"] = check_register(asha_token, record_id)
            results["Register Again"] = check_register(asha_token, record_id)
        results["Registered Records"] = check_registered_list(asha_token)

        if citizen_token:
            results["Citizen Denied"] = check_citizen_denied(citizen_token)

    except requests.RequestException as e:
        print(f"\n\nERROR: {e}")

    print("\n" + "=" * 50)
    print("SUMMARY")
    print("=" * 50)
    passed = sum(1 for v in results.values() if v)
    for name, result in results.items():
        status = "✓ PASS" if result else "✗ FAIL"
        print(f"{status}: {name}")
    print(f"\nTotal: {passed}/{len(results)} checks passed")
    print("=" * 50)


if __name__ == "__main__":
    main()
