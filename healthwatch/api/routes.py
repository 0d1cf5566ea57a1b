"""
Flask route handlers for the REST API.
"""

import sys
import traceback

from flask import request, jsonify
from sqlalchemy import text
from werkzeug.exceptions import HTTPException

from healthwatch.config import (
    ADMIN_INVITE_CODE,
    ASHA_INVITE_CODE,
    PRIVILEGED_ROLES,
    ROLE_ADMIN,
    ROLE_ASHA,
)
from healthwatch.errors import PortalError, UpstreamError
from healthwatch.api.auth import token_optional, token_required

_INVITE_CODES = {ROLE_ASHA: ASHA_INVITE_CODE, ROLE_ADMIN: ADMIN_INVITE_CODE}


def _json_body():
    """Request JSON as a dict, or None when the body is missing or not an object."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


def _bad_content_type():
    return jsonify({"success": False, "error": "Content-Type must be application/json"}), 400


def register_routes(app, engine, service, provider):
    """Register all API routes on the Flask *app*."""
    verifier = service.verifier

    # ── Health / info ────────────────────────────────────────────────

    @app.route("/", methods=["GET"])
    def index():
        return jsonify({
            "service": "HealthWatch Disease Reporting API",
            "version": "1.0.0",
            "status": "running",
            "endpoints": {
                "check_role": "/api/check-role",
                "verify_role": "/api/verify-role",
                "set_role": "/api/set-role",
                "reports": "/api/reports",
                "village_summary": "/api/reports/summary",
                "records": "/api/records",
                "health": "/health",
            },
        })

    @app.route("/health", methods=["GET"])
    def health():
        checks = {"database": False, "identity_provider": False}
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            checks["database"] = True
        except Exception as e:
            print(f"[WARN] Health check: database unavailable: {e}", file=sys.stderr)

        checks["identity_provider"] = provider is not None and provider.ping()
        all_healthy = all(checks.values())

        return jsonify({
            "status": "healthy" if all_healthy else "unhealthy",
            "checks": checks,
        }), 200 if all_healthy else 503

    # ── Roles ────────────────────────────────────────────────────────

    @app.route("/api/check-role", methods=["GET"])
    @token_optional
    def check_role():
        return jsonify(service.check_role(request.identity)), 200

    @app.route("/api/verify-role", methods=["GET"])
    @token_required
    def verify_role():
        try:
            check = verifier.verify(request.identity)
        except UpstreamError as e:
            print(f"[ERROR] Error verifying role: {e}", file=sys.stderr)
            return jsonify({"error": e.message or "Failed to verify role"}), 500
        return jsonify(check.to_dict()), 200

    @app.route("/api/set-role", methods=["POST"])
    def set_role():
        data = _json_body()
        if data is None:
            return _bad_content_type()

        requested = data.get("role")
        if not isinstance(requested, str) or not requested.strip():
            return jsonify({"ok": False, "error": "role required"}), 400
        role = requested.strip().lower()

        user_id = data.get("userId")
        if not user_id:
            return jsonify({"ok": False, "error": "Not authenticated - userId required"}), 401

        if role in PRIVILEGED_ROLES and data.get("invite") != _INVITE_CODES[role]:
            return jsonify({"ok": False, "error": f"Invalid invite for {role.upper()}"}), 403

        try:
            provider.set_user_role(str(user_id), role)
        except Exception as e:
            print(f"[ERROR] Error updating user metadata: {e}", file=sys.stderr)
            traceback.print_exc()
            message = e.message if isinstance(e, PortalError) else str(e)
            return jsonify({"ok": False, "error": message}), 500

        print(f"[auth] Role for {user_id} set to '{role}'")
        return jsonify({"ok": True, "role": role}), 200

    # ── Health reports ───────────────────────────────────────────────

    @app.route("/api/reports", methods=["POST"])
    @token_required
    def create_report():
        data = _json_body()
        if data is None:
            return _bad_content_type()
        report = service.create_report(data, request.identity, data.get("verifiedRole"))
        return jsonify({"success": True, "report": report.to_dict()}), 201

    @app.route("/api/reports/summary", methods=["GET"])
    @token_required
    def village_summary():
        village = request.args.get("village", "")
        summary = service.get_village_summary(village, request.identity)
        return jsonify({"success": True, **summary}), 200

    # ── Disease records ──────────────────────────────────────────────

    @app.route("/api/records", methods=["POST"])
    @token_required
    def create_record():
        data = _json_body()
        if data is None:
            return _bad_content_type()
        record = service.create_draft_record(data, request.identity, data.get("verifiedRole"))
        return jsonify({"success": True, "record": record.to_dict()}), 201

    @app.route("/api/records/mine", methods=["GET"])
    @token_required
    def list_own_records():
        records = service.list_own_draft_records(request.identity)
        return jsonify({
            "success": True,
            "count": len(records),
            "records": [r.to_dict() for r in records],
        }), 200

    @app.route("/api/records/registered", methods=["GET"])
    @token_required
    def list_registered_records():
        records = service.list_registered_records(request.identity)
        return jsonify({
            "success": True,
            "count": len(records),
            "records": [r.to_dict() for r in records],
        }), 200

    @app.route("/api/records/<int:record_id>", methods=["PUT"])
    @token_required
    def update_record(record_id):
        data = _json_body()
        if data is None:
            return _bad_content_type()
        record = service.update_record(record_id, data, request.identity, data.get("verifiedRole"))
        return jsonify({"success": True, "record": record.to_dict()}), 200

    @app.route("/api/records/<int:record_id>/register", methods=["POST"])
    @token_required
    def register_record(record_id):
        data = _json_body() or {}
        record = service.register_record(record_id, request.identity, data.get("verifiedRole"))
        return jsonify({"success": True, "record": record.to_dict()}), 200

    # ── Error handlers ───────────────────────────────────────────────

    @app.errorhandler(PortalError)
    def portal_error(e):
        if isinstance(e, UpstreamError):
            print(f"[ERROR] {e.message}", file=sys.stderr)
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Endpoint not found", "message": str(e)}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "Method not allowed", "message": str(e)}), 405

    @app.errorhandler(HTTPException)
    def http_error(e):
        return jsonify({"error": e.name, "message": e.description}), e.code

    @app.errorhandler(Exception)
    def internal_error(e):
        print(f"[ERROR] Unhandled error: {e}", file=sys.stderr)
        traceback.print_exc()
        return jsonify({"error": "Internal server error", "message": str(e)}), 500
