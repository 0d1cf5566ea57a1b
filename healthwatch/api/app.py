"""
Flask application factory and server entry-point.
"""

import os
import sys
import traceback

from flask import Flask
from flask_cors import CORS

from healthwatch.config import allowed_origins, FLASK_ENV
from healthwatch.database import init_engine, RecordStore
from healthwatch.identity import init_identity_provider
from healthwatch.records import RecordService
from healthwatch.api.routes import register_routes


def create_app(engine=None, provider=None, service=None):
    """Build and return a fully configured Flask application."""
    app = Flask(__name__)

    CORS(
        app,
        origins=allowed_origins(),
        supports_credentials=True,
        methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    # ── Initialise shared resources ──────────────────────────────────
    try:
        if engine is None:
            print("[init] Initializing database connection...")
            engine = init_engine()

        if provider is None:
            print("[init] Initializing identity provider...")
            provider = init_identity_provider(engine)

        if service is None:
            service = RecordService(RecordStore(engine), provider)

        print("[init] ✓ API server ready")
    except Exception as e:
        print(f"[FATAL] Failed to initialize: {e}", file=sys.stderr)
        traceback.print_exc()
        sys.exit(1)

    # ── Register routes ──────────────────────────────────────────────
    register_routes(app, engine, service, provider)

    return app


def main():
    """Run the development server."""
    print("=" * 60)
    print("HealthWatch Disease Reporting – REST API Server")
    print("=" * 60)

    app = create_app()

    host = os.getenv("API_HOST", "0.0.0.0")
    port = int(os.getenv("API_PORT", "8000"))
    debug = FLASK_ENV == "development"

    print(f"\n[server] Starting Flask API on {host}:{port}")
    print(f"[server] Debug mode: {debug}")
    print(f"[server] CORS enabled for origins: {', '.join(allowed_origins())}")
    print("\nAPI Endpoints:")
    print(f"  - GET  http://{host}:{port}/api/check-role")
    print(f"  - GET  http://{host}:{port}/api/verify-role")
    print(f"  - POST http://{host}:{port}/api/set-role")
    print(f"  - POST http://{host}:{port}/api/reports")
    print(f"  - GET  http://{host}:{port}/api/reports/summary?village=<name>")
    print(f"  - POST http://{host}:{port}/api/records")
    print(f"  - GET  http://{host}:{port}/api/records/mine")
    print(f"  - GET  http://{host}:{port}/api/records/registered")
    print(f"  - PUT  http://{host}:{port}/api/records/<id>")
    print(f"  - POST http://{host}:{port}/api/records/<id>/register")
    print(f"  - GET  http://{host}:{port}/health")
    print("\n" + "=" * 60)

    app.run(host=host, port=port, debug=debug, threaded=True)


if __name__ == "__main__":
    main()
