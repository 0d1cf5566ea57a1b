"""
HealthWatch Disease Reporting - REST API Server
Entry point: python api_server.py
"""

from healthwatch.api.app import main

if __name__ == "__main__":
    main()
