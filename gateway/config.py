"""
Gateway configuration: upstream base URLs for the path-prefix routes.
"""
import os

IDENTITY_SERVICE_URL = os.environ.get("GATEWAY_IDENTITY_SERVICE_URL", "http://127.0.0.1:3002").rstrip("/")
TODO_SERVICE_URL = os.environ.get("GATEWAY_TODO_SERVICE_URL", "http://127.0.0.1:3001").rstrip("/")
FRONTEND_URL = os.environ.get("GATEWAY_FRONTEND_URL", "http://127.0.0.1:3000").rstrip("/")

# Per upstream request; no retries
TIMEOUT_SECONDS = float(os.environ.get("GATEWAY_TIMEOUT_SECONDS", "30"))
