"""Configuration for the RigCheck compatibility service."""

import os

ROOT_PATH = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

# Storage
DB_PATH = os.getenv("RIGCHECK_DB_PATH", os.path.join(ROOT_PATH, "rigcheck.db"))
JSON_PATH = os.getenv("RIGCHECK_JSON_PATH", os.path.join(ROOT_PATH, "json"))

# Server settings
SECRET_KEY = os.getenv("RIGCHECK_SECRET_KEY", "change-me")
HTTP_HOST = os.getenv("HTTP_HOST", "0.0.0.0")
HTTP_PORT = int(os.getenv("HTTP_PORT", "10000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Component resolution runs on a small thread pool (one lookup per component)
RESOLVE_WORKERS = int(os.getenv("RESOLVE_WORKERS", "4"))

# CLI remote mode
DEFAULT_SERVER_URL = os.getenv("RIGCHECK_SERVER_URL", f"http://127.0.0.1:{HTTP_PORT}")
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "10"))

RULES_EXPORT_VERSION = "1.0"
