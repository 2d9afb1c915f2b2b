import os
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent

DATA_DIR = os.environ.get("BUDGET_DATA_DIR", str(PROJECT_ROOT / "data"))
# Empty means the remote store is not configured and the app stays in Guest mode.
REMOTE_DB_PATH = os.environ.get("BUDGET_REMOTE_DB", "")
SCHEMA_PATH = str(PROJECT_ROOT / "db" / "schema.sql")

REMOTE_TIMEOUT = float(os.environ.get("BUDGET_REMOTE_TIMEOUT", "10"))
AUTH_RESOLVE_TIMEOUT = float(os.environ.get("BUDGET_AUTH_TIMEOUT", "30"))

BACKUP_VERSION = "1.0"
LOG_LEVEL = os.environ.get("BUDGET_LOG_LEVEL", "WARNING")
