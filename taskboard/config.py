from pathlib import Path
import os

from dotenv import load_dotenv

# Load environment variables from repo root and taskboard/.env (if present).
REPO_ROOT = Path(__file__).resolve().parents[1]
load_dotenv(REPO_ROOT / ".env")
load_dotenv(Path(__file__).resolve().parent / ".env")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./taskboard.db")
SECRET_KEY = os.getenv("SECRET_KEY", "change-me")
# Sessions last 30 days
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(30 * 24 * 60)))

_cors_origins = os.getenv("CORS_ORIGINS", "http://localhost:5173")
CORS_ORIGINS = [origin.strip() for origin in _cors_origins.split(",") if origin.strip()]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

SCHEDULER_ENABLED = os.getenv("SCHEDULER_ENABLED", "true").lower() in ("1", "true", "yes")
AUTO_ARCHIVE_DAYS = int(os.getenv("AUTO_ARCHIVE_DAYS", "7"))

# Base URL of the deployed token API, used by the MCP tool server
TASKBOARD_SITE_URL = os.getenv("TASKBOARD_SITE_URL")


def mcp_api_token() -> str | None:
    """Shared bearer token for the /mcp endpoints, read on every request."""
    return os.getenv("MCP_API_TOKEN") or None


def mcp_user_id() -> str | None:
    """Owner identity that token API callers act as."""
    return os.getenv("MCP_USER_ID") or None


def mcp_service_name() -> str:
    return os.getenv("MCP_SERVICE_NAME", "mcp")
