"""Configuration for the Akcent Dashboard API.

Every value can be overridden via environment variables (or a local .env
file). Values are read once, at import time.
"""
import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

load_dotenv()

ROOT_DIR = Path(__file__).parent.parent.resolve()

ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

# --- Database ---

DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./dashboard.db")

# Render/Heroku hand out postgres:// but SQLAlchemy needs postgresql://
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

# --- Sessions ---

SESSION_COOKIE_NAME: str = os.getenv("SESSION_COOKIE_NAME", "akcent.sid")
SESSION_TTL_DAYS: int = int(os.getenv("SESSION_TTL_DAYS", "30"))
SESSION_COOKIE_SECURE: bool = (
    os.getenv("SESSION_COOKIE_SECURE", "true" if ENVIRONMENT == "production" else "false").lower()
    == "true"
)

# --- Passwords ---

BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "10"))

# --- Seed admin ---

ADMIN_USERNAME: str = os.getenv("ADMIN_USERNAME", "Akcent.559")
# Required on first start: startup fails while the admin account is missing
# and no password is set to create it.
ADMIN_PASSWORD: str = os.getenv("ADMIN_PASSWORD", "")

# --- Invite codes ---

INVITE_CODE_LENGTH: int = int(os.getenv("INVITE_CODE_LENGTH", "12"))
INVITE_CODE_MAX_LENGTH: int = int(os.getenv("INVITE_CODE_MAX_LENGTH", "64"))

# --- Audit log ---

AUDIT_LOG_DEFAULT_LIMIT: int = int(os.getenv("AUDIT_LOG_DEFAULT_LIMIT", "100"))
AUDIT_LOG_MAX_LIMIT: int = int(os.getenv("AUDIT_LOG_MAX_LIMIT", "1000"))

# --- Download ---

DOWNLOAD_FILE_PATH: Path = Path(
    os.getenv("DOWNLOAD_FILE_PATH", str(ROOT_DIR / "files" / "AkcentLoader.exe"))
)
DOWNLOAD_FILE_NAME: str = os.getenv("DOWNLOAD_FILE_NAME", "AkcentLoader.exe")

# --- API server ---

API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
API_PORT: int = int(os.getenv("API_PORT", "8000"))
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# Comma-separated. Cookies require explicit origins, so no "*" default.
_CORS_ALLOWED_ORIGINS_STR: str = os.getenv(
    "CORS_ALLOWED_ORIGINS",
    "http://localhost:5000,http://127.0.0.1:5000,http://localhost:5173",
)
CORS_ALLOWED_ORIGINS: List[str] = [
    origin.strip()
    for origin in _CORS_ALLOWED_ORIGINS_STR.split(",")
    if origin.strip()
]
