"""Configuration for the editpdf conversion worker."""
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# Base paths
BASE_DIR = Path(__file__).resolve().parent.parent
LOGS_DIR = BASE_DIR / "logs"
LOGS_DIR.mkdir(exist_ok=True)

# Unparseable numeric settings, reported by validate_config()
PARSE_ERRORS = []


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        PARSE_ERRORS.append(f"{name} must be an integer: {value}")
        return default


# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
BETTERSTACK_SOURCE_TOKEN = os.getenv("BETTERSTACK_SOURCE_TOKEN")
BETTERSTACK_INGEST_HOST = os.getenv("BETTERSTACK_INGEST_HOST")

# Database connection
DATABASE_URL = os.getenv("DATABASE_URL")
DB_TABLE_PREFIX = os.getenv("DB_TABLE_PREFIX", "mdl_")

# Document service
DOCUMENT_SERVICE_URL = os.getenv("DOCUMENT_SERVICE_URL")
DOCUMENT_SERVICE_TOKEN = os.getenv("DOCUMENT_SERVICE_TOKEN")
DOCUMENT_SERVICE_TIMEOUT = _int_env("DOCUMENT_SERVICE_TIMEOUT", 120)  # seconds per request

# Conversion queue
DEFAULT_CONVERSION_ATTEMPT_LIMIT = 3


def parse_attempt_limit(value) -> int:
    """An empty or zero limit falls back to the default."""
    if value is None or str(value).strip() == "":
        return DEFAULT_CONVERSION_ATTEMPT_LIMIT
    limit = int(value)
    return limit if limit else DEFAULT_CONVERSION_ATTEMPT_LIMIT


try:
    CONVERSION_ATTEMPT_LIMIT = parse_attempt_limit(os.getenv("CONVERSION_ATTEMPT_LIMIT"))
except ValueError:
    PARSE_ERRORS.append(f"CONVERSION_ATTEMPT_LIMIT must be an integer: {os.getenv('CONVERSION_ATTEMPT_LIMIT')}")
    CONVERSION_ATTEMPT_LIMIT = DEFAULT_CONVERSION_ATTEMPT_LIMIT

# Runner
SCHEDULE_INTERVAL = _int_env("SCHEDULE_INTERVAL", 900)  # seconds between runs
RUN_ONCE = os.getenv("RUN_ONCE", "false").lower() in ("1", "true", "yes")


def validate_config():
    """Validate required configuration."""
    errors = list(PARSE_ERRORS)

    if not DATABASE_URL:
        errors.append("DATABASE_URL is required")

    if not DOCUMENT_SERVICE_URL:
        errors.append("DOCUMENT_SERVICE_URL is required")
    elif not DOCUMENT_SERVICE_URL.startswith(("http://", "https://")):
        errors.append(f"DOCUMENT_SERVICE_URL must be an http(s) URL: {DOCUMENT_SERVICE_URL}")

    if CONVERSION_ATTEMPT_LIMIT < 0:
        errors.append(f"CONVERSION_ATTEMPT_LIMIT must not be negative: {CONVERSION_ATTEMPT_LIMIT}")

    if SCHEDULE_INTERVAL <= 0:
        errors.append(f"SCHEDULE_INTERVAL must be positive: {SCHEDULE_INTERVAL}")

    if DOCUMENT_SERVICE_TIMEOUT <= 0:
        errors.append(f"DOCUMENT_SERVICE_TIMEOUT must be positive: {DOCUMENT_SERVICE_TIMEOUT}")

    if errors:
        raise ValueError("Config errors:\n  " + "\n  ".join(errors))
