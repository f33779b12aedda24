import os

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DEBUG = LOG_LEVEL == "DEBUG"
LOG_FORMAT = os.getenv("LOG_FORMAT", "console" if DEBUG else "json").lower()

DRY_RUN = os.getenv("DRY_RUN", "false").lower() == "true"

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise ValueError("DATABASE_URL must be set in the environment")

ALLOWED_ORIGINS_RAW = os.getenv("ALLOWED_ORIGINS")
if not ALLOWED_ORIGINS_RAW:
    raise ValueError("ALLOWED_ORIGINS must be set in the environment")

ALLOWED_ORIGINS: list[str] = [
    origin.strip() for origin in ALLOWED_ORIGINS_RAW.split(",")
]

# Name shown on exported calendar feeds
PROPERTY_NAME = os.getenv("PROPERTY_NAME", "Lodge")

CALENDAR_FETCH_TIMEOUT = float(os.getenv("CALENDAR_FETCH_TIMEOUT", "15"))

EXPORT_PAST_DAYS = int(os.getenv("EXPORT_PAST_DAYS", "30"))
EXPORT_FUTURE_DAYS = int(os.getenv("EXPORT_FUTURE_DAYS", "365"))
