"""Environment-driven settings for the Ephemeris Calendar API."""

import os

# Remote position service; empty disables it and every position comes from
# the local closed-form model.
POSITION_SERVICE_URL = os.getenv("POSITION_SERVICE_URL", "").rstrip("/")
POSITION_SERVICE_TIMEOUT = float(os.getenv("POSITION_SERVICE_TIMEOUT", "10"))

MAX_RANGE_DAYS = int(os.getenv("MAX_RANGE_DAYS", "366"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
