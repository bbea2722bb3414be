"""Application configuration read from environment variables."""

import os

APP_ID = "kharch-tracker"
APP_TITLE = os.environ.get("KHARCH_APP_TITLE", "Kharch Tracker")

CURRENCY_SYMBOL = os.environ.get("KHARCH_CURRENCY_SYMBOL", "₹")

# Load the demo roster and expenses on startup (KHARCH_SEED_DEMO_DATA=1)
SEED_DEMO_DATA = os.environ.get("KHARCH_SEED_DEMO_DATA", "0").lower() in ("1", "true", "yes")

LOG_LEVEL = os.environ.get("KHARCH_LOG_LEVEL", "INFO").upper()

HOST = os.environ.get("KHARCH_HOST", "0.0.0.0")
PORT = int(os.environ.get("KHARCH_PORT", "5000"))
