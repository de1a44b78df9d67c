# config.py
"""Runtime settings for the budget tracker.

Every value can be overridden through an environment variable of the same
name; defaults suit a local SQLite install.
"""
import os
from decimal import Decimal


def _flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./budget.db")

# Auth
SECRET_KEY = os.getenv("SECRET_KEY", "change-me-in-production")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))

# Budget alert sweep
ALERT_SCHEDULE = os.getenv("ALERT_SCHEDULE", "0 * * * *")  # top of every hour
NEAR_THRESHOLD = Decimal(os.getenv("NEAR_THRESHOLD", "0.90"))
OVER_THRESHOLD = Decimal(os.getenv("OVER_THRESHOLD", "1.00"))
ALERT_DEDUP_ENABLED = _flag("ALERT_DEDUP_ENABLED", True)
SCHEDULER_ENABLED = _flag("SCHEDULER_ENABLED", True)

# Outbound mail
MAIL_HOST = os.getenv("MAIL_HOST", "localhost")
MAIL_PORT = int(os.getenv("MAIL_PORT", "25"))
MAIL_USERNAME = os.getenv("MAIL_USERNAME")
MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
MAIL_USE_TLS = _flag("MAIL_USE_TLS", False)
MAIL_SENDER = os.getenv("MAIL_SENDER", "alerts@budget-tracker.local")
MAIL_TIMEOUT_SECONDS = float(os.getenv("MAIL_TIMEOUT_SECONDS", "10"))

# Live push
PUSH_TIMEOUT_SECONDS = float(os.getenv("PUSH_TIMEOUT_SECONDS", "5"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
