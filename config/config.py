"""Settings shared by every environment; each module below overrides what differs."""

import os


def env_flag(name: str, default: str = "0") -> bool:
    return bool(int(os.getenv(name, default)))


def db_config_from_env(*, default_password: str = "") -> dict:
    return {
        "host": os.getenv("DB_HOST", "localhost"),
        "port": int(os.getenv("DB_PORT", "3306")),
        "user": os.getenv("DB_USER", "root"),
        "password": os.getenv("DB_PASSWORD", default_password),
        "database": os.getenv("DB_NAME", "fee_ledger_db"),
    }


LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Receipts are cut as soon as a payment commits unless this is turned off.
AUTO_ISSUE_RECEIPTS = env_flag("AUTO_ISSUE_RECEIPTS", "1")
RECEIPT_PREFIX_FALLBACK = os.getenv("RECEIPT_PREFIX_FALLBACK", "REC")
