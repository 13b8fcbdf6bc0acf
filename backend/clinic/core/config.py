"""
Centralized configuration module for application-wide settings.

Every value is read from the environment once, at import time, with a safe
default. Invalid values are logged and replaced by the default so a bad
deployment setting never prevents the application from starting.
"""

import logging
import os
from datetime import time
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)


def _int_from_env(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(
            f"Invalid integer '{raw}' for {name}. Falling back to {default}."
        )
        return default
    if value < minimum:
        logger.warning(
            f"{name}={value} is below the minimum of {minimum}. "
            f"Falling back to {default}."
        )
        return default
    return value


def _time_from_env(name: str, default: time) -> time:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return time.fromisoformat(raw.strip())
    except ValueError:
        logger.warning(
            f"Invalid time '{raw}' for {name}. Falling back to {default.isoformat()}."
        )
        return default


# ===========================
# Timezone Configuration
# ===========================


def get_app_timezone() -> ZoneInfo:
    """
    Get the application timezone from environment variable.

    Returns:
        ZoneInfo: Application timezone (defaults to UTC if not configured)

    Environment Variables:
        TZ: Timezone identifier (e.g., 'Europe/Sofia', 'UTC')
            Default: 'UTC'
    """
    tz_name = os.getenv("TZ", "UTC")

    try:
        return ZoneInfo(tz_name)
    except Exception as e:
        logger.warning(
            f"Invalid timezone '{tz_name}' specified in TZ environment variable. "
            f"Falling back to UTC. Error: {e}"
        )
        return ZoneInfo("UTC")


# Global timezone instance - initialized once at import time
APP_TZ = get_app_timezone()


def log_timezone_config():
    """Log the active timezone configuration."""
    logger.info(
        "Timezone configuration initialized",
        extra={
            "context": {
                "timezone": str(APP_TZ),
                "tz_env_var": os.getenv("TZ", "UTC"),
            }
        },
    )


# ===========================
# Scheduling Configuration
# ===========================

# Upper bound for every paged listing
MAX_PAGE_SIZE = _int_from_env("MAX_PAGE_SIZE", 100)

# A patient may book only if insurance was paid within this many calendar months
INSURANCE_VALIDITY_MONTHS = _int_from_env("INSURANCE_VALIDITY_MONTHS", 6)

# Working hours and slot length for visits booked by patients themselves
VISIT_START_TIME = _time_from_env("VISIT_START_TIME", time(9, 0))
VISIT_END_TIME = _time_from_env("VISIT_END_TIME", time(17, 0))
VISIT_SLOT_MINUTES = _int_from_env("VISIT_SLOT_MINUTES", 30)

# Worker threads serving asynchronous list queries
LIST_WORKER_THREADS = _int_from_env("LIST_WORKER_THREADS", 4)


def log_scheduling_config():
    """
    Log the active scheduling configuration.

    Should be called during application startup to provide visibility
    into the booking limits in force.
    """
    logger.info(
        "Scheduling configuration initialized",
        extra={
            "context": {
                "max_page_size": MAX_PAGE_SIZE,
                "insurance_validity_months": INSURANCE_VALIDITY_MONTHS,
                "visit_start_time": VISIT_START_TIME.isoformat(),
                "visit_end_time": VISIT_END_TIME.isoformat(),
                "visit_slot_minutes": VISIT_SLOT_MINUTES,
                "list_worker_threads": LIST_WORKER_THREADS,
            }
        },
    )
