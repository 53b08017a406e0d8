"""
Configuration for the Rehab Coach engine and service.

Every clinical cut point is a named constant read from the environment
(with a documented default) so it can be tuned without touching the
algorithms. Callers can also override any single value per call through
load_thresholds(overrides).

Usage:
    from coach_config import load_thresholds

    thresholds = load_thresholds({'session_pain_stop': 6})
"""

import os
import logging
from dotenv import load_dotenv

from coach_errors import ConfigurationError

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger("app.coach_config")


def _env_int(name, default):
    raw = os.environ.get(name)
    if raw is None or raw == '':
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


# ─── MODE ASSIGNMENT CUT POINTS ──────────────────────────────────────

# Check-in pain at or above this → at most REGRESSED
PAIN_REGRESS_AT = _env_int('COACH_PAIN_REGRESS_AT', 7)

# Check-in pain at or above this → RESET
PAIN_RESET_AT = _env_int('COACH_PAIN_RESET_AT', 9)

# Confidence at or below this → at most REGRESSED
CONFIDENCE_REGRESS_AT_OR_BELOW = _env_int('COACH_CONFIDENCE_REGRESS_AT_OR_BELOW', 3)

# Confidence at or below this → RESET
CONFIDENCE_RESET_AT_OR_BELOW = _env_int('COACH_CONFIDENCE_RESET_AT_OR_BELOW', 1)

# ─── IN-SESSION CUT POINTS ───────────────────────────────────────────

# Drill pain at or above this triggers an immediate regression to RESET
SESSION_PAIN_STOP = _env_int('COACH_SESSION_PAIN_STOP', 7)

# Restriction filtering that leaves fewer drills than this falls back to the RESET plan
MIN_PLAN_LENGTH = _env_int('COACH_MIN_PLAN_LENGTH', 2)

# ─── SERVICE SETTINGS ────────────────────────────────────────────────

REDIS_URL = os.environ.get('REDIS_URL', '')
SESSION_TTL_SECONDS = _env_int('SESSION_TTL_SECONDS', 86400)  # 24 hours
SENTRY_DSN = os.environ.get('SENTRY_DSN', '')
ENVIRONMENT = os.environ.get('ENVIRONMENT', 'development')
APP_VERSION = os.environ.get('APP_VERSION', '1.0.0')
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')


DEFAULT_THRESHOLDS = {
    'pain_regress_at': PAIN_REGRESS_AT,
    'pain_reset_at': PAIN_RESET_AT,
    'confidence_regress_at_or_below': CONFIDENCE_REGRESS_AT_OR_BELOW,
    'confidence_reset_at_or_below': CONFIDENCE_RESET_AT_OR_BELOW,
    'session_pain_stop': SESSION_PAIN_STOP,
    'min_plan_length': MIN_PLAN_LENGTH,
}

_LEVEL_KEYS = (
    'pain_regress_at',
    'pain_reset_at',
    'confidence_regress_at_or_below',
    'confidence_reset_at_or_below',
    'session_pain_stop',
)


def validate_thresholds(thresholds):
    """
    Check a thresholds dict for internal consistency.

    Raises:
        ConfigurationError: unknown key, non-integer value, level outside 0-10,
            or a RESET cut point that is less strict than its REGRESSED one
    """
    unknown = set(thresholds) - set(DEFAULT_THRESHOLDS)
    if unknown:
        raise ConfigurationError(f"Unknown threshold(s): {', '.join(sorted(unknown))}")

    for key, value in thresholds.items():
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigurationError(f"{key} must be an integer, got {value!r}")

    for key in _LEVEL_KEYS:
        if not 0 <= thresholds[key] <= 10:
            raise ConfigurationError(f"{key} must be between 0 and 10, got {thresholds[key]}")

    if thresholds['pain_reset_at'] < thresholds['pain_regress_at']:
        raise ConfigurationError("pain_reset_at must be >= pain_regress_at")

    if thresholds['confidence_reset_at_or_below'] > thresholds['confidence_regress_at_or_below']:
        raise ConfigurationError(
            "confidence_reset_at_or_below must be <= confidence_regress_at_or_below"
        )

    if thresholds['min_plan_length'] < 1:
        raise ConfigurationError("min_plan_length must be at least 1")


def load_thresholds(overrides=None):
    """
    Build the thresholds dict used by the engine.

    Args:
        overrides: Optional dict of individual values to replace

    Returns:
        dict: A fresh, validated copy (safe for the caller to keep)
    """
    thresholds = dict(DEFAULT_THRESHOLDS)
    if overrides:
        thresholds.update(overrides)
    validate_thresholds(thresholds)
    return thresholds
