"""Centralized configuration — single source of truth for all tuneable constants.

Every value is backed by an environment variable with a sensible default so the
bridge works out-of-the-box while remaining fully configurable in production.
"""

import os

# ── Strategy gate policy ──

MIN_CONFIDENCE = int(os.environ.get("MIN_CONFIDENCE", "70"))
MAX_RECOMMENDATION_AGE_SECONDS = float(os.environ.get("MAX_RECOMMENDATION_AGE_SECONDS", str(24 * 3600)))
EXECUTION_COOLDOWN_SECONDS = float(os.environ.get("EXECUTION_COOLDOWN_SECONDS", "3600"))

# ── Oracle requests ──

REQUEST_TIMEOUT_SECONDS = float(os.environ.get("REQUEST_TIMEOUT_SECONDS", "600"))
# how far ahead of the bridge clock an oracle observation may be stamped
MAX_OBSERVATION_SKEW_SECONDS = float(os.environ.get("MAX_OBSERVATION_SKEW_SECONDS", "300"))
# terminal requests older than this are dropped by the sweep
REQUEST_RETENTION_SECONDS = float(os.environ.get("REQUEST_RETENTION_SECONDS", str(7 * 24 * 3600)))
EXPIRY_SWEEP_ENABLED = os.environ.get("EXPIRY_SWEEP_ENABLED", "true").lower() == "true"
EXPIRY_SWEEP_INTERVAL_SECONDS = float(os.environ.get("EXPIRY_SWEEP_INTERVAL_SECONDS", "60"))

# ── Execution layer ──

SIMULATION_MODE = os.environ.get("SIMULATION_MODE", "true").lower() != "false"
VAULT_EXECUTOR_URL = os.environ.get("VAULT_EXECUTOR_URL", "")
VAULT_EXECUTOR_API_KEY = os.environ.get("VAULT_EXECUTOR_API_KEY", "")
VAULT_EXECUTOR_TIMEOUT = float(os.environ.get("VAULT_EXECUTOR_TIMEOUT", "30"))
VAULT_EXECUTOR_MAX_RETRIES = int(os.environ.get("VAULT_EXECUTOR_MAX_RETRIES", "3"))
EXECUTION_LOG_MAX_SIZE = int(os.environ.get("EXECUTION_LOG_MAX_SIZE", "500"))

# ── Events ──

EVENT_BUFFER_SIZE = int(os.environ.get("EVENT_BUFFER_SIZE", "200"))

# ── Metrics ──

METRICS_ENABLED = os.environ.get("METRICS_ENABLED", "true").lower() == "true"

# ── Persistence (Redis) ──

PERSISTENCE_ENABLED = os.environ.get("PERSISTENCE_ENABLED", "true").lower() == "true"
PERSISTENCE_REDIS_URL = os.environ.get("PERSISTENCE_REDIS_URL", os.environ.get("REDIS_URL", ""))
PERSISTENCE_KEY_PREFIX = os.environ.get("PERSISTENCE_KEY_PREFIX", "airey:store:")

# ── Logging ──

LOG_FORMAT = os.environ.get("LOG_FORMAT", "console")  # "json" or "console"
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# ── API ──

API_VERSION = os.environ.get("API_VERSION", "0.3.0")


# ── Validation ──

_POSITIVE_FLOATS: list[tuple[str, float]] = [
    ("MAX_RECOMMENDATION_AGE_SECONDS", MAX_RECOMMENDATION_AGE_SECONDS),
    ("REQUEST_TIMEOUT_SECONDS", REQUEST_TIMEOUT_SECONDS),
    ("REQUEST_RETENTION_SECONDS", REQUEST_RETENTION_SECONDS),
    ("EXPIRY_SWEEP_INTERVAL_SECONDS", EXPIRY_SWEEP_INTERVAL_SECONDS),
    ("VAULT_EXECUTOR_TIMEOUT", VAULT_EXECUTOR_TIMEOUT),
]

_NON_NEGATIVE_FLOATS: list[tuple[str, float]] = [
    ("EXECUTION_COOLDOWN_SECONDS", EXECUTION_COOLDOWN_SECONDS),
    ("MAX_OBSERVATION_SKEW_SECONDS", MAX_OBSERVATION_SKEW_SECONDS),
]

_POSITIVE_INTS: list[tuple[str, int]] = [
    ("VAULT_EXECUTOR_MAX_RETRIES", VAULT_EXECUTOR_MAX_RETRIES),
    ("EXECUTION_LOG_MAX_SIZE", EXECUTION_LOG_MAX_SIZE),
    ("EVENT_BUFFER_SIZE", EVENT_BUFFER_SIZE),
]

_BOUNDED_0_100: list[tuple[str, float]] = [
    ("MIN_CONFIDENCE", MIN_CONFIDENCE),
]

_VALID_CHOICES: dict[str, tuple[str, set[str]]] = {
    "LOG_FORMAT": (LOG_FORMAT, {"json", "console"}),
    "LOG_LEVEL": (LOG_LEVEL, {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}),
}


def validate_config() -> list[str]:
    """Return human-readable warnings for out-of-range settings (empty when valid)."""
    warnings: list[str] = []
    for name, value in _POSITIVE_FLOATS:
        if value <= 0:
            warnings.append(f"{name} must be > 0 (got {value})")
    for name, value in _NON_NEGATIVE_FLOATS:
        if value < 0:
            warnings.append(f"{name} must be >= 0 (got {value})")
    for name, value in _POSITIVE_INTS:
        if value <= 0:
            warnings.append(f"{name} must be > 0 (got {value})")
    for name, value in _BOUNDED_0_100:
        if not 0 <= value <= 100:
            warnings.append(f"{name} must be within [0, 100] (got {value})")
    for name, (value, allowed) in _VALID_CHOICES.items():
        if value not in allowed:
            warnings.append(f"{name}={value!r} is not one of {sorted(allowed)}")
    if not SIMULATION_MODE and not VAULT_EXECUTOR_URL:
        warnings.append("SIMULATION_MODE is off but VAULT_EXECUTOR_URL is empty")
    return warnings
