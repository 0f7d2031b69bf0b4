"""Tests for airey.config.validate_config()."""

from unittest.mock import patch


def test_validate_config_defaults_pass():
    """Default config values should produce no warnings."""
    from airey.config import validate_config

    warnings = validate_config()
    assert warnings == [], f"Unexpected warnings with defaults: {warnings}"


def test_validate_config_non_positive_float():
    from airey.config import _POSITIVE_FLOATS, validate_config

    original = _POSITIVE_FLOATS[0]
    _POSITIVE_FLOATS[0] = ("MAX_RECOMMENDATION_AGE_SECONDS", 0.0)
    try:
        warnings = validate_config()
        assert any("MAX_RECOMMENDATION_AGE_SECONDS" in w for w in warnings)
    finally:
        _POSITIVE_FLOATS[0] = original


def test_validate_config_negative_cooldown():
    from airey.config import _NON_NEGATIVE_FLOATS, validate_config

    original = _NON_NEGATIVE_FLOATS[0]
    _NON_NEGATIVE_FLOATS[0] = ("EXECUTION_COOLDOWN_SECONDS", -1.0)
    try:
        warnings = validate_config()
        assert any("EXECUTION_COOLDOWN_SECONDS" in w for w in warnings)
    finally:
        _NON_NEGATIVE_FLOATS[0] = original


def test_validate_config_zero_cooldown_is_valid():
    from airey.config import _NON_NEGATIVE_FLOATS, validate_config

    original = _NON_NEGATIVE_FLOATS[0]
    _NON_NEGATIVE_FLOATS[0] = ("EXECUTION_COOLDOWN_SECONDS", 0.0)
    try:
        assert validate_config() == []
    finally:
        _NON_NEGATIVE_FLOATS[0] = original


def test_validate_config_negative_int():
    from airey.config import _POSITIVE_INTS, validate_config

    original = _POSITIVE_INTS[0]
    _POSITIVE_INTS[0] = ("VAULT_EXECUTOR_MAX_RETRIES", -5)
    try:
        warnings = validate_config()
        assert any("VAULT_EXECUTOR_MAX_RETRIES" in w for w in warnings)
    finally:
        _POSITIVE_INTS[0] = original


def test_validate_config_min_confidence_out_of_range():
    """MIN_CONFIDENCE outside [0, 100] should be flagged."""
    from airey.config import _BOUNDED_0_100, validate_config

    original = _BOUNDED_0_100[0]
    _BOUNDED_0_100[0] = ("MIN_CONFIDENCE", 150)
    try:
        warnings = validate_config()
        assert any("MIN_CONFIDENCE" in w for w in warnings)
    finally:
        _BOUNDED_0_100[0] = original


def test_validate_config_invalid_log_format():
    from airey.config import _VALID_CHOICES, validate_config

    original = _VALID_CHOICES["LOG_FORMAT"]
    _VALID_CHOICES["LOG_FORMAT"] = ("xml", {"json", "console"})
    try:
        warnings = validate_config()
        assert any("LOG_FORMAT" in w for w in warnings)
    finally:
        _VALID_CHOICES["LOG_FORMAT"] = original


def test_validate_config_live_mode_without_executor_url():
    from airey.config import validate_config

    with patch("airey.config.SIMULATION_MODE", False), patch("airey.config.VAULT_EXECUTOR_URL", ""):
        warnings = validate_config()
        assert any("VAULT_EXECUTOR_URL" in w for w in warnings)
