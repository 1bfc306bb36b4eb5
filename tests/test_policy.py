"""
Tests for startup configuration checks.
"""
import logging

import pytest

from connect_exporter.policy import (
    ConfigError,
    FailurePolicy,
    parse_failure_policy,
    parse_log_level,
    validate_scrape_uri,
    validate_telemetry_path,
)


@pytest.mark.parametrize(
    "uri, expected",
    [
        ("http://127.0.0.1:8083", "http://127.0.0.1:8083"),
        ("https://connect.example.com/", "https://connect.example.com"),
        ("HTTP://connect:8083", "HTTP://connect:8083"),
    ],
)
def test_validate_scrape_uri_accepts_http_and_https(uri, expected):
    assert validate_scrape_uri(uri) == expected


@pytest.mark.parametrize("uri", ["", "   ", "ftp://connect:21", "connect:8083", "file:///tmp/x", "http://"])
def test_validate_scrape_uri_rejects(uri):
    with pytest.raises(ConfigError):
        validate_scrape_uri(uri)


def test_config_error_is_value_error():
    assert issubclass(ConfigError, ValueError)


@pytest.mark.parametrize("value, expected", [("skip", FailurePolicy.SKIP), (" ABORT ", FailurePolicy.ABORT)])
def test_parse_failure_policy(value, expected):
    assert parse_failure_policy(value) is expected


def test_parse_failure_policy_rejects_unknown():
    with pytest.raises(ConfigError) as exc:
        parse_failure_policy("retry")

    assert "retry" in str(exc.value)


@pytest.mark.parametrize("path", ["/metrics", "/custom/metrics"])
def test_validate_telemetry_path(path):
    assert validate_telemetry_path(path) == path


@pytest.mark.parametrize("path", ["", "metrics"])
def test_validate_telemetry_path_rejects(path):
    with pytest.raises(ConfigError):
        validate_telemetry_path(path)


def test_parse_log_level():
    assert parse_log_level("debug") == logging.DEBUG


def test_parse_log_level_rejects_unknown():
    with pytest.raises(ConfigError):
        parse_log_level("LOUD")
