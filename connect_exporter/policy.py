import logging
from enum import Enum
from urllib.parse import urlparse

SUPPORTED_SCHEMES = ("http", "https")


class ConfigError(ValueError):
    pass


class FailurePolicy(str, Enum):
    # skip: drop the failing connector, keep scraping the rest
    # abort: fail the whole cycle (up=0) on the first bad connector
    SKIP = "skip"
    ABORT = "abort"


def validate_scrape_uri(uri: str) -> str:
    s = (uri or "").strip()
    if not s:
        raise ConfigError("Scrape URI is empty.")
    parsed = urlparse(s)
    if parsed.scheme.lower() not in SUPPORTED_SCHEMES:
        raise ConfigError(f"Scheme not supported: {parsed.scheme or '<none>'!r} (use http or https).")
    if not parsed.netloc:
        raise ConfigError(f"Scrape URI has no host: {s!r}")
    return s.rstrip("/")


def parse_failure_policy(value: str) -> FailurePolicy:
    try:
        return FailurePolicy((value or "").strip().lower())
    except ValueError:
        raise ConfigError(f"Unknown failure policy {value!r} (use skip or abort).") from None


def validate_telemetry_path(path: str) -> str:
    s = (path or "").strip()
    if not s.startswith("/"):
        raise ConfigError(f"Telemetry path must start with '/', got {path!r}.")
    return s


def parse_log_level(value: str) -> int:
    level = logging.getLevelName((value or "").strip().upper())
    if not isinstance(level, int):
        raise ConfigError(f"Unknown log level {value!r}.")
    return level
