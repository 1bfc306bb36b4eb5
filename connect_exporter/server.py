import argparse
import logging
import os
import sys
import threading
from dataclasses import asdict
from importlib.metadata import PackageNotFoundError, version
from wsgiref.simple_server import WSGIRequestHandler, make_server

from fastmcp import FastMCP
from prometheus_client import CollectorRegistry, make_wsgi_app
from prometheus_client.exposition import ThreadingWSGIServer

from connect_exporter.collector import ConnectCollector
from connect_exporter.connect_client import ConnectAPIClient, ConnectError, DEFAULT_TIMEOUT_S
from connect_exporter.metrics import build_metrics
from connect_exporter.policy import (
    ConfigError,
    FailurePolicy,
    parse_failure_policy,
    parse_log_level,
    validate_scrape_uri,
    validate_telemetry_path,
)

log = logging.getLogger(__name__)

try:
    __version__ = version("kafka-connect-exporter")
except PackageNotFoundError:
    __version__ = "dev"

CONNECT_REST_URL = os.getenv("CONNECT_REST_URL", "http://127.0.0.1:8083")
CONNECT_TIMEOUT_SECONDS = os.getenv("CONNECT_TIMEOUT_SECONDS", str(DEFAULT_TIMEOUT_S))
LISTEN_ADDR = os.getenv("EXPORTER_LISTEN_ADDR", "0.0.0.0")
LISTEN_PORT = os.getenv("EXPORTER_LISTEN_PORT", "8080")
TELEMETRY_PATH = os.getenv("EXPORTER_TELEMETRY_PATH", "/metrics")
FAILURE_POLICY = os.getenv("EXPORTER_FAILURE_POLICY", "skip")
SCRAPE_DEADLINE_SECONDS = os.getenv("EXPORTER_SCRAPE_DEADLINE_SECONDS", "")
MODE = os.getenv("EXPORTER_MODE", "metrics")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

NAME = os.getenv("MCP_SERVER_NAME", "KafkaConnectExporter")
mcp = FastMCP(NAME)

_collector: ConnectCollector | None = None


def _number(name: str, raw: str, cast=float, maximum=None):
    try:
        value = cast(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}.") from None
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {raw!r}.")
    if maximum is not None and value > maximum:
        raise ConfigError(f"{name} must be at most {maximum}, got {raw!r}.")
    return value


def build_collector(
    uri: str,
    timeout: float = DEFAULT_TIMEOUT_S,
    policy: FailurePolicy = FailurePolicy.SKIP,
    scrape_deadline: float | None = None,
) -> ConnectCollector:
    uri = validate_scrape_uri(uri)
    client = ConnectAPIClient(uri, timeout=timeout)
    return ConnectCollector(client, build_metrics(), policy=policy, scrape_deadline=scrape_deadline)


def build_registry(collector: ConnectCollector) -> CollectorRegistry:
    # private registry: only kafka connect metrics, no process/platform collectors
    registry = CollectorRegistry(auto_describe=True)
    registry.register(collector)
    return registry


def collector_from_env() -> ConnectCollector:
    deadline = _number("EXPORTER_SCRAPE_DEADLINE_SECONDS", SCRAPE_DEADLINE_SECONDS) if SCRAPE_DEADLINE_SECONDS else None
    return build_collector(
        CONNECT_REST_URL,
        timeout=_number("CONNECT_TIMEOUT_SECONDS", CONNECT_TIMEOUT_SECONDS),
        policy=parse_failure_policy(FAILURE_POLICY),
        scrape_deadline=deadline,
    )


def get_collector() -> ConnectCollector:
    global _collector
    if _collector is None:
        _collector = collector_from_env()
    return _collector


def connector_health(connector_name: str | None = None) -> dict:
    """Kafka Connect health check: one connector's status, or a full scrape."""
    collector = get_collector()
    if connector_name:
        try:
            return {"ok": True, "status": asdict(collector.client.fetch_connector_status(connector_name))}
        except ConnectError as e:
            return {"ok": False, "error": str(e), "hint": "Check CONNECT_REST_URL and that connect is running."}

    outcome = collector.scrape()
    return {
        "ok": outcome.up,
        "connect_rest_url": collector.client.base_uri,
        "samples": [
            {"name": s.metric.name, "labels": dict(zip(s.metric.labelnames, s.labels)), "value": s.value}
            for s in outcome.samples
        ],
    }


mcp.tool()(connector_health)


class _QuietHandler(WSGIRequestHandler):
    def log_message(self, format, *args):
        log.debug(format, *args)


def make_app(registry: CollectorRegistry, telemetry_path: str = "/metrics"):
    """WSGI app serving metrics on ``telemetry_path`` and redirecting ``/`` there."""
    metrics_app = make_wsgi_app(registry)

    def app(environ, start_response):
        path = environ.get("PATH_INFO") or "/"
        if path == telemetry_path:
            return metrics_app(environ, start_response)
        if path == "/":
            start_response("301 Moved Permanently", [("Location", telemetry_path), ("Content-Type", "text/plain")])
            return [b""]
        start_response("404 Not Found", [("Content-Type", "text/plain")])
        return [b"Not Found\n"]

    return app


def _parse_args(argv):
    parser = argparse.ArgumentParser(
        prog="kafka-connect-exporter",
        description="Expose Kafka Connect connector and task state as Prometheus metrics.",
    )
    parser.add_argument("--version", action="store_true", help="show version and exit")
    return parser.parse_args(argv)


def main(argv=None):
    args = _parse_args(argv)
    if args.version:
        print(f"kafka_connect_exporter\n version: {__version__}")
        sys.exit(2)

    logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        logging.getLogger().setLevel(parse_log_level(LOG_LEVEL))
        collector = get_collector()
        port = _number("EXPORTER_LISTEN_PORT", LISTEN_PORT, cast=int, maximum=65535)
        path = validate_telemetry_path(TELEMETRY_PATH)
        if MODE not in ("metrics", "mcp"):
            raise ConfigError(f"Unknown EXPORTER_MODE {MODE!r} (use metrics or mcp).")
    except ConfigError as e:
        log.error("%s", e)
        sys.exit(1)

    log.info("Starting kafka_connect_exporter on %s:%s%s", LISTEN_ADDR, port, path)
    httpd = make_server(
        LISTEN_ADDR, port, make_app(build_registry(collector), path), ThreadingWSGIServer, handler_class=_QuietHandler
    )
    try:
        if MODE == "mcp":
            threading.Thread(target=httpd.serve_forever, daemon=True).start()
            mcp.run()
        else:
            httpd.serve_forever()
    finally:
        httpd.server_close()
        collector.client.close()


if __name__ == "__main__":
    main()
