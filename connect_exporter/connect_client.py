import json
import math
import time
from dataclasses import dataclass, field
from urllib.parse import quote

import requests
import urllib3

DEFAULT_TIMEOUT_S = 3.0
READ_CHUNK_SIZE = 64 * 1024


class ConnectError(Exception):
    """Base class for failures talking to the Kafka Connect REST API."""


class NetworkError(ConnectError):
    pass


class DecodeError(ConnectError):
    pass


@dataclass(frozen=True)
class TaskStatus:
    id: int
    state: str
    worker_id: str


@dataclass(frozen=True)
class ConnectorStatus:
    name: str
    state: str
    worker_id: str
    tasks: tuple[TaskStatus, ...] = field(default_factory=tuple)


class ConnectAPIClient:
    def __init__(self, base_uri: str, timeout: float = DEFAULT_TIMEOUT_S, session: requests.Session | None = None):
        self.base_uri = base_uri.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def fetch_connector_names(self, timeout: float | None = None) -> list[str]:
        url = f"{self.base_uri}/connectors"
        body = self._get_json(url, timeout, "connector list")
        if not isinstance(body, list) or not all(isinstance(n, str) for n in body):
            raise DecodeError(f"Expected a JSON array of connector names from {url}")
        return body

    def fetch_connector_status(self, name: str, timeout: float | None = None) -> ConnectorStatus:
        url = f"{self.base_uri}/connectors/{quote(name, safe='')}/status"
        body = self._get_json(url, timeout, f"status of connector {name!r}")
        return decode_connector_status(body, name)

    def close(self) -> None:
        self._session.close()

    def _get_json(self, url: str, timeout: float | None, what: str):
        timeout = timeout if timeout is not None else self.timeout
        # requests' timeout bounds each socket wait; the deadline bounds the whole fetch
        deadline = time.monotonic() + timeout
        try:
            r = self._session.get(url, timeout=timeout, stream=True)
        except requests.RequestException as e:
            raise NetworkError(f"Failed to fetch {what}: {e}") from e

        with r:
            try:
                r.raise_for_status()
            except requests.HTTPError as e:
                raise DecodeError(f"Unexpected response for {what}: {e}") from e
            body = _read_body(r, deadline, timeout, what)

        try:
            return json.loads(body)
        except ValueError as e:
            raise DecodeError(f"Failed to parse JSON response for {what}: {e}") from e


def _read_body(r: requests.Response, deadline: float, timeout: float, what: str) -> bytes:
    chunks = []
    try:
        while True:
            if time.monotonic() >= deadline:
                raise NetworkError(f"Timed out after {timeout}s reading {what}")
            # read1 returns whatever has arrived instead of waiting for a full chunk
            chunk = r.raw.read1(READ_CHUNK_SIZE, decode_content=True)
            if not chunk:
                return b"".join(chunks)
            chunks.append(chunk)
    except (urllib3.exceptions.HTTPError, requests.RequestException, OSError) as e:
        raise NetworkError(f"Failed to read response body for {what}: {e}") from e


def decode_connector_status(body, requested_name: str) -> ConnectorStatus:
    """Map a ``/connectors/<name>/status`` document onto ConnectorStatus.

    Missing ``state``/``worker_id`` decode as empty strings and missing
    ``tasks`` as no tasks; a present field of the wrong type is a DecodeError.
    """
    if not isinstance(body, dict):
        raise DecodeError(f"Expected a JSON object for connector {requested_name!r}")

    connector = _field(body, "connector", {})
    if not isinstance(connector, dict):
        raise DecodeError(f"Field 'connector' of {requested_name!r} is not an object")

    tasks = _field(body, "tasks", [])
    if not isinstance(tasks, list):
        raise DecodeError(f"Field 'tasks' of {requested_name!r} is not an array")

    return ConnectorStatus(
        name=_string(body, "name", requested_name),
        state=_string(connector, "state"),
        worker_id=_string(connector, "worker_id"),
        tasks=tuple(_decode_task(t, requested_name) for t in tasks),
    )


def _decode_task(raw, connector_name: str) -> TaskStatus:
    if not isinstance(raw, dict):
        raise DecodeError(f"Task entry of {connector_name!r} is not an object")
    return TaskStatus(
        id=task_id_from_wire(raw.get("id")),
        state=_string(raw, "state"),
        worker_id=_string(raw, "worker_id"),
    )


def task_id_from_wire(value) -> int:
    """Convert a JSON task id to int without truncating (``3.0`` ok, ``3.5`` not)."""
    # bool is an int subclass
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DecodeError(f"Task id {value!r} is not a number")
    if isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            raise DecodeError(f"Task id {value!r} is not an integer")
        value = int(value)
    if value < 0:
        raise DecodeError(f"Task id {value!r} is negative")
    return value


def _string(obj: dict, key: str, default: str = "") -> str:
    value = obj.get(key)
    if value is None:
        return default
    if not isinstance(value, str):
        raise DecodeError(f"Field {key!r} is not a string: {value!r}")
    return value


def _field(obj: dict, key: str, default):
    value = obj.get(key)
    return default if value is None else value
