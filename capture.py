#!/usr/bin/env python3
"""
Capture records: recorded HTTP exchanges replayed by substitutes.

A capture record is an inert snapshot of one real response (url, status,
raw header block, body bytes, timing breakdown) stored as YAML. Tests load a
record and install ``replay_transport(record)`` in place of
``requests.adapters.HTTPAdapter.send`` so the code under test receives the
recorded response without touching the network.

``record_exchange`` is the one place a real request is made on purpose, to
produce a new record.
"""

from __future__ import annotations

import argparse
import json
import logging
import time
from dataclasses import dataclass, field
from datetime import timedelta
from http import HTTPStatus
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional

import requests
import yaml
from requests.structures import CaseInsensitiveDict
from requests.utils import get_encoding_from_headers

import config
import httpget
from interception import InterceptionSession

logger = logging.getLogger(__name__)

DEFAULT_FIXTURES_DIR = "fixtures"
FIXTURE_SUFFIX = ".yaml"


@dataclass(frozen=True)
class CaptureRecord:
    """A recorded HTTP response.

    Attributes:
        url (str): The requested URL.
        status (int): HTTP status code.
        headers (bytes): Raw header block in on-the-wire format, optionally
            starting with the status line.
        body (bytes): Raw response body.
        timings (Mapping[str, float]): Named phases in seconds, e.g.
            ``namelookup``, ``connect``, ``total``.
    """

    url: str
    status: int
    headers: bytes = b""
    body: bytes = b""
    timings: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "timings", MappingProxyType(dict(self.timings)))

    def header_map(self) -> CaseInsensitiveDict:
        """Parses the raw header block; repeated headers are comma-joined."""
        headers = CaseInsensitiveDict()
        for line in self.headers.decode("iso-8859-1").splitlines():
            if not line.strip() or line.startswith("HTTP/"):
                continue
            name, sep, value = line.partition(":")
            if not sep:
                logger.debug("Skipping malformed header line in record for %s: %r", self.url, line)
                continue
            name, value = name.strip(), value.strip()
            if name in headers:
                headers[name] = f"{headers[name]}, {value}"
            else:
                headers[name] = value
        return headers

    @property
    def reason(self) -> str:
        status_line = self.headers.split(b"\n", 1)[0].decode("iso-8859-1").strip()
        if status_line.startswith("HTTP/"):
            parts = status_line.split(" ", 2)
            if len(parts) == 3:
                return parts[2]
        try:
            return HTTPStatus(self.status).phrase
        except ValueError:
            return ""

    def json(self) -> Any:
        return json.loads(self.body.decode("utf-8"))

    def to_response(self, request: Optional[requests.PreparedRequest] = None) -> requests.Response:
        """Builds a fresh requests.Response carrying this record's data."""
        response = requests.Response()
        response.status_code = self.status
        response.headers = self.header_map()
        response._content = self.body
        response._content_consumed = True
        response.url = request.url if request is not None else self.url
        response.reason = self.reason
        response.encoding = get_encoding_from_headers(response.headers)
        response.elapsed = timedelta(seconds=self.timings.get("total", 0.0))
        response.request = request
        return response


def _as_bytes(value: Any) -> bytes:
    if value is None:
        return b""
    if isinstance(value, bytes):
        return value
    return str(value).encode("utf-8")


def _as_text(value: bytes):
    # YAML emits undecodable bytes as !!binary
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError:
        return value


def load_record(path) -> CaptureRecord:
    """Loads a capture record from a YAML file.

    Raises:
        OSError: If the file cannot be read.
        ValueError: If required fields are missing or malformed.
    """
    with open(path, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Capture record {path} must be a mapping")
    missing = [key for key in ("url", "status") if key not in data]
    if missing:
        raise ValueError(f"Capture record {path} is missing: {', '.join(missing)}")
    try:
        record = CaptureRecord(
            url=str(data["url"]),
            status=int(data["status"]),
            headers=_as_bytes(data.get("headers")),
            body=_as_bytes(data.get("body")),
            timings={str(k): float(v) for k, v in (data.get("timings") or {}).items()},
        )
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Capture record {path} is malformed: {exc}") from exc
    logger.debug("Loaded capture record for %s from %s", record.url, path)
    return record


def save_record(record: CaptureRecord, path) -> Path:
    """Writes ``record`` to ``path`` as YAML, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = {
        "url": record.url,
        "status": record.status,
        "headers": _as_text(record.headers),
        "body": _as_text(record.body),
        "timings": dict(record.timings),
    }
    with open(path, "w", encoding="utf-8") as fh:
        yaml.safe_dump(data, fh, sort_keys=False, allow_unicode=True)
    logger.info("Saved capture record for %s to %s", record.url, path)
    return path


def fixture_path(name: str) -> Path:
    """Resolves ``name`` inside the configured fixture directory."""
    config.config.ensure_loaded()
    path = Path(config.config.get(("fixtures", "dir"), DEFAULT_FIXTURES_DIR)) / name
    if not path.suffix:
        path = path.with_suffix(FIXTURE_SUFFIX)
    return path


def replay_transport(record: CaptureRecord, on_request: Optional[Callable] = None):
    """Builds a substitute for HTTPAdapter.send that answers with ``record``.

    Args:
        record: The response to replay. Never modified.
        on_request: Called with each PreparedRequest before answering.
    """
    def send(adapter, request, **kwargs):
        if on_request is not None:
            on_request(request)
        return record.to_response(request)
    return send


def _raw_header_block(response: requests.Response) -> bytes:
    lines = [f"HTTP/1.1 {response.status_code} {response.reason or ''}".rstrip()]
    lines.extend(f"{name}: {value}" for name, value in response.headers.items())
    return ("\r\n".join(lines) + "\r\n").encode("iso-8859-1", errors="replace")


def record_exchange(url: str, path=None) -> CaptureRecord:
    """Performs one real GET of ``url`` and snapshots it as a capture record.

    The real transport is observed through a session whose substitute for
    HTTPAdapter.send delegates to the original. Non-2xx responses are recorded
    too.

    Args:
        url: URL to fetch.
        path: Where to save the record, if anywhere.
    """
    captured = []

    def observe(adapter, request, **kwargs):
        started = time.perf_counter()
        response = session.originals[httpget.TRANSPORT](adapter, request, **kwargs)
        body = response.content
        elapsed = time.perf_counter() - started
        captured.append(CaptureRecord(
            url=request.url,
            status=response.status_code,
            headers=_raw_header_block(response),
            body=body,
            timings={"total": elapsed},
        ))
        return response

    session = InterceptionSession({httpget.TRANSPORT: observe})
    logger.info("Recording real exchange for %s", url)
    with session:
        httpget.get(url, raise_for_status=False)

    if not captured:
        raise RuntimeError(f"No exchange observed for {url}")
    record = captured[-1]
    if path is not None:
        save_record(record, path)
    return record


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description="Record one real HTTP GET as a capture record fixture")
    parser.add_argument("url", help="URL to fetch")
    parser.add_argument("name", help="fixture name inside the configured fixtures directory")
    args = parser.parse_args()

    config.config.ensure_loaded()
    config.setup_logging()
    saved = fixture_path(args.name)
    rec = record_exchange(args.url, saved)
    logger.info("Recorded %s (%s) into %s", rec.url, rec.status, saved)
