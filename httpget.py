#!/usr/bin/env python3
"""
HTTP GET wrapper used as the network-bound example under test.

Requests go through a requests Session with retry logic. The transport
function that actually touches the network is
``requests.adapters.HTTPAdapter.send``, several call levels below ``get``;
tests substitute that binding to run without network access.

Settings (``http.user_agent``, ``http.timeout``) come from the shared
configuration, which is loaded on first use.
"""

import logging

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

import config

logger = logging.getLogger(__name__)

# Default timeouts (connect, read)
DEFAULT_TIMEOUT = (10, 60)
DEFAULT_USER_AGENT = "netstub/0.1"

# Dotted path of the binding tests substitute to keep requests off the network.
TRANSPORT = "requests.adapters.HTTPAdapter.send"


class HttpGetError(Exception):
    """Malformed URL or undecodable response body."""


def _get_session():
    """Creates a requests Session with retry logic and the default User-Agent."""
    session = requests.Session()

    retry_strategy = Retry(
        total=3,
        backoff_factor=1,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["HEAD", "GET", "OPTIONS"]
    )

    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("https://", adapter)
    session.mount("http://", adapter)

    config.config.ensure_loaded()
    session.headers.update({"User-Agent": config.config.get(("http", "user_agent"), DEFAULT_USER_AGENT)})
    return session


def _resolve_timeout(timeout):
    if timeout is not None:
        return timeout
    config.config.ensure_loaded()
    configured = config.config.get(("http", "timeout"))
    if isinstance(configured, int) and configured > 0:
        return (DEFAULT_TIMEOUT[0], configured)
    return DEFAULT_TIMEOUT


def get(url: str, timeout=None, raise_for_status: bool = True) -> requests.Response:
    """Sends a GET request.

    Args:
        url (str): The URL to request.
        timeout (float | tuple, optional): Timeout in seconds; defaults to the
            configured ``http.timeout`` or DEFAULT_TIMEOUT.
        raise_for_status (bool): Raise requests.HTTPError on 4xx/5xx.

    Returns:
        requests.Response: The response.

    Raises:
        HttpGetError: On a malformed URL.
        requests.RequestException: On transport or HTTP errors.
    """
    if not isinstance(url, str) or not url.strip():
        raise HttpGetError("URL must be a non-empty string")
    if not (url.startswith("http://") or url.startswith("https://")):
        raise HttpGetError(f"Malformed URL: {url!r}")

    logger.info("GET %s", url)
    with _get_session() as session:
        response = session.get(url, timeout=_resolve_timeout(timeout))
    logger.debug("GET %s -> %s", url, response.status_code)

    if raise_for_status:
        response.raise_for_status()
    return response


def get_json(url: str, timeout=None):
    """GETs ``url`` and decodes the body as JSON.

    Raises:
        HttpGetError: If the body is not valid JSON.
    """
    response = get(url, timeout=timeout)
    try:
        return response.json()
    except ValueError as exc:
        raise HttpGetError(f"Invalid JSON in response from {url}") from exc
