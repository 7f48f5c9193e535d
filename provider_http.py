"""Minimal JSON-over-HTTPS helpers shared by the provider bridges."""

import json
import logging
import socket
import ssl
import urllib.error
import urllib.request

import certifi

from errors import MalformedResponseError, ProviderError

log = logging.getLogger("story")

# certifi bundle avoids missing system CAs on macOS / slim containers
_ssl_ctx = ssl.create_default_context(cafile=certifi.where())


def _open(req: urllib.request.Request, provider: str, timeout: float):
    try:
        with urllib.request.urlopen(req, timeout=timeout, context=_ssl_ctx) as resp:
            raw = resp.read().decode("utf-8", errors="replace")
    except urllib.error.HTTPError as e:
        body_text = e.read().decode("utf-8", errors="replace")
        log.info("    %s: HTTP %d — %s", provider, e.code, body_text[:200])
        raise ProviderError(e.code, body_text, provider) from e
    except (urllib.error.URLError, socket.timeout, ConnectionError) as e:
        reason = getattr(e, "reason", e)
        log.info("    %s: connection failed — %s", provider, reason)
        raise ProviderError(0, str(reason), provider) from e

    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(provider, f"invalid JSON: {raw[:200]}") from e


def post_json(url: str, body: dict, headers: dict, provider: str, timeout: float = 120.0):
    """POST ``body`` as JSON and return the decoded JSON answer."""
    payload = json.dumps(body).encode("utf-8")
    req = urllib.request.Request(
        url, data=payload, method="POST",
        headers={"Content-Type": "application/json", **headers},
    )
    return _open(req, provider, timeout)


def get_json(url: str, headers: dict, provider: str, timeout: float = 120.0):
    req = urllib.request.Request(url, method="GET", headers=headers)
    return _open(req, provider, timeout)
