from __future__ import annotations

import http.client
import json
import os
import urllib.error
import urllib.request
from typing import Any, Protocol

from services.tracker_errors import NetworkFailure


TRACKER_PATH = "/api/tracker"


class TrackerTransport(Protocol):
    def read(self) -> dict[str, Any]:
        ...

    def write(self, payload: dict[str, Any]) -> dict[str, Any]:
        ...


def _require_env(name: str) -> str:
    value = (os.environ.get(name) or "").strip()
    if not value:
        raise NetworkFailure(f"Missing required environment variable: {name}")
    return value


class HttpTrackerTransport:
    def __init__(self, base_url: str, timeout: float = 20):
        self.endpoint = f"{base_url.rstrip('/')}{TRACKER_PATH}"
        self.timeout = timeout

    @classmethod
    def from_env(cls) -> "HttpTrackerTransport":
        return cls(_require_env("EQUIPMENT_TRACKER_URL"))

    def read(self) -> dict[str, Any]:
        request = urllib.request.Request(url=self.endpoint, method="GET")
        return self._send(request)

    def write(self, payload: dict[str, Any]) -> dict[str, Any]:
        body = json.dumps(payload, ensure_ascii=True).encode("utf-8")
        request = urllib.request.Request(
            url=self.endpoint,
            data=body,
            headers={"Content-Type": "text/plain;charset=utf-8"},
            method="POST",
        )
        return self._send(request)

    def _send(self, request: urllib.request.Request) -> dict[str, Any]:
        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                if response.status != 200:
                    raise NetworkFailure(f"Tracker API returned status {response.status}")
                payload = json.loads(response.read().decode("utf-8"))
        except urllib.error.HTTPError as exc:
            raise NetworkFailure(f"Tracker API HTTP error: {exc.code}") from exc
        except urllib.error.URLError as exc:
            raise NetworkFailure(f"Tracker API connection error: {exc.reason}") from exc
        except (TimeoutError, OSError) as exc:
            raise NetworkFailure(f"Tracker API connection error: {exc}") from exc
        except http.client.HTTPException as exc:
            raise NetworkFailure(f"Tracker API protocol error: {exc!r}") from exc
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise NetworkFailure("Tracker API returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise NetworkFailure("Tracker API payload is not an object")
        return payload
