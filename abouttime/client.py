# abouttime/client.py
"""HTTP client for the calendar conflict service."""

from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict, List, Optional

import requests

from .codec import PayloadError, conflict_member_from_json, conflict_member_to_json
from .conflicts import ConflictGroup, make_group
from .model import ConflictMember
from .util.console import env_float, obs

log = logging.getLogger(__name__)

DEFAULT_SERVICE_URL = "http://127.0.0.1:8787"
DEFAULT_TIMEOUT_S = 10.0


class ConflictServiceError(RuntimeError):
    """Transport or protocol failure talking to the conflict service."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


def service_url_from_env() -> str:
    raw = (os.getenv("ABOUTTIME_SERVICE_URL", "") or "").strip()
    return raw or DEFAULT_SERVICE_URL


class ConflictServiceClient:
    """Fetch conflict groups and write resolved members back.

    Every call is a single attempt; failures raise ConflictServiceError.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = (base_url or service_url_from_env()).rstrip("/")
        self.timeout = float(timeout) if timeout else env_float("ABOUTTIME_HTTP_TIMEOUT_S", DEFAULT_TIMEOUT_S)
        self.session = session or requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = self._url(path)
        kwargs.setdefault("timeout", self.timeout)
        t0 = time.perf_counter()
        try:
            resp = self.session.request(method, url, **kwargs)
        except requests.RequestException as ex:
            log.warning("%s %s failed: %s", method, url, ex)
            raise ConflictServiceError(f"{method} {url} failed: {ex}") from ex
        elapsed_ms = (time.perf_counter() - t0) * 1000.0
        obs("client", "http", method=method, path=path, status=resp.status_code, ms=f"{elapsed_ms:.1f}")

        if resp.status_code >= 400:
            log.warning("%s %s -> HTTP %s", method, url, resp.status_code)
            raise ConflictServiceError(f"{method} {url} -> HTTP {resp.status_code}", status=resp.status_code)
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as ex:
            raise ConflictServiceError(f"{method} {url}: response is not JSON", status=resp.status_code) from ex

    def conflict_groups(self, start: int, end: int) -> List[ConflictGroup]:
        """Conflict groups the service reports for [start, end)."""
        data = self._request("GET", "/api/calendar/conflicts", params={"start": int(start), "end": int(end)})
        if not isinstance(data, dict) or not isinstance(data.get("groups"), list):
            raise ConflictServiceError("conflicts response must be an object with a 'groups' list")

        groups: List[ConflictGroup] = []
        for raw in data["groups"]:
            if not isinstance(raw, list):
                raise ConflictServiceError("each conflict group must be a list")
            try:
                members = [conflict_member_from_json(m) for m in raw]
            except PayloadError as ex:
                raise ConflictServiceError(f"bad conflict member: {ex}") from ex
            if len(members) >= 2:
                groups.append(make_group(members))
        log.debug("fetched %d conflict group(s) for [%s, %s)", len(groups), start, end)
        return groups

    def upsert_item(self, member: ConflictMember) -> Dict[str, Any]:
        body = conflict_member_to_json(member)
        data = self._request("POST", "/api/calendar/items", json=body)
        return data if isinstance(data, dict) else {}

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "ConflictServiceClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()


__all__ = [
    "ConflictServiceClient",
    "ConflictServiceError",
    "DEFAULT_SERVICE_URL",
    "DEFAULT_TIMEOUT_S",
    "service_url_from_env",
]
