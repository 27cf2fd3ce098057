"""HTTP client used by the simulated cabs and customers to talk to the dispatcher."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Mapping
from typing import Any, Optional

import requests

from .client_models import CabInfo, Demand

log = logging.getLogger(__name__)

DEFAULT_HOST = "http://localhost:8080"
DEFAULT_TIMEOUT = 30.0
RETRY_DELAY = 2.0  # seconds to give the server some breath before a retry


class ApiError(Exception):
    """A request to the dispatcher failed or returned something unusable."""


class ApiClient:
    """Sends requests to the dispatcher on behalf of a cab or a customer."""

    def __init__(self, host: str = DEFAULT_HOST, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.host = host.rstrip("/")
        self.timeout = timeout
        self.retry_delay = RETRY_DELAY
        self.session = requests.Session()

    def send_request(
        self, usr: str, path: str, method: str, body: Optional[bytes] = None
    ) -> bytes:
        """Send one request, retrying once on a transport failure, and return the body.

        The user name serves as both login and password.  A response whose body
        mentions "message" is an error reply from the server.
        """
        url = self.host + path
        headers = {} if method == "GET" else {"Content-Type": "application/json"}
        try:
            response = self._perform(usr, url, method, body, headers)
        except requests.RequestException:
            time.sleep(self.retry_delay)
            try:
                response = self._perform(usr, url, method, body, headers)
            except requests.RequestException as exc:
                log.warning("usr: %s, method: %s, url: %s, err: %s", usr, method, url, exc)
                raise ApiError(f"{method} {url} failed: {exc}") from exc
        content = response.content
        if b"message" in content:
            raise ApiError(f"{method} {url} answered with an error: {content.decode(errors='replace')}")
        return content

    def _perform(
        self,
        usr: str,
        url: str,
        method: str,
        body: Optional[bytes],
        headers: dict[str, str],
    ) -> requests.Response:
        return self.session.request(
            method,
            url,
            data=body,
            headers=headers,
            auth=(usr, usr),
            timeout=self.timeout,
        )

    def get_entity(self, usr: str, path: str, kind: Any) -> Any:
        """GET an entity and decode it with ``kind.from_dict``; a JSON list gives a list."""
        content = self.send_request(usr, path, "GET")
        if not content:
            raise ApiError("Empty body")
        try:
            data = json.loads(content)
            if isinstance(data, list):
                return [kind.from_dict(item) for item in data]
            return kind.from_dict(data)
        except (ValueError, TypeError) as exc:
            log.warning("Can not unmarshal %s", path)
            raise ApiError(f"can not decode {path}: {exc}") from exc

    def update_cab(self, usr: str, cab_id: int, stand: int, status: str) -> bool:
        """Report a cab's stand and status; True when the server took it."""
        cab = CabInfo(id=cab_id, location=stand, status=status)
        return self.update_entity(usr, "/cabs/", cab.to_dict())

    def update_entity(self, usr: str, path: str, data: Mapping[str, Any]) -> bool:
        """PUT an entity, retrying once; True on success, False when both attempts failed."""
        payload = json.dumps(dict(data)).encode()
        if path == "/legs/":
            log.debug("PUT /legs usr=%s body=%s", usr, payload.decode())
        for attempt in (1, 2):
            try:
                self.send_request(usr, path, "PUT", payload)
                return True
            except ApiError as exc:
                if attempt == 2:
                    log.warning("%s user=%s path=%s body=%s", exc, usr, path, payload.decode())
        return False

    def save_demand(self, method: str, usr: str, demand: Demand) -> Optional[Demand]:
        """POST a new demand (returning the stored one) or PUT an update (returning None)."""
        payload = json.dumps(demand.to_dict()).encode()
        try:
            content = self.send_request(usr, "/orders/", method, payload)
        except ApiError:
            log.warning("user=%s method=%s body=%s", usr, method, payload.decode())
            raise
        if not content:
            raise ApiError("Empty body")
        if method == "PUT":
            return None
        try:
            return Demand.from_dict(json.loads(content))
        except (ValueError, TypeError) as exc:
            log.warning(
                "Can not unmarshal taxi order, usr=%s, from=%d to=%d",
                usr, demand.from_stand, demand.to_stand,
            )
            raise ApiError(f"can not decode taxi order: {exc}") from exc