"""Result values returned by the remote API clients.

Clients never raise for remote failures. They hand back a ``RemoteResult``
and the caller decides: ``not_found`` is a first-class variant so stale
identifiers can be matched instead of caught.
"""

from dataclasses import dataclass
from typing import Any, Optional

import httpx

from sharkboot.common.exceptions import RemoteApiError


@dataclass
class RemoteResult:
    """Outcome of one remote call: either ``data`` or ``error``."""

    data: Any = None
    error: Optional[RemoteApiError] = None

    @classmethod
    def success(cls, data: Any) -> "RemoteResult":
        return cls(data=data)

    @classmethod
    def failure(cls, error: RemoteApiError) -> "RemoteResult":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def not_found(self) -> bool:
        return self.error is not None and self.error.is_not_found

    def unwrap(self) -> Any:
        """Return the payload or raise the carried RemoteApiError."""
        if self.error is not None:
            raise self.error
        return self.data


def _error_message(payload: Any, fallback: str) -> str:
    # OpenAI and Graph both answer {"error": {"message": ...}}
    if isinstance(payload, dict):
        err = payload.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        if isinstance(err, str) and err:
            return err
    return fallback


def result_from_response(service: str, resp: httpx.Response) -> RemoteResult:
    """Map an HTTP response to a RemoteResult."""
    try:
        payload = resp.json() if resp.content else {}
    except ValueError:
        payload = {"raw": resp.text[:500]}

    if 200 <= resp.status_code < 300:
        return RemoteResult.success(payload)

    return RemoteResult.failure(RemoteApiError(
        service,
        resp.status_code,
        _error_message(payload, f"HTTP {resp.status_code}"),
        details=payload.get("error") if isinstance(payload, dict) else None,
    ))


def result_from_transport_error(service: str, exc: httpx.HTTPError) -> RemoteResult:
    """Map a timeout or connection failure (no response) to a RemoteResult."""
    if isinstance(exc, httpx.TimeoutException):
        message = "Request timed out"
    else:
        message = str(exc) or exc.__class__.__name__
    return RemoteResult.failure(RemoteApiError(service, None, message))
