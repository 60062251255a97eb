from __future__ import annotations

from typing import Any, Optional

import httpx


class SyncError(Exception):
    """Base class for every failure surfaced by the sync client."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class Unauthorized(SyncError):
    """Credential missing, expired or rejected. Forces re-authentication."""


class RequestFailed(SyncError):
    """Non-2xx response carrying a server-supplied message."""


class NotFoundOrForbidden(RequestFailed):
    """Record absent or not owned by the caller. The two are never told apart."""


class ValidationFailed(RequestFailed):
    """Malformed request body."""


class NetworkError(SyncError):
    """Transport failure, no response received."""


TransientNetwork = NetworkError


class Unexpected(SyncError):
    """Anything outside the taxonomy, wrapped at the sync boundary."""


def _first_message(detail: Any) -> Optional[str]:
    if isinstance(detail, str):
        return detail or None
    if isinstance(detail, list):
        for item in detail:
            found = _first_message(item)
            if found:
                return found
        return None
    if isinstance(detail, dict):
        for key in ('msg', 'message', 'error', 'detail'):
            found = _first_message(detail.get(key))
            if found:
                return found
    return None


def error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    message = _first_message(body)
    if message:
        return message
    return response.reason_phrase or 'Request failed'


def classify_response(response: httpx.Response) -> SyncError:
    status_code = response.status_code
    message = error_message(response)
    if status_code == 401:
        return Unauthorized(message, status_code=status_code)
    if status_code in (403, 404):
        return NotFoundOrForbidden(message, status_code=status_code)
    if status_code in (400, 422):
        return ValidationFailed(message, status_code=status_code)
    return RequestFailed(message, status_code=status_code)
