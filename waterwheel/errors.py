"""
Normalized errors raised by the request helper
"""

import json
from typing import Optional

import httpx


class RequestError(Exception):
    """A failed call to the CMS, carrying a readable message and the HTTP status if any."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status

    def __repr__(self) -> str:
        return f"{type(self).__name__}(message={self.message!r}, status={self.status!r})"


class TokenFetchError(RequestError):
    """The CSRF token could not be retrieved from the session endpoint."""


def _message_from_response(response: httpx.Response) -> str:
    """Pull the error message out of a failed response.

    Drupal answers REST errors with ``{"message": "..."}``. Anything else
    falls back to the raw body, then to the reason phrase.
    """
    text = response.text.strip()
    if text:
        try:
            payload = json.loads(text)
        except ValueError:
            return text
        if isinstance(payload, dict) and payload.get('message'):
            return str(payload['message'])
        return text
    return response.reason_phrase or f"HTTP {response.status_code}"


def normalize_error(exc: httpx.HTTPError, error_cls: type = RequestError) -> RequestError:
    """Build a RequestError (or subclass) from an httpx failure."""
    if isinstance(exc, httpx.HTTPStatusError):
        response = exc.response
        return error_cls(_message_from_response(response), status=response.status_code)
    return error_cls(str(exc) or type(exc).__name__)
