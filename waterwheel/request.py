"""
Issue requests against a Drupal REST API and keep its CSRF token
"""

import asyncio
from typing import Any, Dict, Optional, Union

import httpx
import structlog

from .config import Config
from .errors import RequestError, TokenFetchError, normalize_error
from .methods import Method, resolve_method

logger = structlog.get_logger(__name__)

CSRF_HEADER = 'X-CSRF-Token'
TOKEN_PATH = 'rest/session/token'


def _decode_payload(response: httpx.Response) -> Any:
    """Return the response body: parsed JSON, plain text, or None when empty."""
    if not response.content:
        return None
    content_type = response.headers.get('content-type', '').lower()
    if 'json' in content_type:
        return response.json()
    return response.text


def _join(base: str, path: str) -> str:
    path = path[1:] if path.startswith('/') else path
    return f"{base.rstrip('/')}/{path}"


class Request:
    def __init__(
        self,
        base: str,
        credentials: Any = None,
        client: Optional[httpx.AsyncClient] = None,
        **client_options,
    ):
        """Initialize the helper with a base URL and static credentials.

        Args:
            base: Root address of the API, e.g. ``https://example.com``.
            credentials: Anything httpx accepts as ``auth=``; passed through untouched.
            client: Optional pre-built AsyncClient. The helper only closes clients it created.
            **client_options: Passed to httpx.AsyncClient when no client is given.
        """
        self._base = base
        self._credentials = credentials
        self.csrf_token: Optional[str] = None
        self._token_lock = asyncio.Lock()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(**client_options)

    @property
    def base(self) -> str:
        return self._base

    @property
    def credentials(self) -> Any:
        return self._credentials

    def _auth_options(self) -> Dict[str, Any]:
        if self._credentials is None:
            return {}
        return {'auth': self._credentials}

    async def issue_request(
        self,
        method: Union[Method, str],
        url: str,
        xcsrf_token: Optional[str] = None,
        additional_headers: Optional[Dict[str, str]] = None,
        body: Any = None,
        base_override: Optional[str] = None,
    ) -> Any:
        """Issue a single request and return the decoded response payload.

        Args:
            method: HTTP verb.
            url: Path relative to the base; one leading slash is dropped.
            xcsrf_token: Sent as X-CSRF-Token, except on GET.
            additional_headers: Merged over the defaults, last write wins.
            body: Sent whenever it is not None. Mappings and lists go out as JSON.
            base_override: Replaces the configured base for this call only.

        Raises:
            RequestError: on a non-2xx response or a transport failure.
        """
        method = resolve_method(method)
        target = _join(base_override or self._base, url)

        headers = httpx.Headers()
        if method is not Method.GET and xcsrf_token is not None:
            headers[CSRF_HEADER] = xcsrf_token

        # Caller headers can clobber the CSRF header, matched case-insensitively.
        # A None value removes the header.
        for key, value in (additional_headers or {}).items():
            if value is None:
                headers.pop(key, None)
            else:
                headers[key] = value

        options: Dict[str, Any] = {'headers': headers, **self._auth_options()}
        if body is not None:
            if isinstance(body, (str, bytes)):
                options['content'] = body
            else:
                options['json'] = body

        logger.debug("request_dispatched", method=method.value, url=target, has_body=body is not None)
        try:
            response = await self._client.request(method.value, target, **options)
            response.raise_for_status()
            payload = _decode_payload(response)
        except httpx.HTTPError as e:
            error = normalize_error(e)
            logger.warning("request_failed",
                           method=method.value,
                           url=target,
                           status=error.status,
                           error=error.message)
            raise error from e
        except ValueError as e:
            error = RequestError(f"Malformed JSON in response body: {e}", status=response.status_code)
            logger.warning("response_decode_failed",
                           method=method.value,
                           url=target,
                           status=error.status,
                           error=error.message)
            raise error from e

        logger.debug("request_completed", method=method.value, url=target, status=response.status_code)
        return payload

    async def get_xcsrf_token(self) -> str:
        """Return the session CSRF token, fetching it once per instance.

        Concurrent callers share a single fetch.

        Raises:
            TokenFetchError: if the session endpoint cannot be read.
        """
        if self.csrf_token:
            return self.csrf_token

        async with self._token_lock:
            if self.csrf_token:
                return self.csrf_token

            target = _join(self._base, TOKEN_PATH)
            try:
                response = await self._client.get(target, **self._auth_options())
                response.raise_for_status()
            except httpx.HTTPError as e:
                error = normalize_error(e, TokenFetchError)
                logger.warning("csrf_token_fetch_failed", url=target, status=error.status, error=error.message)
                raise error from e

            self.csrf_token = response.text
            logger.debug("csrf_token_cached", url=target)
            return self.csrf_token

    def invalidate_token(self) -> None:
        """Forget the cached CSRF token so the next lookup hits the server again."""
        if self.csrf_token is not None:
            logger.debug("csrf_token_invalidated", base=self._base)
        self.csrf_token = None

    async def aclose(self) -> None:
        """Close the underlying client if this helper created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "Request":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


def create_request(config: Config) -> Request:
    """Create a Request wired from configuration."""
    drupal = config.drupal
    transport = config.transport
    if not drupal.get('base_url'):
        raise ValueError("drupal.base_url is not configured")

    credentials = None
    if drupal.get('username'):
        credentials = httpx.BasicAuth(drupal['username'], drupal.get('password') or '')

    headers = {}
    if transport.get('user_agent'):
        headers['User-Agent'] = str(transport['user_agent'])

    return Request(
        drupal['base_url'],
        credentials,
        timeout=httpx.Timeout(transport.get('timeout', 30.0)),
        verify=transport.get('verify', True),
        headers=headers,
    )
