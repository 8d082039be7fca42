# external_worker/adapters/aiohttp_client_adapter.py
import asyncio
import aiohttp
from typing import Any, Callable, Dict, Optional

from external_worker.core.interfaces.http_client import HttpClientPort
from external_worker.core.exceptions import GatewayException
from external_worker.core.models.gateway_error import GatewayErrorResponse
from external_worker.core.settings import logger


class AioHttpClientAdapter(HttpClientPort):
    """aiohttp implementation of HttpClientPort.

    Credentials are attached to every request: `auth` as HTTP basic auth or
    `bearer_token` as an Authorization header. `customize_session` is called
    once with the freshly created ClientSession (e.g. to add default headers
    or cookies) before any request is made.
    """

    def __init__(
        self,
        auth: Optional[aiohttp.BasicAuth] = None,
        bearer_token: Optional[str] = None,
        customize_session: Optional[Callable[[aiohttp.ClientSession], None]] = None,
        timeout: float = 10.0,
    ):
        self._session: Optional[aiohttp.ClientSession] = None
        self._auth = auth
        self._headers: Dict[str, str] = {}
        if bearer_token:
            self._headers["Authorization"] = f"Bearer {bearer_token}"
        self._customize_session = customize_session
        # Per-field timeouts defined once so callers only pass a total
        self._default_total: float = timeout
        self._default_sock_read: float = timeout
        self._default_sock_connect: float = 5.0
        self._default_client_timeout = aiohttp.ClientTimeout(
            total=self._default_total,
            sock_read=self._default_sock_read,
            sock_connect=self._default_sock_connect,
        )

    async def __aenter__(self):
        """Async context manager entry"""
        self._session = aiohttp.ClientSession()
        if self._customize_session:
            self._customize_session(self._session)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        await self.close()
        return False

    def _client_timeout(self, timeout: float | None) -> aiohttp.ClientTimeout:
        if timeout is None:
            return self._default_client_timeout
        # Keep adapter-level sock_read/sock_connect values but apply provided total
        return aiohttp.ClientTimeout(
            total=timeout,
            sock_read=self._default_sock_read,
            sock_connect=self._default_sock_connect,
        )

    async def get(self, url: str, timeout: float | None = None) -> Any:
        body = await self._request("GET", url, timeout=timeout)
        if isinstance(body, str):
            logger.error(
                "Invalid JSON response from job API. URL: %s, Content: %s",
                url,
                body[:500],
            )
            raise GatewayException(
                GatewayErrorResponse(
                    title="Invalid Response Content",
                    status=502,
                    detail=f"The response from the job API was not valid JSON: '{body[:100]}'",
                    url=url,
                )
            )
        return body

    async def post(self, url: str, json: Dict[str, Any] | None, timeout: float | None = None, headers: Dict[str, str] | None = None) -> Any:
        return await self._request("POST", url, json=json, timeout=timeout, headers=headers)

    async def _request(
        self,
        method: str,
        url: str,
        json: Dict[str, Any] | None = None,
        timeout: float | None = None,
        headers: Dict[str, str] | None = None,
    ) -> Any:
        """
        Send a request and return the parsed body.

        Translates HTTP/network errors into GatewayException.
        """
        if self._session is None:
            raise RuntimeError("HTTP client not initialized. Use 'async with' context manager.")

        request_headers = {**self._headers, **(headers or {})}
        try:
            async with self._session.request(
                method,
                url,
                json=json,
                auth=self._auth,
                headers=request_headers,
                timeout=self._client_timeout(timeout),
            ) as response:
                if response.status >= 400:
                    response_text = await response.text()
                    self._raise_for_status(method, url, response.status, response_text)
                try:
                    # Empty bodies (204) are returned as None
                    return await response.json(content_type=None)
                except (aiohttp.ContentTypeError, ValueError):
                    return await response.text()

        except GatewayException:
            raise

        except asyncio.TimeoutError:
            logger.error("Timeout when requesting job API. %s %s", method, url)
            raise GatewayException(
                GatewayErrorResponse(
                    title="Upstream Timeout",
                    status=504,
                    detail="The request to the job API timed out.",
                    url=url,
                )
            )

        except aiohttp.ClientError as client_error:
            logger.error(
                "Connection error when requesting job API. %s %s, Error: %s",
                method,
                url,
                str(client_error),
            )
            raise GatewayException(
                GatewayErrorResponse(
                    title="Upstream Connection Error",
                    status=502,
                    detail=f"There was a connection error with the job API: {client_error}",
                    url=url,
                )
            )

    def _raise_for_status(self, method: str, url: str, status: int, response_text: str) -> None:
        if status == 401:
            logger.warning(
                "Authentication failed when requesting job API. %s %s",
                method,
                url,
            )
            raise GatewayException(
                GatewayErrorResponse(
                    title="Authentication Failed",
                    status=401,
                    detail="Authentication with the job API failed.",
                    url=url,
                )
            )

        logger.error(
            "HTTP error when requesting job API. %s %s, Status: %s, Body: %s",
            method,
            url,
            status,
            response_text[:500],
        )
        raise GatewayException(
            GatewayErrorResponse(
                title="Upstream HTTP Error",
                status=status,
                detail=f"The job API returned an HTTP error: {status}",
                url=url,
            )
        )

    async def close(self) -> None:
        """Close the session"""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
