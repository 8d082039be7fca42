# external_worker/core/interfaces/http_client.py
from abc import ABC, abstractmethod
from typing import Any, Dict

class HttpClientPort(ABC):
    @abstractmethod
    async def __aenter__(self) -> "HttpClientPort":
        """Async context manager entry method"""
        pass

    @abstractmethod
    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit method"""
        pass

    @abstractmethod
    async def get(self, url: str, timeout: float | None = None) -> Any:
        """Make a GET request and return the parsed JSON body.

        Raises GatewayException for HTTP error statuses, timeouts and
        connection failures. The timeout is optional; adapters use their own
        default when it is None.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the HTTP client session"""
        pass

    @abstractmethod
    async def post(self, url: str, json: Dict[str, Any] | None, timeout: float | None = None, headers: Dict[str, str] | None = None) -> Any:
        """Make a POST request and return the parsed body.

        Empty bodies (e.g. 204 No Content) are returned as None, non-JSON
        bodies as text. Error handling is the same as for `get`.
        """
        pass
