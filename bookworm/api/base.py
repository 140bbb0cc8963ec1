"""
HTTP client plumbing shared by the remote store and metadata clients.

Requests are blocking. The `a*` methods run them in a worker thread so
callers on the event loop only suspend at network I/O.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

# Statuses urllib3 retries when the client allows retries at all
RETRY_STATUSES = (429, 500, 502, 503, 504)


@dataclass
class APIError(Exception):
    """A request that failed in transport or with an HTTP error status."""
    message: str
    status_code: Optional[int] = None
    response_data: Optional[Dict[str, Any]] = None

    def __str__(self) -> str:
        if self.status_code:
            return f"API Error {self.status_code}: {self.message}"
        return f"API Error: {self.message}"

    @classmethod
    def from_response(cls, response: requests.Response) -> "APIError":
        body = _decode(response)
        if "error" not in body:
            body = {"error": response.text, **body}
        return cls(
            message=str(body["error"]),
            status_code=response.status_code,
            response_data=body,
        )


def _decode(response: requests.Response) -> Dict[str, Any]:
    """JSON body of a response; anything else is wrapped as {"data": text}."""
    try:
        body = response.json()
    except ValueError:
        return {"data": response.text}
    return body if isinstance(body, dict) else {"data": body}


def build_session(max_retries: int, backoff_factor: float) -> requests.Session:
    """A session whose adapters retry idempotent calls on flaky statuses."""
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=Retry(
        total=max_retries,
        backoff_factor=backoff_factor,
        status_forcelist=RETRY_STATUSES,
    ))
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


class BaseClient:
    """JSON-over-HTTP client rooted at a base URL."""

    def __init__(
        self,
        base_url: str,
        timeout: int = 30,
        max_retries: int = 3,
        retry_backoff_factor: float = 0.5,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = build_session(max_retries, retry_backoff_factor)

    def _request(self, method: str, endpoint: str, **kwargs) -> Any:
        """
        Send a request and decode the reply.

        Args:
            method: HTTP method
            endpoint: Path appended to the base URL, may be empty
            **kwargs: Passed on to requests

        Returns:
            The decoded JSON body, or {"data": <text>} for non-JSON bodies.
            JSON arrays are returned as they are.

        Raises:
            APIError: On transport failure or a status of 400 and above
        """
        kwargs.setdefault("timeout", self.timeout)

        try:
            response = self.session.request(method, f"{self.base_url}{endpoint}", **kwargs)
        except requests.exceptions.ConnectionError as e:
            raise APIError(f"Connection error: {e}") from e
        except requests.exceptions.Timeout as e:
            raise APIError(f"Request timeout: {e}") from e
        except requests.exceptions.RequestException as e:
            raise APIError(f"Request failed: {e}") from e

        if response.status_code >= 400:
            raise APIError.from_response(response)

        try:
            return response.json()
        except ValueError:
            return {"data": response.text}

    async def arequest(self, method: str, endpoint: str, **kwargs) -> Any:
        return await asyncio.to_thread(self._request, method, endpoint, **kwargs)

    async def aget(self, endpoint: str, **kwargs) -> Any:
        return await self.arequest("GET", endpoint, **kwargs)

    async def apost(self, endpoint: str, **kwargs) -> Any:
        return await self.arequest("POST", endpoint, **kwargs)

    async def adelete(self, endpoint: str, **kwargs) -> Any:
        return await self.arequest("DELETE", endpoint, **kwargs)

    def close(self) -> None:
        self.session.close()
