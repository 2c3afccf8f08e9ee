"""
Base HTTP client for external APIs.

Contains shared functionality used by the Bluesky, Ozone, ORCID and OpenAlex
clients.
"""
from typing import Any, Dict, Optional

import httpx


class APIError(Exception):
    """Custom exception for API errors."""

    def __init__(self, message: str, status_code: int, response: Optional[Any] = None):
        self.message = message
        self.status_code = status_code
        self.response = response
        super().__init__(f"API Error {status_code}: {message}")


class BaseAPIClient:
    """
    Base class for API clients with shared functionality.

    Provides common HTTP client setup, response handling, and context
    manager support. Pass *transport* to route requests somewhere other than
    the network (``httpx.MockTransport`` in tests).
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize the API client.

        Args:
            base_url: Base URL for the API
            timeout: Request timeout in seconds (default 30.0)
            headers: Headers sent with every request
            transport: Optional httpx transport
        """
        self.base_url = base_url.rstrip("/")
        self.client = httpx.Client(
            timeout=timeout,
            headers={"Accept": "application/json", **(headers or {})},
            transport=transport,
        )

    def _url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def _handle_response(self, response: httpx.Response) -> Any:
        """
        Handle API response and raise errors if needed.

        Args:
            response: HTTP response

        Returns:
            Parsed JSON response

        Raises:
            APIError: If the API returns an error
        """
        if response.status_code == 204:
            return {"success": True}

        try:
            data = response.json()
        except ValueError:
            data = {"error": "Failed to parse response", "raw": response.text}

        if response.status_code >= 400:
            error_msg = "Unknown error"
            if isinstance(data, dict):
                error_msg = data.get("message") or data.get("error") or error_msg
            raise APIError(str(error_msg), response.status_code, data)

        return data

    def get(self, path: str, params: Optional[Dict[str, Any]] = None, headers: Optional[Dict[str, str]] = None) -> Any:
        response = self.client.get(self._url(path), params=params, headers=headers)
        return self._handle_response(response)

    def post(
        self,
        path: str,
        json: Optional[Any] = None,
        data: Optional[Dict[str, str]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        response = self.client.post(self._url(path), json=json, data=data, headers=headers)
        return self._handle_response(response)

    def close(self):
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
