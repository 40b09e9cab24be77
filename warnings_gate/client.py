"""CI server API client for normalized issue reports.

Usage:
    client = ReportClient(url="https://ci.example.com", user="me", token="xxx")
    data   = client.get("/job/my-job/12/checkstyle/all/api/json")
    issues = client.get_issues("/job/my-job/12/checkstyle/all/api/json")
"""

from typing import Any

import requests

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class ReportClientError(Exception):
    """Base exception for all client errors."""


class AuthenticationError(ReportClientError):
    """Raised on HTTP 401 / 403 - invalid user or token."""


class NotFoundError(ReportClientError):
    """Raised on HTTP 404 - job, build or report not found."""


class NetworkError(ReportClientError):
    """Raised on connection timeout or unreachable server."""


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class ReportClient:
    """Thin wrapper around the CI server's JSON API."""

    def __init__(self, url: str, user: str = "", token: str = "", timeout: int = 30) -> None:
        self.base_url = url.rstrip("/")
        self._timeout = timeout
        self._session = requests.Session()
        if token:
            self._session.auth = (user, token)

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def get(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        """Perform a single GET request and return the parsed JSON response.

        *endpoint* may be a path below the base URL or an absolute URL.

        Raises:
            AuthenticationError: HTTP 401 / 403
            NotFoundError:       HTTP 404
            ReportClientError:   Any other non-2xx response or invalid JSON
            NetworkError:        Timeout or connection failure
        """
        return self._request(endpoint, params or {})

    def get_issues(self, endpoint: str) -> list[dict]:
        """Return the raw issue records of a report endpoint.

        Accepts both a bare JSON list and an ``{"issues": [...]}`` object.
        """
        data = self._request(endpoint, {})
        if isinstance(data, dict):
            data = data.get("issues", [])
        if not isinstance(data, list):
            raise ReportClientError(f"Unexpected report format from {endpoint}")
        return data

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _request(self, endpoint: str, params: dict[str, Any]) -> Any:
        if endpoint.startswith(("http://", "https://")):
            url = endpoint
        else:
            url = f"{self.base_url}/{endpoint.lstrip('/')}"
        try:
            response = self._session.get(url, params=params, timeout=self._timeout)
        except requests.exceptions.Timeout as exc:
            raise NetworkError(
                f"Request timed out after {self._timeout}s while contacting '{url}'"
            ) from exc
        except requests.exceptions.ConnectionError as exc:
            raise NetworkError(f"Unable to reach CI server at '{url}'") from exc

        if response.status_code in (401, 403):
            raise AuthenticationError(
                "Authentication failed - check the configured user and API token."
            )
        if response.status_code == 404:
            raise NotFoundError(f"Resource not found: {url}")
        if not response.ok:
            raise ReportClientError(
                f"Unexpected response {response.status_code} from {url}: {response.text[:200]}"
            )

        try:
            return response.json()
        except ValueError as exc:
            raise ReportClientError(f"Invalid JSON received from {url}") from exc
