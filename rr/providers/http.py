"""HTTP client abstraction for provider, store and callback calls.

This module provides:
- HttpClient: Protocol for JSON requests (injectable for tests)
- RealHttpClient: Real implementation using urllib
- MockHttpClient: Scripted implementation for testing
"""

from __future__ import annotations

import json
import ssl
import threading
import urllib.error
import urllib.request
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from rr import __version__
from rr.core.result import Err, Ok, Result
from rr.core.structured import StrDict, as_str_dict

__all__ = [
    "HttpClient",
    "RealHttpClient",
    "MockHttpClient",
    "HttpError",
]


@dataclass(frozen=True, slots=True)
class HttpError:
    """HTTP error details.

    Attributes:
        url: The URL that failed
        status: HTTP status code (0 for network errors and timeouts)
        message: Human-readable error message
    """

    url: str
    status: int
    message: str

    @property
    def is_transient(self) -> bool:
        """Worth retrying on a later pass: network failure, throttling or 5xx."""
        return self.status == 0 or self.status == 429 or self.status >= 500

    def __str__(self) -> str:
        if self.status:
            return f"HTTP {self.status}: {self.message} ({self.url})"
        return f"{self.message} ({self.url})"


@runtime_checkable
class HttpClient(Protocol):
    def get_json(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> Result[StrDict, HttpError]:
        """GET ``url`` and parse the body as a JSON object."""
        ...

    def post_json(
        self,
        url: str,
        payload: Mapping[str, object],
        *,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> Result[StrDict, HttpError]:
        """POST ``payload`` as JSON. An empty response body yields ``{}``."""
        ...


class RealHttpClient:
    """HTTP client using urllib with system certificates.

    Every request is bounded by a timeout; callers may tighten it per call.
    """

    def __init__(self, timeout: float = 30.0, user_agent: str = f"rr/{__version__}") -> None:
        self.timeout = timeout
        self.user_agent = user_agent
        self._ssl_context = ssl.create_default_context()

    def _request(
        self,
        url: str,
        *,
        method: str,
        body: bytes | None,
        headers: Mapping[str, str] | None,
        timeout: float | None,
    ) -> Result[bytes, HttpError]:
        merged = {"User-Agent": self.user_agent, "Accept": "application/json"}
        if body is not None:
            merged["Content-Type"] = "application/json"
        if headers:
            merged.update(headers)

        try:
            req = urllib.request.Request(url, data=body, headers=merged, method=method)
            with urllib.request.urlopen(
                req,
                timeout=timeout if timeout is not None else self.timeout,
                context=self._ssl_context,
            ) as response:
                return Ok(response.read())
        except urllib.error.HTTPError as e:
            return Err(HttpError(url=url, status=e.code, message=str(e.reason)))
        except urllib.error.URLError as e:
            return Err(HttpError(url=url, status=0, message=str(e.reason)))
        except TimeoutError:
            return Err(HttpError(url=url, status=0, message="Request timed out"))
        except ValueError as e:
            return Err(HttpError(url=url, status=0, message=str(e)))
        except OSError as e:
            return Err(HttpError(url=url, status=0, message=str(e)))

    def _decode(self, url: str, raw: bytes) -> Result[StrDict, HttpError]:
        if not raw.strip():
            return Ok({})
        try:
            data = as_str_dict(json.loads(raw.decode("utf-8")))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            return Err(HttpError(url=url, status=0, message=f"JSON parse error: {e}"))
        if data is None:
            return Err(HttpError(url=url, status=0, message="Expected JSON object"))
        return Ok(data)

    def get_json(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> Result[StrDict, HttpError]:
        result = self._request(url, method="GET", body=None, headers=headers, timeout=timeout)
        if isinstance(result, Err):
            return result
        return self._decode(url, result.value)

    def post_json(
        self,
        url: str,
        payload: Mapping[str, object],
        *,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> Result[StrDict, HttpError]:
        body = json.dumps(dict(payload)).encode("utf-8")
        result = self._request(url, method="POST", body=body, headers=headers, timeout=timeout)
        if isinstance(result, Err):
            return result
        return self._decode(url, result.value)


@dataclass(frozen=True, slots=True)
class RecordedCall:
    method: str
    url: str
    headers: dict[str, str]
    payload: dict[str, object] | None = None


class MockHttpClient:
    """Mock HTTP client for testing.

    Usage:
        client = MockHttpClient()
        client.set_json("https://ci.example.com/queue/item/42/api/json", {"cancelled": True})
        result = client.get_json("https://ci.example.com/queue/item/42/api/json")
        assert result == Ok({"cancelled": True})

    Unregistered URLs answer 404. Calls are recorded in ``calls``.
    """

    def __init__(self) -> None:
        self._get_responses: dict[str, StrDict | HttpError] = {}
        self._post_responses: dict[str, StrDict | HttpError] = {}
        self._lock = threading.Lock()
        self.calls: list[RecordedCall] = []

    def set_json(self, url: str, response: StrDict | HttpError) -> None:
        self._get_responses[url] = response

    def set_post(self, url: str, response: StrDict | HttpError) -> None:
        self._post_responses[url] = response

    def _answer(
        self, url: str, responses: Mapping[str, StrDict | HttpError]
    ) -> Result[StrDict, HttpError]:
        if url not in responses:
            return Err(HttpError(url=url, status=404, message="Not found (mock)"))
        response = responses[url]
        if isinstance(response, HttpError):
            return Err(response)
        return Ok(response)

    def get_json(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> Result[StrDict, HttpError]:
        with self._lock:
            self.calls.append(RecordedCall("GET", url, dict(headers or {})))
        return self._answer(url, self._get_responses)

    def post_json(
        self,
        url: str,
        payload: Mapping[str, object],
        *,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> Result[StrDict, HttpError]:
        with self._lock:
            self.calls.append(RecordedCall("POST", url, dict(headers or {}), dict(payload)))
        return self._answer(url, self._post_responses)

    def urls(self, method: str | None = None) -> list[str]:
        return [c.url for c in self.calls if method is None or c.method == method]
