from __future__ import annotations

import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Protocol

import requests

_RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({408, 425, 429})


@dataclass(frozen=True, slots=True)
class HttpResponse:
    status_code: int
    headers: Mapping[str, str]
    body: Any


class HttpRequestError(RuntimeError):
    """Raised when an HTTP call fails permanently or exhausts its transport retries."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class HttpClient(Protocol):
    def get_json(
        self,
        *,
        url: str,
        params: Mapping[str, Any],
        headers: Mapping[str, str],
        timeout_s: float,
        retries: int,
        backoff_base_s: float,
        backoff_max_s: float,
        backoff_jitter_s: float,
    ) -> HttpResponse:
        ...


class RequestsHttpClient(HttpClient):
    """
    Minimal HTTP client for upstream quote calls.

    - requests.get(...)
    - transport retries for 408/425/429/5xx and connection errors, exponential backoff
      with jitter
    - other non-200 statuses fail immediately
    - returns the JSON body as a python object
    """

    def __init__(
        self,
        *,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._session = session if session is not None else requests.Session()
        self._sleep = sleep

    def get_json(
        self,
        *,
        url: str,
        params: Mapping[str, Any],
        headers: Mapping[str, str],
        timeout_s: float,
        retries: int,
        backoff_base_s: float,
        backoff_max_s: float,
        backoff_jitter_s: float,
    ) -> HttpResponse:
        attempt = 0
        last_exc: Exception | None = None

        while attempt <= retries:
            try:
                r = self._session.get(
                    url,
                    params=dict(params),
                    headers=dict(headers),
                    timeout=timeout_s,
                )
            except requests.RequestException as e:
                last_exc = e
            else:
                if r.status_code in _RETRYABLE_STATUS_CODES or 500 <= r.status_code <= 599:
                    last_exc = HttpRequestError(
                        f"HTTP {r.status_code} for {url}",
                        status_code=r.status_code,
                    )
                elif r.status_code != 200:
                    raise HttpRequestError(
                        f"HTTP {r.status_code} for {url} params={dict(params)} body={r.text[:500]}",
                        status_code=r.status_code,
                    )
                else:
                    try:
                        body = r.json()
                    except ValueError as e:
                        raise HttpRequestError(
                            f"Invalid JSON from {url}: {r.text[:500]}",
                            status_code=r.status_code,
                        ) from e
                    response_headers = {str(k): str(v) for k, v in r.headers.items()}
                    return HttpResponse(status_code=200, headers=response_headers, body=body)

            if attempt < retries:
                self._sleep(
                    _backoff_seconds(
                        attempt=attempt,
                        base_s=backoff_base_s,
                        max_s=backoff_max_s,
                        jitter_s=backoff_jitter_s,
                    )
                )
            attempt += 1

        raise HttpRequestError(
            f"HTTP request failed after {retries + 1} attempts url={url}"
        ) from last_exc


def _backoff_seconds(*, attempt: int, base_s: float, max_s: float, jitter_s: float) -> float:
    exp = min(max_s, base_s * (2**attempt))
    jitter = random.random() * jitter_s
    return exp + jitter
