from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, Mapping

import requests

from reconurl.utils.logging import get_logger


_DEFAULT_UA = "reconurl/0.1"

logger = get_logger(__name__)


@dataclass
class HttpResponse:
    ok: bool
    url: str
    status_code: int | None
    headers: dict[str, str]
    body: bytes
    response_time_ms: int | None
    error: str | None

    def text(self) -> str:
        if not self.body:
            return ""
        return self.body.decode("utf-8", errors="ignore")

    def json(self) -> Any:
        """Decode the body as JSON; raises ValueError on malformed content."""
        return json.loads(self.text())

    def content_type(self) -> str:
        return (self.headers.get("Content-Type") or self.headers.get("content-type") or "").strip()


def _headers_to_dict(h: Mapping[str, Any] | None) -> dict[str, str]:
    out: dict[str, str] = {}
    if not h:
        return out
    for k, v in h.items():
        out[str(k)] = str(v)
    return out


class HttpClient:
    """
    Shared HTTP layer for the agents:
    - streamed read with max_bytes (0: status and headers only, <0: no cap)
    - optional retries/backoff
    - optional rate limiting (min_interval_ms)
    """

    def __init__(
        self,
        timeout: float = 10.0,
        verify_tls: bool = True,
        allow_redirects: bool = True,
        max_bytes: int = 1_000_000,
        headers: Mapping[str, str] | None = None,
        proxy: str | None = None,
        retries: int = 0,
        backoff: float = 0.2,
        min_interval_ms: int = 0,
    ) -> None:
        self.timeout = timeout
        self.verify_tls = verify_tls
        self.allow_redirects = allow_redirects
        self.max_bytes = max_bytes
        self.retries = max(0, int(retries))
        self.backoff = float(backoff)
        self.min_interval_ms = max(0, int(min_interval_ms))

        self._session = requests.Session()
        base_headers = {"User-Agent": _DEFAULT_UA, "Accept": "application/json, */*"}
        if headers:
            base_headers.update(dict(headers))
        self._headers = base_headers

        self._proxies: dict[str, str] | None = None
        if proxy:
            self._proxies = {"http": proxy, "https": proxy}

        self._last_request_ts: float | None = None

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> HttpClient:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _throttle(self) -> None:
        if self.min_interval_ms <= 0:
            return
        now = time.perf_counter()
        if self._last_request_ts is None:
            self._last_request_ts = now
            return
        elapsed_ms = (now - self._last_request_ts) * 1000.0
        wait_ms = self.min_interval_ms - elapsed_ms
        if wait_ms > 0:
            time.sleep(wait_ms / 1000.0)
        self._last_request_ts = time.perf_counter()

    def request(
        self,
        method: str,
        url: str,
        *,
        timeout: float | None = None,
        max_bytes: int | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> HttpResponse:
        method = (method or "GET").upper().strip()
        timeout = float(timeout if timeout is not None else self.timeout)
        max_bytes = int(max_bytes if max_bytes is not None else self.max_bytes)

        merged_headers = dict(self._headers)
        if headers:
            merged_headers.update(dict(headers))

        last_err: str | None = None
        for attempt in range(self.retries + 1):
            self._throttle()
            start = time.perf_counter()
            try:
                with self._session.request(
                    method=method,
                    url=url,
                    timeout=timeout,
                    allow_redirects=self.allow_redirects,
                    verify=self.verify_tls,
                    headers=merged_headers,
                    proxies=self._proxies,
                    stream=True,
                ) as r:
                    chunks: list[bytes] = []
                    total = 0
                    body_iter = r.iter_content(chunk_size=16_384) if max_bytes != 0 else ()
                    for chunk in body_iter:
                        if not chunk:
                            continue
                        if max_bytes > 0 and total + len(chunk) > max_bytes:
                            chunks.append(chunk[: max_bytes - total])
                            break
                        chunks.append(chunk)
                        total += len(chunk)

                    elapsed_ms = int(round((time.perf_counter() - start) * 1000))
                    return HttpResponse(
                        ok=True,
                        url=url,
                        status_code=int(getattr(r, "status_code", 0) or 0),
                        headers=_headers_to_dict(getattr(r, "headers", {})),
                        body=b"".join(chunks),
                        response_time_ms=elapsed_ms,
                        error=None,
                    )

            except requests.RequestException as e:
                elapsed_ms = int(round((time.perf_counter() - start) * 1000))
                last_err = f"{type(e).__name__}: {e}"
                if attempt < self.retries:
                    logger.debug("request failed, retrying: url=%s attempt=%d err=%s", url, attempt + 1, last_err)
                    time.sleep(self.backoff * (2 ** attempt))
                    continue
                return HttpResponse(
                    ok=False,
                    url=url,
                    status_code=None,
                    headers={},
                    body=b"",
                    response_time_ms=elapsed_ms,
                    error=last_err,
                )

        return HttpResponse(
            ok=False,
            url=url,
            status_code=None,
            headers={},
            body=b"",
            response_time_ms=None,
            error=last_err or "unknown error",
        )

    def get(self, url: str, **kwargs: Any) -> HttpResponse:
        return self.request("GET", url, **kwargs)
