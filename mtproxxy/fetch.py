from __future__ import annotations

import logging
import random
import threading
import time
from dataclasses import dataclass
from typing import Optional, Sequence

import requests
import urllib3
from requests.adapters import HTTPAdapter
from urllib3.util import Retry

logger = logging.getLogger("mtproXXy.fetch")

DEFAULT_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"


class FetchError(Exception):
    """Transport failure, non-200 status, empty or oversized body, or deadline expiry."""
    def __init__(self, url: str, reason: str, status: Optional[int] = None) -> None:
        super().__init__(f"{reason}: {url}")
        self.url = url
        self.reason = reason
        self.status = status


@dataclass(frozen=True)
class FetchResult:
    url: str
    status: int
    body: bytes
    elapsed: float
    user_agent: str


class Fetcher:
    """
    Blocking fetch collaborator used from worker threads.

    - One requests.Session per thread (sessions are not shared across threads).
    - A random identity from the user-agent pool per request.
    - Connect timeout plus a total deadline enforced while streaming the body,
      a low-speed abort, and a hard body-size cap.
    - No transport retries; a failed URL is simply skipped for the cycle.
    - TLS verification is an explicit flag and is off unless verify_ssl=True.
    """
    def __init__(
        self,
        *,
        user_agents: Optional[Sequence[str]] = None,
        timeout: float = 25.0,
        connect_timeout: float = 10.0,
        verify_ssl: bool = False,
        max_body_bytes: int = 100 * 1024 * 1024,
        max_redirects: int = 5,
        low_speed_limit: int = 1024,
        low_speed_time: float = 15.0,
        chunk_size: int = 64 * 1024,
    ) -> None:
        self.user_agents = [ua for ua in (user_agents or []) if ua] or [DEFAULT_USER_AGENT]
        self.timeout = max(0.1, float(timeout))
        self.connect_timeout = max(0.1, min(float(connect_timeout), self.timeout))
        self.verify_ssl = bool(verify_ssl)
        self.max_body_bytes = max(1, int(max_body_bytes))
        self.max_redirects = max(0, int(max_redirects))
        self.low_speed_limit = max(0, int(low_speed_limit))
        self.low_speed_time = max(0.0, float(low_speed_time))
        self.chunk_size = max(1024, int(chunk_size))
        self._local = threading.local()
        if not self.verify_ssl:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    def random_user_agent(self) -> str:
        return random.choice(self.user_agents)

    def _session(self) -> requests.Session:
        sess = getattr(self._local, "session", None)
        if sess is None:
            sess = requests.Session()
            adapter = HTTPAdapter(
                pool_connections=4,
                pool_maxsize=4,
                max_retries=Retry(total=0, connect=0, read=0, redirect=0, backoff_factor=0),
            )
            sess.mount("http://", adapter)
            sess.mount("https://", adapter)
            sess.max_redirects = self.max_redirects
            sess.headers.update(
                {
                    "Accept": "*/*",
                    "Accept-Encoding": "gzip, deflate",
                    "Connection": "keep-alive",
                }
            )
            self._local.session = sess
        return sess

    def fetch(self, url: str, *, user_agent: Optional[str] = None) -> FetchResult:
        ua = user_agent or self.random_user_agent()
        t0 = time.monotonic()
        deadline = t0 + self.timeout
        logger.debug("fetch: GET %s (verify_ssl=%s ua=%.40s)", url, self.verify_ssl, ua)
        try:
            resp = self._session().get(
                url,
                headers={"User-Agent": ua},
                timeout=(self.connect_timeout, self.timeout),
                verify=self.verify_ssl,
                stream=True,
                allow_redirects=True,
            )
        except requests.RequestException as e:
            raise FetchError(url, f"transport:{e.__class__.__name__}") from e

        try:
            if resp.status_code != 200:
                raise FetchError(url, f"http_status_{resp.status_code}", status=resp.status_code)
            body = self._read_body(resp, url, deadline)
        except requests.RequestException as e:
            raise FetchError(url, f"read:{e.__class__.__name__}", status=resp.status_code) from e
        finally:
            resp.close()

        if not body:
            raise FetchError(url, "empty_body", status=resp.status_code)
        return FetchResult(url=url, status=resp.status_code, body=body, elapsed=time.monotonic() - t0, user_agent=ua)

    def _read_body(self, resp: requests.Response, url: str, deadline: float) -> bytes:
        buf = bytearray()
        window_start = time.monotonic()
        window_bytes = 0
        for chunk in resp.iter_content(chunk_size=self.chunk_size):
            now = time.monotonic()
            if now >= deadline:
                raise FetchError(url, "timeout", status=resp.status_code)
            if not chunk:
                continue
            buf += chunk
            if len(buf) > self.max_body_bytes:
                raise FetchError(url, f"body_too_large>{self.max_body_bytes}", status=resp.status_code)
            window_bytes += len(chunk)
            if self.low_speed_limit and self.low_speed_time and (now - window_start) >= self.low_speed_time:
                rate = window_bytes / max(1e-6, now - window_start)
                if rate < self.low_speed_limit:
                    raise FetchError(url, f"low_speed:{rate:.0f}B/s", status=resp.status_code)
                window_start = now
                window_bytes = 0
        return bytes(buf)
