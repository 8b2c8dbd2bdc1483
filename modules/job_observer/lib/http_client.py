from __future__ import annotations

import logging

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .models import FetchResult

LOG = logging.getLogger(__name__)


class HttpClient:
    """
    Shared HTTP session for listing pages.

    Transport-level retries default to zero: the crawl worker owns the retry
    loop and its per-site backoff, and stacking both would multiply the load
    on a struggling site.
    """

    def __init__(
        self,
        timeout: float = 15.0,
        user_agent: str = "Mozilla/5.0 (compatible; JobObserver/1.0)",
        *,
        transport_retries: int = 0,
    ):
        self.timeout = float(timeout)
        self.session = requests.Session()
        self.session.headers.update({
            "User-Agent": user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
        })

        retry = Retry(
            total=transport_retries,
            backoff_factor=0.5,
            status_forcelist=(429, 500, 502, 503, 504),
            allowed_methods=frozenset(["GET", "HEAD"]),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry, pool_connections=10, pool_maxsize=20)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def fetch(self, url: str, *, timeout: float | None = None) -> FetchResult:
        """
        GET a page. HTTP error statuses come back in the result rather than
        raising; transport failures raise requests.RequestException.
        """
        resp = self.session.get(url, timeout=timeout or self.timeout)
        if not resp.encoding and resp.apparent_encoding:
            resp.encoding = resp.apparent_encoding
        return FetchResult(status_code=resp.status_code, text=resp.text, url=resp.url or url)

    def close(self) -> None:
        try:
            self.session.close()
        except Exception:
            LOG.debug("HttpClient.close() swallow", exc_info=True)
