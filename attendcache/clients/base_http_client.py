# clients/base_http_client.py
import requests
import time
import re

from typing import Dict, Any, Optional
from urllib.parse import urljoin
from abc import ABC
from attendcache.core.exceptions.exceptions import ExternalAPIError
from attendcache.utils.log import app_logger

# statuses worth another attempt; every other 4xx/5xx fails straight away
RETRYABLE_STATUSES = {429, 502, 503, 504}


class BaseHTTPClient(ABC):
    """JSON-over-HTTP client for upstream services.

    Connection errors, timeouts and the statuses in RETRYABLE_STATUSES are
    retried with exponential backoff (a server-sent Retry-After wins, capped
    at `max_retry_after`). Anything still failing is raised as
    ExternalAPIError tagged with `SERVICE`, so callers never see requests'
    own exception types.
    """

    SERVICE = "upstream"
    USER_AGENT = "attendcache/0.1"

    def __init__(self,
                 base_url: str,
                 api_key: Optional[str] = None,
                 timeout: int = 30, max_retries: int = 3,
                 retry_delay: float = 1.5,
                 max_retry_after: float = 30,
                 session: Optional[requests.Session] = None
                 ):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.max_retry_after = max_retry_after
        self.session = session or requests.Session()

        self.session.headers.update({
            'User-Agent': self.USER_AGENT,
            'Accept': 'application/json',
            'Content-Type': 'application/json',
        })
        if api_key:
            self.session.headers['Authorization'] = f"Bearer {api_key}"

    def _build_url(self, endpoint: str) -> str:
        return urljoin(f"{self.base_url}/", endpoint.lstrip('/'))

    def _backoff(self, attempt: int, response: Optional[requests.Response] = None) -> float:
        retry_after = response.headers.get('Retry-After') if response is not None else None
        if retry_after is not None:
            try:
                return min(float(retry_after), self.max_retry_after)
            except ValueError:
                # HTTP-date form; fall back to our own schedule
                pass
        return self.retry_delay * (2 ** attempt)

    def _request_json(self, method: str, endpoint: str,
                      params: Optional[Dict] = None,
                      data: Optional[Dict] = None) -> Any:
        """Send one logical request, retrying transient failures, and return the decoded body."""
        url = self._build_url(endpoint)

        for attempt in range(self.max_retries + 1):
            last_try = attempt == self.max_retries
            try:
                response = self.session.request(method=method, url=url, params=params, json=data,
                                                timeout=self.timeout)
            except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
                # sanitize message to remove memory addresses like <HTTPSConnection(...) at 0x...>
                sanitized = re.sub(r'0x[0-9a-fA-F]+', '<ptr>', str(e))
                app_logger.error("request.failed", service=self.SERVICE, method=method, url=url,
                                 attempt=attempt + 1, exc_type=type(e).__name__, error=sanitized)
                if last_try:
                    raise ExternalAPIError(self.SERVICE, sanitized) from e
                time.sleep(self._backoff(attempt))
                continue
            except requests.exceptions.RequestException as e:
                raise ExternalAPIError(self.SERVICE, re.sub(r'0x[0-9a-fA-F]+', '<ptr>', str(e))) from e

            if response.status_code in RETRYABLE_STATUSES and not last_try:
                wait = self._backoff(attempt, response)
                app_logger.warning("request.retrying", service=self.SERVICE, url=url,
                                   status_code=response.status_code, attempt=attempt + 1, wait=wait)
                time.sleep(wait)
                continue

            if response.status_code >= 400:
                app_logger.error("request.status", service=self.SERVICE, method=method, url=url,
                                 status_code=response.status_code, attempt=attempt + 1)
                raise ExternalAPIError(self.SERVICE, f"{method} {url} returned {response.status_code}")

            try:
                return response.json()
            except ValueError as e:
                raise ExternalAPIError(self.SERVICE, f"{method} {url} returned a non-JSON body") from e

        # unreachable: the last attempt either returns or raises
        raise ExternalAPIError(self.SERVICE, f"no response after {self.max_retries + 1} attempts")

    def get(self, endpoint: str, params: Optional[Dict] = None) -> Any:
        return self._request_json('GET', endpoint, params=params)

    def post(self, endpoint: str, data: Optional[Dict] = None) -> Any:
        return self._request_json('POST', endpoint, data=data)

    def close(self):
        self.session.close()
