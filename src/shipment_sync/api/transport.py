from __future__ import annotations

from typing import Any, Dict, Optional
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

DEFAULT_USER_AGENT = "shipment-sync/1.0"


class RequestsTransport:
    """Requests session wrapper.

    Carrier calls are attempted once per invocation, so `max_retries` defaults
    to 0; a caller that wants connection-level retries can raise it. Non-2xx
    responses are always returned, never raised.
    """

    def __init__(self, timeout: int = 30, max_retries: int = 0, backoff_factor: float = 0.3) -> None:
        self.session = requests.Session()
        self.session.headers.update({
            "Accept": "application/json",
            # some gateways reject requests without a UA
            "User-Agent": DEFAULT_USER_AGENT,
        })
        self.timeout = timeout

        retry = Retry(
            total=max_retries,
            read=max_retries,
            connect=max_retries,
            backoff_factor=backoff_factor,
            status_forcelist=(429, 500, 502, 503, 504) if max_retries else (),
            allowed_methods=("GET", "POST"),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> requests.Response:
        return self.session.request(
            method.upper(), url, headers=headers, json=json, params=params, timeout=self.timeout)

    def post(self, url: str, *, headers: Optional[Dict[str, str]] = None, json: Any = None):
        return self.request("POST", url, headers=headers, json=json)

    def get(self, url: str, *, headers: Optional[Dict[str, str]] = None, params: Optional[Dict[str, Any]] = None):
        return self.request("GET", url, headers=headers, params=params)
