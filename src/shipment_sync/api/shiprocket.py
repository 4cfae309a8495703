from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol
from urllib.parse import quote
import json
import logging

from shipment_sync.config.logging_config import truncate
from shipment_sync.errors import CarrierError

from .auth import TokenProvider
from .transport import RequestsTransport

# Carrier endpoints. Paths are carrier-contract knowledge and may move between
# API versions; keep them in one place.
CREATE_ORDER_PATH = "/v1/external/orders/create/adhoc"
ASSIGN_AWB_PATH = "/v1/external/courier/assign/awb"
GENERATE_LABEL_PATH = "/v1/external/courier/generate/label"
CANCEL_ORDER_PATH = "/v1/external/orders/cancel"


def track_awb_path(awb: str) -> str:
    return f"/v1/external/courier/track/awb/{quote(str(awb), safe='')}"


def sync_endpoints(*, shipment_id: Optional[str], order_id: Optional[str]) -> list[str]:
    """Show/track endpoints to probe during sync, most reliable first.

    Shipment-id based endpoints come before the order-id one.
    """
    endpoints: list[str] = []
    if shipment_id:
        sid = quote(str(shipment_id), safe="")
        endpoints.append(f"/v1/external/courier/track/shipment/{sid}")
        endpoints.append(f"/v1/external/shipments/{sid}")
        endpoints.append(f"/v1/external/shipments/show/{sid}")
    if order_id:
        endpoints.append(
            f"/v1/external/orders/show/{quote(str(order_id), safe='')}")
    return endpoints


class CarrierClient(Protocol):
    def call(self, path: str, method: str = "GET", body: Any = None) -> Any:
        ...


@dataclass
class ShiprocketConfig:
    base_url: str = "https://apiv2.shiprocket.in"


class ShiprocketClient:
    """Authenticated, single-attempt JSON calls against the Shiprocket API.

    `call()` returns the parsed JSON body (or the raw text when the body is not
    JSON) and raises CarrierError with the HTTP status and body for any non-2xx
    response or transport failure. The core never retries; retrying is a new
    invocation by the caller.
    """

    def __init__(
        self,
        tokens: TokenProvider,
        cfg: Optional[ShiprocketConfig] = None,
        transport: Optional[RequestsTransport] = None,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.tokens = tokens
        self.cfg = cfg or ShiprocketConfig()
        self.transport = transport or RequestsTransport()
        self.logger: logging.Logger = logger or logging.getLogger(
            "shipment_sync.api.shiprocket")

    def _url(self, path: str) -> str:
        return self.cfg.base_url.rstrip("/") + path

    def call(self, path: str, method: str = "GET", body: Any = None) -> Any:
        token = self.tokens.get_token()
        headers = {"Authorization": f"Bearer {token}"}
        if body is not None:
            headers["Content-Type"] = "application/json"

        method = method.upper()
        url = self._url(path)
        if body is not None:
            self.logger.debug("Carrier %s %s request_body=%s", method, path,
                              truncate(json.dumps(body, ensure_ascii=False, default=str)))

        try:
            resp = self.transport.request(method, url, headers=headers, json=body)
        except Exception as ex:
            self.logger.warning("Carrier transport %s %s failed: %s", method, path, ex)
            raise CarrierError(
                f"Shiprocket request failed {path}: {ex}", path=path) from ex

        text = resp.text or ""
        try:
            data: Any = json.loads(text) if text else None
        except ValueError:
            data = text

        if not resp.ok:
            if resp.status_code == 401:
                # stale or revoked token; the next invocation logs in again
                self.tokens.invalidate()
            self.logger.warning("Carrier %s %s returned status=%s body=%s",
                                method, path, resp.status_code, truncate(text))
            raise CarrierError(
                f"Shiprocket request failed ({resp.status_code}) {path}",
                status=resp.status_code,
                body=text,
                path=path,
            )

        self.logger.debug("Carrier %s %s status=%s response_body=%s",
                          method, path, resp.status_code, truncate(text))
        return data

