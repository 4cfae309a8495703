# src/shipment_sync/errors.py
from __future__ import annotations

import json
from typing import Any, Optional


class ShipmentError(Exception):
    """Base class for every error the shipment operations surface.

    `kind` is the classification the route layer maps to an HTTP status.
    """

    kind = "internal"
    http_status = 500

    def __init__(self, message: str, *, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_payload(self, *, admin: bool = False) -> dict[str, Any]:
        """Error body for the route layer. Diagnostics are admin-only."""
        body: dict[str, Any] = {"error": self.message, "kind": self.kind}
        if admin and self.details:
            body.update(self.details)
        return body


class NotFoundError(ShipmentError):
    kind = "not_found"
    http_status = 404


class ConflictError(ShipmentError):
    kind = "conflict"
    http_status = 409


class PreconditionError(ShipmentError):
    kind = "bad_request"
    http_status = 400


class UnauthorizedError(ShipmentError):
    kind = "unauthorized"
    http_status = 401


class ForbiddenError(ShipmentError):
    kind = "forbidden"
    http_status = 403


class CarrierError(ShipmentError):
    """Non-2xx (or unreachable) carrier call.

    `status` is the HTTP status (None when the request never got a response),
    `body` the raw response text. `payload` is the parsed JSON body if it was JSON.
    """

    kind = "internal"
    http_status = 500

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        body: str = "",
        path: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.body = body or ""
        self.path = path
        try:
            self.payload: Any = json.loads(self.body) if self.body else None
        except ValueError:
            self.payload = None
        self.details = {
            "carrier_status": status,
            "carrier_path": path,
            "carrier_body": self.body[:2000],
        }

    @property
    def text(self) -> str:
        """Message plus body, the haystack salvage rules scan."""
        return f"{self.message} {self.body}".strip()

    def envelope(self) -> dict[str, Any]:
        """JSON-safe record of the failure for `raw_response`."""
        return {
            "status": self.status,
            "path": self.path,
            "body": self.payload if self.payload is not None else self.body,
        }


class CarrierAuthError(CarrierError):
    """Token acquisition failed."""


__all__ = [
    "ShipmentError",
    "NotFoundError",
    "ConflictError",
    "PreconditionError",
    "UnauthorizedError",
    "ForbiddenError",
    "CarrierError",
    "CarrierAuthError",
]
