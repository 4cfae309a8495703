from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Protocol
import logging
import time

from shipment_sync.config.env import EnvError
from shipment_sync.errors import CarrierAuthError
from shipment_sync.models import EnvCfg

from .transport import RequestsTransport

LOGIN_PATH = "/v1/external/auth/login"

# Shiprocket does not advertise token lifetime; tokens are cached conservatively.
DEFAULT_TOKEN_TTL_SECONDS = 9 * 60 * 60


class TokenProvider(Protocol):
    def get_token(self) -> str:
        ...

    def invalidate(self) -> None:
        ...


@dataclass
class CarrierCredentials:
    base_url: str
    email: str
    password: str


class StaticTokenProvider:
    """Serves a pre-issued token (SHIPROCKET_TOKEN), mostly for debugging.

    The token must be the JWT returned by the login endpoint; anything else is
    answered by the carrier with 401 "Wrong number of segments", so it is
    rejected up front.
    """

    def __init__(self, token: str) -> None:
        if token.count(".") < 2:
            raise EnvError(
                "Invalid SHIPROCKET_TOKEN: expected a JWT (format a.b.c). Remove it and "
                "use SHIPROCKET_EMAIL + SHIPROCKET_PASSWORD (API user credentials) instead."
            )
        self._token = token

    def get_token(self) -> str:
        return self._token

    def invalidate(self) -> None:
        # nothing to refresh
        pass


class PasswordTokenProvider:
    """Logs in with API-user credentials and caches the token until expiry.

    Each instance owns its cache; share one instance per carrier client.
    """

    def __init__(
        self,
        creds: CarrierCredentials,
        transport: Optional[RequestsTransport] = None,
        *,
        ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.creds = creds
        self.transport = transport or RequestsTransport()
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._token: Optional[str] = None
        self._expires_at: float = 0.0
        self.logger = logger or logging.getLogger("shipment_sync.api.auth")

    def get_token(self) -> str:
        now = self._clock()
        if self._token and now < self._expires_at:
            return self._token

        url = self.creds.base_url.rstrip("/") + LOGIN_PATH
        self.logger.debug("Requesting carrier token from %s", url)
        try:
            resp = self.transport.post(
                url, json={"email": self.creds.email, "password": self.creds.password})
        except Exception as ex:
            self.invalidate()
            raise CarrierAuthError(f"Carrier auth request failed: {ex}", path=LOGIN_PATH) from ex

        if not resp.ok:
            self.invalidate()
            raise CarrierAuthError(
                f"Carrier auth failed ({resp.status_code}) at {url}",
                status=resp.status_code,
                body=resp.text,
                path=LOGIN_PATH,
            )

        try:
            body = resp.json()
        except ValueError:
            body = None
        token = body.get("token") if isinstance(body, dict) else None
        if not isinstance(token, str) or not token:
            self.invalidate()
            raise CarrierAuthError(
                "Carrier auth response format unexpected",
                status=resp.status_code,
                body=resp.text,
                path=LOGIN_PATH,
            )

        self._token = token
        self._expires_at = now + self.ttl_seconds
        self.logger.debug("Carrier token acquired (ttl=%ss)", self.ttl_seconds)
        return token

    def invalidate(self) -> None:
        self._token = None
        self._expires_at = 0.0


def token_provider_from_env(cfg: EnvCfg, transport: Optional[RequestsTransport] = None) -> TokenProvider:
    """A static token wins when configured; otherwise log in with credentials."""
    if cfg.SHIPROCKET_TOKEN:
        return StaticTokenProvider(cfg.SHIPROCKET_TOKEN)
    if not cfg.SHIPROCKET_EMAIL or not cfg.SHIPROCKET_PASSWORD:
        raise EnvError("Missing SHIPROCKET_EMAIL or SHIPROCKET_PASSWORD")
    return PasswordTokenProvider(
        CarrierCredentials(
            base_url=cfg.SHIPROCKET_BASE_URL,
            email=cfg.SHIPROCKET_EMAIL,
            password=cfg.SHIPROCKET_PASSWORD,
        ),
        transport,
    )
