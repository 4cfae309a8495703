from __future__ import annotations
from dataclasses import dataclass


@dataclass(frozen=True)
class EnvCfg:
    """Typed view of the settings get_app_env() loads."""
    SHIPROCKET_BASE_URL: str = "https://apiv2.shiprocket.in"
    SHIPROCKET_EMAIL: str = ""
    SHIPROCKET_PASSWORD: str = ""
    SHIPROCKET_TOKEN: str = ""
    SHIPROCKET_PICKUP_LOCATION: str = ""
    SHIPROCKET_DEFAULT_WEIGHT_KG: float = 0.3
    SHIPROCKET_DEFAULT_LENGTH_CM: float = 18.0
    SHIPROCKET_DEFAULT_BREADTH_CM: float = 10.0
    SHIPROCKET_DEFAULT_HEIGHT_CM: float = 3.0
    SHIPROCKET_SYNC_SECRET: str = ""
    DATABASE_URL: str = "sqlite:///shipments.db"
    EMAIL_HOST: str = ""
    EMAIL_PORT: int = 587
    EMAIL_USER: str = ""
    EMAIL_PASSWORD: str = ""
    EMAIL_SECURE: bool = False
    EMAIL_FROM: str = ""


@dataclass(frozen=True)
class ShipDefaults:
    """Fixed parcel defaults sent with every shipment creation."""
    pickup_location: str
    weight: float
    length: float
    breadth: float
    height: float
