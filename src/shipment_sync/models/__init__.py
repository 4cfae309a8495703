from .env_cfg import EnvCfg, ShipDefaults
from .normalized import CarrierIds, ShipmentFacts, ShipmentResult, SyncOutcome
from .shipment import PROVIDER, Base, NotificationLog, Order, Shipment

__all__ = [
    "EnvCfg",
    "ShipDefaults",
    "CarrierIds",
    "ShipmentFacts",
    "ShipmentResult",
    "SyncOutcome",
    "PROVIDER",
    "Base",
    "NotificationLog",
    "Order",
    "Shipment",
]
