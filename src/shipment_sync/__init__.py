# src/shipment_sync/__init__.py
from .pipelines.lifecycle import ShipmentLifecycle
from .pipelines.reconciler import Reconciler
from .service import Actor, ShipmentService, build_service

__all__ = [
    "ShipmentLifecycle",
    "Reconciler",
    "ShipmentService",
    "Actor",
    "build_service",
]
