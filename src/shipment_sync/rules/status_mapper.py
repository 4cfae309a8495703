# src/shipment_sync/rules/status_mapper.py
from __future__ import annotations

from typing import Mapping, Optional

# Shiprocket reports shipment status either as free text ("In Transit") or as
# a bare numeric code. Known codes get a stable human label; anything else
# falls back to a label that still carries the raw code.
STATUS_CODE_LABELS: dict[str, str] = {
    "1": "AWB Assigned",
    "2": "Label Generated",
    "3": "Pickup Scheduled",
    "4": "Pickup Queued",
    "5": "Manifest Generated",
    "6": "Out for Delivery",
    "7": "Delivered",
    "8": "Cancelled",
    "9": "RTO Initiated",
    "10": "RTO Delivered",
    "11": "Pending",
    "12": "Lost",
    "13": "Pickup Error",
    "14": "RTO Acknowledged",
    "15": "Pickup Rescheduled",
    "16": "Cancellation Requested",
    "17": "Shipped",
    "18": "In Transit",
    "19": "Out for Pickup",
    "20": "Pickup Exception",
    "21": "Undelivered",
    "22": "Delayed",
}

FALLBACK_LABEL = "Tracking in progress (code {code})"


def is_numeric_only(value: Optional[str]) -> bool:
    """True for a non-empty string made only of ASCII digits (surrounding blanks ignored)."""
    if value is None:
        return False
    s = str(value).strip()
    return s != "" and all("0" <= ch <= "9" for ch in s)


def status_code_to_label(code: str, mapping: Optional[Mapping[str, str]] = None) -> Optional[str]:
    table = STATUS_CODE_LABELS if mapping is None else mapping
    key = str(code).strip().lstrip("0") or "0"
    return table.get(key)


def normalize_status(value: Optional[str], mapping: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """
    Map a carrier status to the label we store and show.

      - None / blank -> None (caller keeps what it has)
      - numeric, known -> label ("7" -> "Delivered")
      - numeric, unknown -> "Tracking in progress (code 999)"
      - free text -> unchanged (stripped)

    Pure and deterministic: used on live sync results and when redisplaying
    numeric statuses that were stored before normalization existed.
    """
    if value is None:
        return None
    s = str(value).strip()
    if not s:
        return None
    if not is_numeric_only(s):
        return s
    return status_code_to_label(s, mapping) or FALLBACK_LABEL.format(code=s)


def display_status(stored: Optional[str]) -> Optional[str]:
    """Customer-facing rendering of a stored status."""
    return normalize_status(stored) if is_numeric_only(stored) else stored
