# src/shipment_sync/rules/salvage.py
"""
Known, recoverable carrier error signatures.

These are narrow on purpose: each pattern encodes one observed Shiprocket
message and is carrier-contract knowledge that can change without notice.
Anything that does not match stays a plain failure.
"""
from __future__ import annotations

import re
from typing import Any, Iterable, Optional

# AssignAWB refusing a courier-specific reassignment still discloses the AWB
# it holds, e.g. "AWB is already assigned ... Current AWB 1234567890 ...".
CURRENT_AWB_RE = re.compile(r"Current\s+AWB\s*(?:is|:|-)?\s*([A-Za-z0-9][A-Za-z0-9\-]*)", re.IGNORECASE)

# Creation broken by a pickup location the carrier does not know; retrying
# the same payload will never succeed.
INVALID_PICKUP_RE = re.compile(
    r"(?:wrong|invalid|incorrect)\s+pickup\s+location"
    r"|pickup\s+location\s+(?:is\s+)?(?:invalid|incorrect|not\s+found|does\s+not\s+exist)",
    re.IGNORECASE,
)

# Words the pattern can capture that are never AWBs.
_NOT_AWBS = {"is", "null", "none", "undefined", "assigned"}


def salvage_awb(text: Optional[str]) -> Optional[str]:
    """AWB named in a "Current AWB <value>" carrier message, if any."""
    if not text:
        return None
    for match in CURRENT_AWB_RE.finditer(text):
        candidate = match.group(1).strip()
        if candidate and candidate.lower() not in _NOT_AWBS:
            return candidate
    return None


def salvage_awb_from_error(err: Any) -> Optional[str]:
    """Apply `salvage_awb` to a CarrierError's message and raw body."""
    return salvage_awb(getattr(err, "text", None) or str(err))


def is_invalid_pickup_location(messages: Iterable[Optional[str]]) -> bool:
    return any(m and INVALID_PICKUP_RE.search(m) for m in messages)
