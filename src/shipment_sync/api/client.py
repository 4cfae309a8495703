# src/shipment_sync/api/client.py
from __future__ import annotations
from collections import defaultdict, deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Deque, Dict, List, Optional, Tuple
import json

from shipment_sync.errors import CarrierError


def _key(method: str, path: str) -> str:
    return f"{method.upper()} {path}"


@dataclass
class ReplayShiprocketClient:
    """Replay client serving recorded carrier exchanges instead of the network.

    Each entry is either a success or a failure:

        {"method": "POST", "path": "/v1/external/orders/create/adhoc", "response": {...}}
        {"method": "POST", "path": "/v1/external/courier/assign/awb", "status": 400, "body": {...}}

    Entries for the same method+path are served in file order; the last one
    keeps being served once the queue is exhausted. Unknown paths fail like a
    carrier 404. Every call is recorded in `calls` as (method, path, body).
    """

    entries: List[dict] = field(default_factory=list)
    calls: List[Tuple[str, str, Any]] = field(default_factory=list)
    _queues: Dict[str, Deque[dict]] = field(default_factory=dict, repr=False)
    _last: Dict[str, dict] = field(default_factory=dict, repr=False)

    def __post_init__(self) -> None:
        queues: Dict[str, Deque[dict]] = defaultdict(deque)
        for entry in self.entries:
            if not isinstance(entry, dict) or "path" not in entry:
                raise ValueError(f"Replay entry needs at least a 'path': {entry!r}")
            queues[_key(entry.get("method", "GET"), entry["path"])].append(entry)
        self._queues = dict(queues)

    @classmethod
    def from_file(cls, replay_file: Path) -> "ReplayShiprocketClient":
        replay_file = Path(replay_file)
        if not replay_file.exists():
            raise ValueError(f"Replay file does not exist: {replay_file}")
        if not replay_file.is_file():
            raise ValueError(
                "ReplayShiprocketClient requires a single JSON file of recorded exchanges.")
        raw = json.loads(replay_file.read_text(encoding="utf-8"))
        return cls(entries=raw if isinstance(raw, list) else [raw])

    def add(self, method: str, path: str, response: Any = None, *,
            status: Optional[int] = None, body: Any = None) -> "ReplayShiprocketClient":
        """Queue one more exchange; returns self so tests can chain."""
        entry: dict = {"method": method, "path": path}
        if status is not None:
            entry.update(status=status, body=body)
        else:
            entry["response"] = response
        self._queues.setdefault(_key(method, path), deque()).append(entry)
        return self

    def paths_called(self) -> List[str]:
        return [p for _, p, _ in self.calls]

    def call(self, path: str, method: str = "GET", body: Any = None) -> Any:
        key = _key(method, path)
        self.calls.append((method.upper(), path, body))

        queue = self._queues.get(key)
        if queue:
            entry = queue.popleft()
            self._last[key] = entry
        elif key in self._last:
            entry = self._last[key]
        else:
            raise CarrierError(
                f"Shiprocket request failed (404) {path}",
                status=404,
                body=json.dumps({"message": "Not found in replay"}),
                path=path,
            )

        status = entry.get("status")
        if status is not None and int(status) >= 400:
            raw = entry.get("body")
            text = raw if isinstance(raw, str) else json.dumps(raw)
            raise CarrierError(
                f"Shiprocket request failed ({status}) {path}",
                status=int(status),
                body=text,
                path=path,
            )
        return entry.get("response")
