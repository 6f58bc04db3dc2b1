import csv
import json
import time
from pathlib import Path
from typing import Any, Dict, Optional

from .settings import DATA_DIR

EVENTS_CSV = DATA_DIR / "lease_events.csv"

FIELDNAMES = [
    "server_ts",
    "event",
    "miner",
    "status",
    "reason",
    "epoch_id",
    "nonce",
    "expires_at",
    "payload_json",
]


def _write_header_if_needed(path: Path) -> None:
    if path.exists():
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as handle:
        csv.DictWriter(handle, fieldnames=FIELDNAMES).writeheader()


def log_lease_event(
    *,
    event: str,
    miner: Optional[str] = None,
    status: Optional[str] = None,
    reason: Optional[str] = None,
    epoch_id: Optional[int] = None,
    nonce: Optional[str] = None,
    expires_at: Optional[float] = None,
    payload: Optional[Dict[str, Any]] = None,
    path: Optional[Path] = None,
) -> None:
    target = path or EVENTS_CSV
    _write_header_if_needed(target)
    row = {
        "server_ts": int(time.time()),
        "event": event,
        "miner": miner or "",
        "status": status or "",
        "reason": reason or "",
        "epoch_id": epoch_id if epoch_id is not None else "",
        "nonce": nonce or "",
        "expires_at": int(expires_at) if expires_at else "",
        "payload_json": json.dumps(payload, ensure_ascii=True) if payload else "",
    }
    with target.open("a", newline="", encoding="utf-8") as handle:
        csv.DictWriter(handle, fieldnames=FIELDNAMES).writerow(row)
