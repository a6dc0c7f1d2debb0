from __future__ import annotations

from datetime import datetime, timezone
import time


def now_ts() -> float:
    return time.time()


def ts_to_iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat(timespec="seconds")
