from __future__ import annotations
from datetime import datetime, timezone

def now_utc() -> datetime:
    # delivery_* / last_updated columns are timezone-aware
    return datetime.now(timezone.utc)
