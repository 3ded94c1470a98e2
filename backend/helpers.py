# helpers.py
from datetime import datetime, timezone
import time

def _now() -> float:
    return time.time()

def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
