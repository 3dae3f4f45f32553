import logging
import threading

from .badges import sweep_all
from .config import SWEEP_INTERVAL_SECONDS
from .db import SessionLocal, utcnow
from .lifecycle import recompute_lifecycle

logger = logging.getLogger(__name__)


def run_sweep_once():
    db = SessionLocal()
    try:
        now = utcnow()
        # decay first, so providers about to go INACTIVE lose a stale VERIFIED
        result = sweep_all(db, now)
        result.lifecycle_changed = recompute_lifecycle(db, now).changed
        return result
    finally:
        db.close()


def sweep_loop(stop: threading.Event, interval: int = SWEEP_INTERVAL_SECONDS):
    logger.info("[SWEEP] scheduler running every %ss", interval)
    while not stop.wait(interval):
        try:
            run_sweep_once()
        except Exception:
            # keep the schedule alive; next tick retries
            logger.exception("[SWEEP] run failed")


def start_background(interval: int = SWEEP_INTERVAL_SECONDS) -> threading.Event:
    stop = threading.Event()
    t = threading.Thread(target=sweep_loop, args=(stop, interval), name="badge-sweep", daemon=True)
    t.start()
    return stop
