"""
Polling feeds for a circle's transactions and settlements.

Each listener runs on a daemon thread with its own session per poll and calls
``on_change`` with the first snapshot and then whenever the snapshot differs.
"""
import logging
import threading
from typing import Callable, List, Optional

from spend_circle.core.config import ledger_settings
from spend_circle.db.database import SessionLocal
from spend_circle.schemas.settlement_schema import SettlementOut
from spend_circle.schemas.transaction_schema import ExpenseOut

logger = logging.getLogger(__name__)


class FeedListener:
    """Polls ``load(db)`` and pushes changed snapshots to ``on_change``"""

    def __init__(self, name: str, load: Callable, on_change: Callable[[List], None],
                 session_factory: Optional[Callable] = None, interval: Optional[float] = None):
        self.name = name
        self.load = load
        self.on_change = on_change
        self.session_factory = session_factory or SessionLocal
        self.interval = interval if interval is not None else ledger_settings.listener_poll_interval
        self.listener_thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._last_snapshot = None

    @property
    def is_running(self) -> bool:
        return self.listener_thread is not None and self.listener_thread.is_alive()

    def start(self):
        if self.is_running:
            logger.warning(f"Listener {self.name} is already running")
            return

        self._stop_event.clear()
        self.listener_thread = threading.Thread(target=self._run, daemon=True, name=f"Feed-{self.name}")
        self.listener_thread.start()
        logger.info(f"Listener {self.name} started")

    def stop(self):
        self._stop_event.set()
        if self.listener_thread and self.listener_thread.is_alive():
            self.listener_thread.join(timeout=5)
            if self.listener_thread.is_alive():
                logger.warning(f"Listener {self.name} did not stop gracefully")
        logger.info(f"Listener {self.name} stopped")

    def _run(self):
        while not self._stop_event.is_set():
            self.poll_once()
            self._stop_event.wait(self.interval)

    def poll_once(self) -> bool:
        """Poll the store once. Returns True if ``on_change`` was called."""
        db = self.session_factory()
        try:
            rows = self.load(db)
        except Exception as e:
            logger.error(f"Listener {self.name} could not load its feed: {e}")
            return False
        finally:
            db.close()

        snapshot = [row.model_dump(mode="json") for row in rows]
        if snapshot == self._last_snapshot:
            return False
        self._last_snapshot = snapshot

        try:
            self.on_change(rows)
        except Exception as e:
            logger.error(f"Listener {self.name} callback failed: {e}")
        return True


def _load_transactions(circle_id: str):
    from spend_circle.services.transaction_service import get_circle_transactions

    def load(db):
        return [ExpenseOut.model_validate(tx) for tx in get_circle_transactions(db, circle_id)]
    return load


def _load_settlements(circle_id: str):
    from spend_circle.services.settlement_service import get_circle_settlements

    def load(db):
        return [SettlementOut.model_validate(s) for s in get_circle_settlements(db, circle_id)]
    return load


def _subscribe(listener: FeedListener) -> Callable[[], None]:
    listener.start()
    return listener.stop


def get_circle_transactions_listener(circle_id: str, on_change: Callable[[List[ExpenseOut]], None],
                                     session_factory=None, interval=None) -> Callable[[], None]:
    """Subscribe to a circle's transactions, newest first. Returns the unsubscribe function."""
    return _subscribe(FeedListener(f"transactions-{circle_id}", _load_transactions(circle_id),
                                   on_change, session_factory, interval))


def get_circle_settlements_listener(circle_id: str, on_change: Callable[[List[SettlementOut]], None],
                                    session_factory=None, interval=None) -> Callable[[], None]:
    """Subscribe to a circle's settlements, newest first. Returns the unsubscribe function."""
    return _subscribe(FeedListener(f"settlements-{circle_id}", _load_settlements(circle_id),
                                   on_change, session_factory, interval))
