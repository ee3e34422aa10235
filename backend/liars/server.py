import logging
import threading
from typing import Any, Callable, Dict, Optional

from liars.services.game.connections import ConnectionRegistry
from liars.services.game.dispatcher import Emitter, EventDispatcher
from liars.services.game.persistence import SnapshotStore
from liars.services.game.phases import PhaseMachine
from liars.services.game.scoring import get_leaderboard, get_player_rank
from liars.services.game.state import SessionStore

logger = logging.getLogger(__name__)


class GameServer:
    """Owns the one session of this process and everything that touches it.

    Built once by ``create_app`` and kept in ``app.extensions['game_server']``.
    Socket.IO may run handlers on several threads, so every entry point takes
    ``lock``; an event is always handled to completion before the next one.
    """

    def __init__(self, snapshot_store: SnapshotStore, emitter: Emitter,
                 spawn: Optional[Callable[..., Any]] = None,
                 leaderboard_size: int = 5, max_name_length: int = 32):
        self.lock = threading.RLock()
        self.store = SessionStore()
        self.connections = ConnectionRegistry(self.store)
        self.phases = PhaseMachine(self.store, leaderboard_size)
        self.snapshots = snapshot_store
        self.leaderboard_size = leaderboard_size
        self._spawn = spawn
        self._save_lock = threading.Lock()
        self._version = 0
        self._saved_version = 0
        self.dispatcher = EventDispatcher(
            self.store, self.phases, self.connections, emitter,
            persist=self.persist, max_name_length=max_name_length,
        )

    def boot(self, snapshot: Optional[Dict[str, Any]] = None) -> None:
        """Restore the stored snapshot if there is one, else start fresh."""
        with self.lock:
            if snapshot is None:
                snapshot = self.snapshots.load()
            try:
                self.store.init(snapshot)
            except (KeyError, TypeError, ValueError) as exc:
                logger.error(f"[boot] unreadable snapshot, starting fresh: {exc!r}")
                self.store.init()

    def handle(self, sid: str, event: str, payload: Any = None) -> None:
        with self.lock:
            self.dispatcher.dispatch(sid, event, payload)

    def disconnect(self, sid: str) -> None:
        with self.lock:
            self.dispatcher.disconnect(sid)

    def snapshot(self) -> Dict[str, Any]:
        with self.lock:
            return self.store.snapshot()

    def leaderboard(self, limit: Optional[int] = None):
        with self.lock:
            return get_leaderboard(self.store.get(), self.leaderboard_size if limit is None else limit)

    def player_rank(self, player_id: str):
        with self.lock:
            return get_player_rank(self.store.get(), player_id)

    def persist(self) -> None:
        """Save the current snapshot without blocking event handling."""
        version, snapshot = self._capture()
        if self._spawn is None:
            self._write(version, snapshot)
            return
        self._spawn(self._write, version, snapshot)

    def save_now(self) -> Dict[str, Any]:
        """Capture and save inline; used by the autosave loop."""
        version, snapshot = self._capture()
        self._write(version, snapshot)
        return snapshot

    def _capture(self):
        with self.lock:
            self._version += 1
            return self._version, self.store.snapshot()

    def _write(self, version: int, snapshot: Dict[str, Any]) -> None:
        # Background saves may finish out of order; never store an older capture over a newer one
        with self._save_lock:
            if version <= self._saved_version:
                logger.debug(f"[snapshot] skip stale version={version} saved={self._saved_version}")
                return
            self.snapshots.save(snapshot)
            self._saved_version = version

    def clear_snapshot(self) -> None:
        self.snapshots.delete()
