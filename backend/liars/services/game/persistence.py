"""Best-effort snapshot stores.

The in-memory session is the source of truth while the server runs; these
stores only let a restarted process pick up where it left off. Every failure
is logged and swallowed.
"""
import json
import logging
import os
import tempfile
import time
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class SnapshotStore:
    def save(self, snapshot: Dict[str, Any]) -> None:
        raise NotImplementedError

    def load(self) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def delete(self) -> None:
        raise NotImplementedError


class MemorySnapshotStore(SnapshotStore):
    def __init__(self):
        self._data: Optional[str] = None

    def save(self, snapshot):
        self._data = json.dumps(snapshot)

    def load(self):
        return json.loads(self._data) if self._data else None

    def delete(self):
        self._data = None


class JsonFileSnapshotStore(SnapshotStore):
    def __init__(self, path: str):
        self.path = path

    def save(self, snapshot):
        tmp_path = None
        try:
            directory = os.path.dirname(os.path.abspath(self.path))
            os.makedirs(directory, exist_ok=True)
            # Write then rename so a crash never leaves a torn file
            fd, tmp_path = tempfile.mkstemp(dir=directory, suffix='.tmp')
            with os.fdopen(fd, 'w', encoding='utf-8') as fh:
                json.dump(snapshot, fh, indent=2)
            os.replace(tmp_path, self.path)
            logger.debug(f"[snapshot] saved file={self.path}")
        except (OSError, TypeError, ValueError) as exc:
            logger.error(f"[snapshot] save failed file={self.path}: {exc}")
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)

    def load(self):
        try:
            if not os.path.exists(self.path):
                return None
            with open(self.path, encoding='utf-8') as fh:
                data = json.load(fh)
            logger.info(f"[snapshot] loaded file={self.path}")
            return data if isinstance(data, dict) else None
        except (OSError, ValueError) as exc:
            logger.error(f"[snapshot] load failed file={self.path}: {exc}")
            return None

    def delete(self):
        try:
            if os.path.exists(self.path):
                os.remove(self.path)
                logger.info(f"[snapshot] deleted file={self.path}")
        except OSError as exc:
            logger.error(f"[snapshot] delete failed file={self.path}: {exc}")


class DatabaseSnapshotStore(SnapshotStore):
    """Keeps the snapshot in the ``game_snapshot`` table.

    Pushes its own app context so it can run on a background task.
    """

    def __init__(self, app):
        self.app = app

    def save(self, snapshot):
        from liars import db
        from liars.models import GameSnapshot

        with self.app.app_context():
            try:
                row = db.session.get(GameSnapshot, GameSnapshot.SNAPSHOT_ROW_ID)
                if row is None:
                    row = GameSnapshot(id=GameSnapshot.SNAPSHOT_ROW_ID)
                row.session_id = snapshot.get('sessionId', '')
                row.payload = json.dumps(snapshot)
                row.updated_at = time.time()
                db.session.add(row)
                db.session.commit()
            except (SQLAlchemyError, TypeError, ValueError) as exc:
                db.session.rollback()
                logger.error(f"[snapshot] save failed: {exc}")

    def load(self):
        from liars import db
        from liars.models import GameSnapshot

        with self.app.app_context():
            try:
                row = db.session.get(GameSnapshot, GameSnapshot.SNAPSHOT_ROW_ID)
                if row is None:
                    return None
                logger.info(f"[snapshot] loaded session={row.session_id}")
                return row.state
            except (SQLAlchemyError, ValueError) as exc:
                db.session.rollback()
                logger.warning(f"[snapshot] load failed: {exc}")
                return None

    def delete(self):
        from liars import db
        from liars.models import GameSnapshot

        with self.app.app_context():
            try:
                GameSnapshot.query.filter_by(id=GameSnapshot.SNAPSHOT_ROW_ID).delete()
                db.session.commit()
            except SQLAlchemyError as exc:
                db.session.rollback()
                logger.error(f"[snapshot] delete failed: {exc}")


def build_snapshot_store(app) -> SnapshotStore:
    backend = (app.config.get('SNAPSHOT_BACKEND') or 'database').lower()
    if backend == 'file':
        return JsonFileSnapshotStore(app.config.get('SNAPSHOT_FILE', 'game-state.json'))
    if backend == 'memory':
        return MemorySnapshotStore()
    return DatabaseSnapshotStore(app)
