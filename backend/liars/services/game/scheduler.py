from typing import Set

from liars import socketio
from .exceptions import GameError


_autosave_apps: Set[int] = set()


def start_autosave(app) -> bool:
    """Periodically snapshot the session, independent of event traffic.

    - No-ops in TESTING mode or when AUTOSAVE_INTERVAL_SEC is 0
    - Ensures a single autosave task per app
    - Saves through the server, so it is ordered with event-driven saves
    """
    if app.config.get('TESTING'):
        return False
    try:
        interval = int(app.config.get('AUTOSAVE_INTERVAL_SEC', 30))
    except (TypeError, ValueError):
        interval = 0
    if interval <= 0 or id(app) in _autosave_apps:
        return False

    server = app.extensions['game_server']
    _autosave_apps.add(id(app))
    app.logger.info(f"[autosave-set] every {interval}s")

    def _worker():
        while True:
            socketio.sleep(interval)
            try:
                snapshot = server.save_now()
            except GameError as exc:
                app.logger.warning(f"[autosave-skip] {exc}")
                continue
            app.logger.debug(f"[autosave] session={snapshot['sessionId']} mode={snapshot['mode']}")

    socketio.start_background_task(_worker)
    return True
