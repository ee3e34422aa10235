import logging
from typing import Dict, NamedTuple, Optional, Set

from .state import SessionStore

logger = logging.getLogger(__name__)


class Released(NamedTuple):
    """What a closed channel was bound to."""
    role: Optional[str]
    player_id: Optional[str] = None
    player_offline: bool = False


class ConnectionRegistry:
    """Maps transport channels (socket ids) to roles and players.

    One manager and one display slot, last registration wins. A player keeps
    a stable id across reconnects, so several channels may point at the same
    player over time; the player is offline once none remain.
    """

    def __init__(self, store: SessionStore):
        self.store = store
        self.manager_sid: Optional[str] = None
        self.display_sid: Optional[str] = None
        self._sid_to_player: Dict[str, str] = {}
        self._player_to_sids: Dict[str, Set[str]] = {}

    def register_manager(self, sid: str) -> None:
        self._drop_player_channel(sid)
        if self.display_sid == sid:
            self.display_sid = None
        self.manager_sid = sid

    def register_display(self, sid: str) -> None:
        self._drop_player_channel(sid)
        if self.manager_sid == sid:
            self.manager_sid = None
        self.display_sid = sid

    def bind_player(self, sid: str, player_id: str) -> None:
        if self.manager_sid == sid:
            self.manager_sid = None
        if self.display_sid == sid:
            self.display_sid = None
        self._drop_player_channel(sid)
        self._sid_to_player[sid] = player_id
        self._player_to_sids.setdefault(player_id, set()).add(sid)
        self.store.set_player_connection(player_id, True)

    def role_of(self, sid: str) -> Optional[str]:
        if sid == self.manager_sid:
            return 'manager'
        if sid == self.display_sid:
            return 'display'
        if sid in self._sid_to_player:
            return 'player'
        return None

    def player_for(self, sid: str) -> Optional[str]:
        return self._sid_to_player.get(sid)

    def channels_for(self, player_id: str) -> Set[str]:
        return set(self._player_to_sids.get(player_id, ()))

    def unbind_player(self, player_id: str) -> Set[str]:
        """Drop every channel of a deleted player. Returns the dropped channels."""
        sids = self._player_to_sids.pop(player_id, set())
        for sid in sids:
            self._sid_to_player.pop(sid, None)
        return sids

    def release(self, sid: str) -> Released:
        """Forget a closed channel and update the player's connected flag."""
        if sid == self.manager_sid:
            self.manager_sid = None
            logger.info(f"[conn] manager left sid={sid}")
            return Released('manager')
        if sid == self.display_sid:
            self.display_sid = None
            logger.info(f"[conn] display left sid={sid}")
            return Released('display')
        player_id, offline = self._drop_player_channel(sid)
        if player_id is None:
            return Released(None)
        logger.info(f"[conn] player channel closed player={player_id} offline={offline}")
        return Released('player', player_id, offline)

    def _drop_player_channel(self, sid: str):
        """Unbind ``sid`` from its player; mark the player offline if it was the last channel."""
        player_id = self._sid_to_player.pop(sid, None)
        if player_id is None:
            return None, False
        sids = self._player_to_sids.get(player_id, set())
        sids.discard(sid)
        if sids:
            return player_id, False
        self._player_to_sids.pop(player_id, None)
        self.store.set_player_connection(player_id, False)
        return player_id, True
