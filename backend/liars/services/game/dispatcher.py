"""Inbound event routing.

Each event goes through the same steps: role check, mode/phase guard,
payload validation, the engine call, a fire-and-forget snapshot, then the
broadcast. Any ``GameError`` ends up as an ``error`` event to the sender
only; the session is never left half-updated because every store mutator
validates before it writes.
"""
import logging
from typing import Any, Callable, Dict, Optional, Protocol

from .connections import ConnectionRegistry
from .exceptions import Forbidden, GameError, InvalidPayload
from .phases import PhaseMachine
from .state import SessionStore

logger = logging.getLogger(__name__)

MANAGER_EVENTS = frozenset({
    'game:setup', 'game:start', 'game:pause', 'game:resume', 'game:end', 'game:reset',
    'slide:next', 'slide:jump', 'phase:advance',
    'comedian:add', 'comedian:edit', 'comedian:delete',
    'story:add', 'story:edit', 'story:delete',
    'player:remove',
})
PLAYER_EVENTS = frozenset({'vote:submit'})


class Emitter(Protocol):
    def emit(self, event: str, data: Any = None, to: Optional[str] = None) -> None:
        """Send to one channel, or to every channel when ``to`` is None."""


def _text(payload, name, optional=False, allow_empty=False, max_length=None):
    value = payload.get(name)
    if value is None and optional:
        return None
    if not isinstance(value, str):
        raise InvalidPayload(f"{name} must be a string")
    if not allow_empty and not value.strip():
        raise InvalidPayload(f"{name} is required")
    if max_length and len(value.strip()) > max_length:
        raise InvalidPayload(f"{name} must be at most {max_length} characters")
    return value


def _boolean(payload, name):
    value = payload.get(name)
    if not isinstance(value, bool):
        raise InvalidPayload(f"{name} must be true or false")
    return value


def _index(payload, name):
    value = payload.get(name)
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidPayload(f"{name} must be an integer")
    return value


class EventDispatcher:
    def __init__(self, store: SessionStore, phases: PhaseMachine, connections: ConnectionRegistry,
                 emitter: Emitter, persist: Optional[Callable[[], None]] = None,
                 max_name_length: int = 32):
        self.store = store
        self.phases = phases
        self.connections = connections
        self.emitter = emitter
        self.persist = persist or (lambda: None)
        self.max_name_length = max_name_length
        self._handlers: Dict[str, Callable[[str, Dict[str, Any]], None]] = {
            'manager:connect': self.on_manager_connect,
            'display:connect': self.on_display_connect,
            'player:join': self.on_player_join,
            'game:setup': self.on_game_setup,
            'game:start': self.on_game_start,
            'game:pause': self.on_game_pause,
            'game:resume': self.on_game_resume,
            'game:end': self.on_game_end,
            'game:reset': self.on_game_reset,
            'slide:next': self.on_slide_next,
            'slide:jump': self.on_slide_jump,
            'phase:advance': self.on_phase_advance,
            'comedian:add': self.on_comedian_add,
            'comedian:edit': self.on_comedian_edit,
            'comedian:delete': self.on_comedian_delete,
            'story:add': self.on_story_add,
            'story:edit': self.on_story_edit,
            'story:delete': self.on_story_delete,
            'player:remove': self.on_player_remove,
            'vote:submit': self.on_vote_submit,
        }

    @property
    def events(self):
        return tuple(self._handlers)

    # ---- entry points ----

    def dispatch(self, sid: str, event: str, payload: Any = None) -> None:
        try:
            handler = self._handlers.get(event)
            if handler is None:
                raise InvalidPayload(f"Unknown event '{event}'")
            if payload is None:
                payload = {}
            if not isinstance(payload, dict):
                raise InvalidPayload('Payload must be an object')
            self._authorize(sid, event)
            self.phases.check_allowed(event)
            handler(sid, payload)
        except GameError as exc:
            logger.warning(f"[{event}] rejected sid={sid}: {exc}")
            self.emitter.emit('error', {'message': str(exc), 'code': exc.code}, to=sid)
        except Exception:
            logger.exception(f"[{event}] failed sid={sid}")
            self.emitter.emit('error', {'message': 'Internal server error', 'code': 'internal'}, to=sid)

    def disconnect(self, sid: str) -> None:
        released = self.connections.release(sid)
        if released.player_offline:
            try:
                self.persist()
                self.broadcast_state()
            except GameError as exc:
                logger.warning(f"[disconnect] sid={sid}: {exc}")

    # ---- helpers ----

    def _authorize(self, sid: str, event: str) -> None:
        role = self.connections.role_of(sid)
        if event in MANAGER_EVENTS and role != 'manager':
            raise Forbidden(f"Only the manager may send '{event}'")
        if event in PLAYER_EVENTS and role != 'player':
            raise Forbidden('Join the game before voting')

    def broadcast_state(self) -> None:
        self.emitter.emit('state:update', {'gameState': self.store.snapshot()})

    def send_state(self, sid: str) -> None:
        self.emitter.emit('state:update', {'gameState': self.store.snapshot()}, to=sid)

    def _commit(self) -> None:
        self.persist()
        self.broadcast_state()

    # ---- roles ----

    def on_manager_connect(self, sid, payload):
        self.connections.register_manager(sid)
        logger.info(f"[manager:connect] sid={sid}")
        self.send_state(sid)

    def on_display_connect(self, sid, payload):
        self.connections.register_display(sid)
        logger.info(f"[display:connect] sid={sid}")
        self.send_state(sid)

    def on_player_join(self, sid, payload):
        name = _text(payload, 'playerName', max_length=self.max_name_length).strip()
        player_id = _text(payload, 'playerId', optional=True, allow_empty=True)
        session = self.store.get()
        if player_id and player_id in session.players:
            player = self.store.update_player(player_id, name=name)
            logger.info(f"[player:join] resume player={player.id} name={player.name}")
        else:
            player = self.store.add_player(name)
            logger.info(f"[player:join] new player={player.id} name={player.name}")
        self.connections.bind_player(sid, player.id)
        self.emitter.emit('player:joined', {'playerId': player.id, 'playerName': player.name}, to=sid)
        self._commit()

    # ---- game control ----

    def on_game_setup(self, sid, payload):
        comedians = payload.get('comedians')
        if not isinstance(comedians, list):
            raise InvalidPayload('comedians must be a list')
        self.store.replace_comedians(comedians)
        self.store.update(phase='story')
        self.store.reset_round()
        logger.info(f"[game:setup] comedians={len(comedians)}")
        self._commit()

    def on_game_start(self, sid, payload):
        self.phases.start()
        self._commit()

    def on_game_pause(self, sid, payload):
        self.phases.pause()
        self._commit()

    def on_game_resume(self, sid, payload):
        self.phases.resume()
        self._commit()

    def on_game_end(self, sid, payload):
        self.phases.end()
        self._commit()

    def on_game_reset(self, sid, payload):
        self.store.reset()
        self._commit()

    # ---- progression ----

    def on_slide_next(self, sid, payload):
        if not self.phases.next_slide():
            logger.info('[slide:next] no more slides, game ended')
            self.phases.end()
        self._commit()

    def on_slide_jump(self, sid, payload):
        comedian_index = _index(payload, 'comedianIndex')
        story_index = _index(payload, 'storyIndex')
        self.phases.jump_to_slide(comedian_index, story_index)
        self._commit()

    def on_phase_advance(self, sid, payload):
        outcome = self.phases.advance()
        if outcome is not None:
            self.emitter.emit(outcome.event, outcome.payload)
        self._commit()

    # ---- content ----

    def on_comedian_add(self, sid, payload):
        comedian = self.store.add_comedian(
            name=_text(payload, 'name'),
            instagram=_text(payload, 'instagram', optional=True, allow_empty=True) or '',
            photo_url=_text(payload, 'photoUrl', optional=True, allow_empty=True),
        )
        logger.info(f"[comedian:add] comedian={comedian.id}")
        self._commit()

    def on_comedian_edit(self, sid, payload):
        comedian_id = _text(payload, 'comedianId')
        self.store.update_comedian(
            comedian_id,
            name=_text(payload, 'name'),
            instagram=_text(payload, 'instagram', allow_empty=True),
            photo_url=_text(payload, 'photoUrl', optional=True, allow_empty=True),
        )
        logger.info(f"[comedian:edit] comedian={comedian_id}")
        self._commit()

    def on_comedian_delete(self, sid, payload):
        comedian_id = _text(payload, 'comedianId')
        self.store.delete_comedian(comedian_id)
        logger.info(f"[comedian:delete] comedian={comedian_id}")
        self._commit()

    def on_story_add(self, sid, payload):
        story = self.store.add_story(_text(payload, 'comedianId'), _text(payload, 'text'), _boolean(payload, 'isTrue'))
        logger.info(f"[story:add] story={story.id}")
        self._commit()

    def on_story_edit(self, sid, payload):
        story_id = _text(payload, 'storyId')
        self.store.update_story(story_id, _text(payload, 'text'), _boolean(payload, 'isTrue'))
        logger.info(f"[story:edit] story={story_id}")
        self._commit()

    def on_story_delete(self, sid, payload):
        story_id = _text(payload, 'storyId')
        self.store.delete_story(story_id)
        logger.info(f"[story:delete] story={story_id}")
        self._commit()

    def on_player_remove(self, sid, payload):
        player_id = _text(payload, 'playerId')
        self.store.remove_player(player_id)
        self.connections.unbind_player(player_id)
        logger.info(f"[player:remove] player={player_id}")
        self._commit()

    # ---- voting ----

    def on_vote_submit(self, sid, payload):
        vote = _text(payload, 'vote')
        player_id = self.connections.player_for(sid)
        self.store.submit_vote(player_id, vote)
        session = self.store.get()
        # No full broadcast here: the voter gets an ack, the manager a count
        self.emitter.emit('vote:acknowledged', {'vote': vote}, to=sid)
        manager_sid = self.connections.manager_sid
        if manager_sid:
            self.emitter.emit('vote:count', {
                'voteCount': len(session.votes),
                'totalPlayers': len(session.players),
            }, to=manager_sid)
        self.persist()
