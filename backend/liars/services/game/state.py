"""Authoritative in-memory session and the narrow mutators that change it.

One ``SessionStore`` is owned by the server context. Every mutator validates
its input before touching the session, so a failed call leaves nothing
half-applied.
"""
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .exceptions import InvalidIndex, InvalidPayload, InvalidState, NotFound, NotInitialized, VotesLocked

logger = logging.getLogger(__name__)

MODES = ('setup', 'live', 'paused')
PHASES = ('story', 'results', 'reveal', 'leaderboard')
VOTE_CHOICES = ('truth', 'lie')


def new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Story:
    id: str
    text: str
    is_true: bool

    def to_dict(self):
        return {'id': self.id, 'text': self.text, 'isTrue': self.is_true}

    @classmethod
    def from_dict(cls, data):
        return cls(id=data['id'], text=data['text'], is_true=bool(data['isTrue']))


@dataclass
class Comedian:
    id: str
    name: str
    instagram: str
    photo_url: Optional[str] = None
    stories: List[Story] = field(default_factory=list)

    def to_dict(self):
        data = {
            'id': self.id,
            'name': self.name,
            'instagram': self.instagram,
            'stories': [s.to_dict() for s in self.stories],
        }
        if self.photo_url is not None:
            data['photoUrl'] = self.photo_url
        return data

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data['id'],
            name=data['name'],
            instagram=data.get('instagram', ''),
            photo_url=data.get('photoUrl'),
            stories=[Story.from_dict(s) for s in data.get('stories', [])],
        )


@dataclass
class Player:
    id: str
    name: str
    connected: bool = True
    total_score: int = 0

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'connected': self.connected,
            'totalScore': self.total_score,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data['id'],
            name=data['name'],
            connected=bool(data.get('connected', False)),
            total_score=int(data.get('totalScore', 0)),
        )


@dataclass
class Session:
    session_id: str = field(default_factory=new_id)
    mode: str = 'setup'
    comedians: List[Comedian] = field(default_factory=list)
    current_comedian_index: int = 0
    current_story_index: int = 0
    phase: str = 'story'
    players: Dict[str, Player] = field(default_factory=dict)
    votes: Dict[str, str] = field(default_factory=dict)
    votes_locked: bool = False
    round_scores: Dict[str, int] = field(default_factory=dict)

    def cursor_in_range(self) -> bool:
        if not 0 <= self.current_comedian_index < len(self.comedians):
            return False
        stories = self.comedians[self.current_comedian_index].stories
        return 0 <= self.current_story_index < len(stories)

    def to_dict(self) -> Dict[str, Any]:
        """Full snapshot in wire format. Returns fresh containers only."""
        return {
            'sessionId': self.session_id,
            'mode': self.mode,
            'comedians': [c.to_dict() for c in self.comedians],
            'currentComedianIndex': self.current_comedian_index,
            'currentStoryIndex': self.current_story_index,
            'phase': self.phase,
            'players': {pid: p.to_dict() for pid, p in self.players.items()},
            'votes': dict(self.votes),
            'votesLocked': self.votes_locked,
            'roundScores': dict(self.round_scores),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Session':
        """Rebuild a session from a stored snapshot.

        No transport channel survives a restart, so every restored player
        starts out disconnected.
        """
        if not isinstance(data, dict):
            raise ValueError('snapshot must be an object')
        for key in ('players', 'votes', 'roundScores'):
            if not isinstance(data.get(key) or {}, dict):
                raise ValueError(f"snapshot {key} must be an object")
        if not isinstance(data.get('comedians') or [], list):
            raise ValueError('snapshot comedians must be a list')
        players = {}
        for pid, pdata in (data.get('players') or {}).items():
            player = Player.from_dict(pdata)
            player.connected = False
            players[pid] = player
        session = cls(
            session_id=data.get('sessionId') or new_id(),
            mode=data.get('mode', 'setup'),
            comedians=[Comedian.from_dict(c) for c in data.get('comedians', [])],
            current_comedian_index=int(data.get('currentComedianIndex', 0)),
            current_story_index=int(data.get('currentStoryIndex', 0)),
            phase=data.get('phase', 'story'),
            players=players,
            votes={pid: v for pid, v in (data.get('votes') or {}).items() if v in VOTE_CHOICES},
            votes_locked=bool(data.get('votesLocked', False)),
            round_scores={pid: int(pts) for pid, pts in (data.get('roundScores') or {}).items()},
        )
        if session.mode not in MODES:
            session.mode = 'setup'
        if session.phase not in PHASES:
            session.phase = 'story'
        if session.mode != 'setup' and not session.cursor_in_range():
            logger.warning(f"[restore] cursor ({session.current_comedian_index}, {session.current_story_index}) out of range; back to setup")
            session.mode = 'setup'
            session.phase = 'story'
        return session


def _require_text(value, name, allow_empty=False) -> str:
    if not isinstance(value, str):
        raise InvalidPayload(f"{name} must be a string")
    if not allow_empty and not value.strip():
        raise InvalidPayload(f"{name} is required")
    return value


def _require_bool(value, name) -> bool:
    if not isinstance(value, bool):
        raise InvalidPayload(f"{name} must be true or false")
    return value


def _build_story(data) -> Story:
    if not isinstance(data, dict):
        raise InvalidPayload('story must be an object')
    return Story(
        id=new_id(),
        text=_require_text(data.get('text'), 'text'),
        is_true=_require_bool(data.get('isTrue'), 'isTrue'),
    )


def _build_comedian(data) -> Comedian:
    if not isinstance(data, dict):
        raise InvalidPayload('comedian must be an object')
    photo_url = data.get('photoUrl')
    if photo_url is not None:
        _require_text(photo_url, 'photoUrl', allow_empty=True)
    stories = data.get('stories') or []
    if not isinstance(stories, list):
        raise InvalidPayload('stories must be a list')
    return Comedian(
        id=new_id(),
        name=_require_text(data.get('name'), 'name'),
        instagram=_require_text(data.get('instagram', ''), 'instagram', allow_empty=True),
        photo_url=photo_url or None,
        stories=[_build_story(s) for s in stories],
    )


class SessionStore:
    """Holds the single session and enforces its invariants."""

    # Fields the generic partial update may touch.
    UPDATABLE = ('mode', 'phase', 'current_comedian_index', 'current_story_index', 'votes_locked')

    def __init__(self):
        self._session: Optional[Session] = None

    # ---- lifecycle ----

    def init(self, snapshot: Optional[Dict[str, Any]] = None) -> Session:
        self._session = Session.from_dict(snapshot) if snapshot else Session()
        logger.info(f"[session] initialized id={self._session.session_id} restored={bool(snapshot)}")
        return self._session

    def get(self) -> Session:
        if self._session is None:
            raise NotInitialized()
        return self._session

    @property
    def initialized(self) -> bool:
        return self._session is not None

    def snapshot(self) -> Dict[str, Any]:
        return self.get().to_dict()

    def reset(self) -> Session:
        """Start a new session over the same content and roster, scores zeroed."""
        old = self.get()
        players = {
            pid: Player(id=p.id, name=p.name, connected=p.connected, total_score=0)
            for pid, p in old.players.items()
        }
        self._session = Session(comedians=old.comedians, players=players)
        logger.info(f"[session] reset {old.session_id} -> {self._session.session_id}")
        return self._session

    def update(self, **fields) -> Session:
        """Partial update of mode/phase/cursor/lock fields."""
        session = self.get()
        unknown = set(fields) - set(self.UPDATABLE)
        if unknown:
            raise InvalidPayload(f"Cannot update field(s): {', '.join(sorted(unknown))}")
        if 'mode' in fields and fields['mode'] not in MODES:
            raise InvalidState(f"Unknown mode {fields['mode']!r}")
        if 'phase' in fields and fields['phase'] not in PHASES:
            raise InvalidState(f"Unknown phase {fields['phase']!r}")
        for name in ('current_comedian_index', 'current_story_index'):
            if name in fields and (not isinstance(fields[name], int) or fields[name] < 0):
                raise InvalidIndex(f"{name} must be a non-negative integer")
        for name, value in fields.items():
            setattr(session, name, value)
        return session

    def reset_round(self) -> None:
        session = self.get()
        session.votes = {}
        session.votes_locked = False
        session.round_scores = {}

    # ---- players ----

    def add_player(self, name: str, player_id: Optional[str] = None) -> Player:
        session = self.get()
        name = _require_text(name, 'playerName').strip()
        player = Player(id=player_id or new_id(), name=name)
        session.players[player.id] = player
        return player

    def get_player(self, player_id: str) -> Player:
        player = self.get().players.get(player_id)
        if player is None:
            raise NotFound('player', player_id)
        return player

    def update_player(self, player_id: str, name: Optional[str] = None) -> Player:
        player = self.get_player(player_id)
        if name is not None:
            player.name = _require_text(name, 'playerName').strip()
        return player

    def remove_player(self, player_id: str) -> None:
        session = self.get()
        if player_id not in session.players:
            raise NotFound('player', player_id)
        del session.players[player_id]
        session.votes.pop(player_id, None)
        session.round_scores.pop(player_id, None)

    def set_player_connection(self, player_id: str, connected: bool) -> None:
        # A late disconnect for a removed player is expected.
        if self._session is None:
            return
        player = self._session.players.get(player_id)
        if player is not None:
            player.connected = connected

    def submit_vote(self, player_id: str, vote: str) -> None:
        session = self.get()
        if session.votes_locked:
            raise VotesLocked()
        if vote not in VOTE_CHOICES:
            raise InvalidPayload("vote must be 'truth' or 'lie'")
        if player_id not in session.players:
            raise NotFound('player', player_id)
        session.votes[player_id] = vote

    # ---- comedians ----

    def _find_comedian(self, comedian_id: str) -> Comedian:
        for comedian in self.get().comedians:
            if comedian.id == comedian_id:
                return comedian
        raise NotFound('comedian', comedian_id)

    def replace_comedians(self, comedians: List[Dict[str, Any]]) -> List[Comedian]:
        session = self.get()
        if not isinstance(comedians, list):
            raise InvalidPayload('comedians must be a list')
        built = [_build_comedian(c) for c in comedians]
        session.comedians = built
        session.current_comedian_index = 0
        session.current_story_index = 0
        return built

    def add_comedian(self, name: str, instagram: str = '', photo_url: Optional[str] = None,
                     stories: Optional[List[Dict[str, Any]]] = None) -> Comedian:
        comedian = _build_comedian({
            'name': name,
            'instagram': instagram,
            'photoUrl': photo_url,
            'stories': stories or [],
        })
        self.get().comedians.append(comedian)
        return comedian

    def update_comedian(self, comedian_id: str, **updates) -> Comedian:
        comedian = self._find_comedian(comedian_id)
        allowed = {'name', 'instagram', 'photo_url'}
        unknown = set(updates) - allowed
        if unknown:
            raise InvalidPayload(f"Cannot update comedian field(s): {', '.join(sorted(unknown))}")
        if 'name' in updates:
            _require_text(updates['name'], 'name')
        if 'instagram' in updates:
            _require_text(updates['instagram'], 'instagram', allow_empty=True)
        if updates.get('photo_url') is not None:
            _require_text(updates['photo_url'], 'photoUrl', allow_empty=True)
        if 'photo_url' in updates:
            updates['photo_url'] = updates['photo_url'] or None
        for name, value in updates.items():
            setattr(comedian, name, value)
        return comedian

    def delete_comedian(self, comedian_id: str) -> None:
        session = self.get()
        comedian = self._find_comedian(comedian_id)
        session.comedians.remove(comedian)

    # ---- stories ----

    def _find_story(self, story_id: str):
        for comedian in self.get().comedians:
            for index, story in enumerate(comedian.stories):
                if story.id == story_id:
                    return comedian, index, story
        raise NotFound('story', story_id)

    def add_story(self, comedian_id: str, text: str, is_true: bool) -> Story:
        comedian = self._find_comedian(comedian_id)
        story = _build_story({'text': text, 'isTrue': is_true})
        comedian.stories.append(story)
        return story

    def update_story(self, story_id: str, text: str, is_true: bool) -> Story:
        _, _, story = self._find_story(story_id)
        _require_text(text, 'text')
        _require_bool(is_true, 'isTrue')
        story.text = text
        story.is_true = is_true
        return story

    def delete_story(self, story_id: str) -> None:
        comedian, index, _ = self._find_story(story_id)
        del comedian.stories[index]

    # ---- cursor ----

    def current_comedian(self) -> Optional[Comedian]:
        session = self.get()
        if 0 <= session.current_comedian_index < len(session.comedians):
            return session.comedians[session.current_comedian_index]
        return None

    def current_story(self) -> Optional[Story]:
        comedian = self.current_comedian()
        if comedian is None:
            return None
        index = self.get().current_story_index
        if 0 <= index < len(comedian.stories):
            return comedian.stories[index]
        return None
