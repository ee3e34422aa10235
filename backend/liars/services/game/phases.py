"""Round progression: mode transitions, phase pipeline and slide cursor.

Phase pipeline within one story:

    story -> results -> reveal -> leaderboard

``advance`` walks that pipeline; ``next_slide`` and ``jump_to_slide`` move
the cursor and start a fresh round. Which events are legal in which
mode/phase lives in ``ALLOWED_EVENTS``.
"""
import logging
from typing import Any, Dict, NamedTuple, Optional

from .exceptions import InvalidIndex, InvalidState
from .scoring import (
    apply_scores_to_players,
    calculate_scores,
    calculate_vote_distribution,
    get_leaderboard,
)
from .state import PHASES, SessionStore

logger = logging.getLogger(__name__)

# Legal in any mode/phase
ALWAYS_ALLOWED = frozenset({'manager:connect', 'display:connect', 'player:join', 'disconnect'})

_CONTENT_EDITS = frozenset({
    'game:setup', 'comedian:add', 'comedian:edit', 'comedian:delete',
    'story:add', 'story:edit', 'story:delete',
})
_SETUP = _CONTENT_EDITS | {'game:start', 'game:reset', 'player:remove'}
_LIVE = frozenset({'phase:advance', 'slide:next', 'slide:jump', 'game:pause', 'game:end', 'player:remove'})
_PAUSED = frozenset({'game:resume', 'game:end', 'comedian:edit', 'story:edit', 'player:remove'})


def _build_guard_table() -> Dict[tuple, frozenset]:
    table = {}
    for phase in PHASES:
        table[('setup', phase)] = frozenset(_SETUP)
        live = set(_LIVE)
        if phase != 'leaderboard':
            # results/reveal stay open so late votes surface as VotesLocked
            live.add('vote:submit')
        table[('live', phase)] = frozenset(live)
        table[('paused', phase)] = _PAUSED
    return table


ALLOWED_EVENTS = _build_guard_table()


def is_allowed(mode: str, phase: str, event: str) -> bool:
    if event in ALWAYS_ALLOWED:
        return True
    return event in ALLOWED_EVENTS.get((mode, phase), frozenset())


class PhaseOutcome(NamedTuple):
    """Notification produced by a phase transition, broadcast by the dispatcher."""
    event: str
    payload: Dict[str, Any]


class PhaseMachine:
    def __init__(self, store: SessionStore, leaderboard_size: int = 5):
        self.store = store
        self.leaderboard_size = leaderboard_size

    def check_allowed(self, event: str) -> None:
        session = self.store.get()
        if not is_allowed(session.mode, session.phase, event):
            raise InvalidState(f"'{event}' is not allowed while mode={session.mode} phase={session.phase}")

    # ---- mode ----

    def start(self) -> None:
        session = self.store.get()
        if session.mode != 'setup':
            raise InvalidState('Game already started')
        if not session.comedians:
            raise InvalidState('Add at least one comedian before starting')
        for comedian in session.comedians:
            if not comedian.stories:
                raise InvalidState(f"Comedian {comedian.name} has no stories")
        self.store.update(mode='live', phase='story', current_comedian_index=0, current_story_index=0)
        self.store.reset_round()
        logger.info(f"[mode] start session={session.session_id}")

    def pause(self) -> None:
        if self.store.get().mode != 'live':
            raise InvalidState('Game is not live')
        self.store.update(mode='paused')

    def resume(self) -> None:
        if self.store.get().mode != 'paused':
            raise InvalidState('Game is not paused')
        self.store.update(mode='live')

    def end(self) -> None:
        """Back to setup; players and their scores are kept."""
        self.store.update(mode='setup', phase='story')
        self.store.reset_round()
        logger.info('[mode] ended, back to setup')

    # ---- phase pipeline ----

    def advance(self) -> Optional[PhaseOutcome]:
        session = self.store.get()
        phase = session.phase

        if phase == 'story':
            self.store.update(votes_locked=True, phase='results')
            distribution = calculate_vote_distribution(session.votes)
            logger.info(f"[phase] story -> results distribution={distribution}")
            return PhaseOutcome('votes:locked', {'distribution': distribution})

        if phase == 'results':
            story = self.store.current_story()
            if story is None:
                raise InvalidState('No current story to reveal')
            round_scores = calculate_scores(session.votes, story.is_true)
            apply_scores_to_players(session, round_scores)
            self.store.update(phase='reveal')
            logger.info(f"[phase] results -> reveal story={story.id} awarded={len(round_scores)}")
            return PhaseOutcome('reveal:answer', {'isTrue': story.is_true, 'pointsAwarded': dict(round_scores)})

        if phase == 'reveal':
            self.store.update(phase='leaderboard')
            top = get_leaderboard(session, self.leaderboard_size)
            logger.info(f"[phase] reveal -> leaderboard top={len(top)}")
            return PhaseOutcome('leaderboard:show', {'topPlayers': top})

        # leaderboard: only the between-comedians board (nothing voted yet) opens the story
        if not session.votes_locked and self.store.current_story() is not None:
            self.store.update(phase='story')
            logger.info('[phase] leaderboard -> story (new comedian)')
        return None

    # ---- cursor ----

    def next_slide(self) -> bool:
        """Move to the next story, or the next comedian. False when content is exhausted.

        From the leaderboard shown between comedians it opens the new
        comedian's first story, like ``advance`` does.
        """
        session = self.store.get()
        comedian = self.store.current_comedian()
        if comedian is None:
            return False

        # between-comedians board: the cursor already sits on the new comedian's first story
        if session.phase == 'leaderboard' and not session.votes_locked and self.store.current_story() is not None:
            self.store.update(phase='story')
            self.store.reset_round()
            logger.info(f"[slide] leaderboard -> story ({session.current_comedian_index}, {session.current_story_index})")
            return True

        if session.current_story_index + 1 < len(comedian.stories):
            self.store.update(current_story_index=session.current_story_index + 1, phase='story')
            self.store.reset_round()
            logger.info(f"[slide] next story ({session.current_comedian_index}, {session.current_story_index})")
            return True

        if session.current_comedian_index + 1 < len(session.comedians):
            self.store.update(
                current_comedian_index=session.current_comedian_index + 1,
                current_story_index=0,
                phase='leaderboard',
            )
            self.store.reset_round()
            logger.info(f"[slide] next comedian index={session.current_comedian_index}")
            return True

        return False

    def jump_to_slide(self, comedian_index: int, story_index: int) -> None:
        session = self.store.get()
        if not isinstance(comedian_index, int) or not 0 <= comedian_index < len(session.comedians):
            raise InvalidIndex('Invalid comedian index')
        stories = session.comedians[comedian_index].stories
        if not isinstance(story_index, int) or not 0 <= story_index < len(stories):
            raise InvalidIndex('Invalid story index')
        self.store.update(current_comedian_index=comedian_index, current_story_index=story_index, phase='story')
        self.store.reset_round()
        logger.info(f"[slide] jump to ({comedian_index}, {story_index})")
