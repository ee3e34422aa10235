"""Game domain services: session state, phases, scoring and routing.

This package contains the transport-free game engine. Socket handlers and
HTTP routes import from here, keeping Flask and Socket.IO concerns out of
the core game mechanics.
"""

from .exceptions import (
    Forbidden,
    GameError,
    InvalidIndex,
    InvalidPayload,
    InvalidState,
    NotFound,
    NotInitialized,
    VotesLocked,
)
from .state import Comedian, Player, Session, SessionStore, Story
