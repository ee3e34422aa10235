"""Errors raised by the game engine.

Everything here is caught at the dispatcher boundary and reported back to the
channel that sent the offending event, so the messages are player-facing.
"""


class GameError(Exception):
    """Base class for all game engine errors."""
    code = 'game_error'


class NotInitialized(GameError):
    """No session exists yet."""
    code = 'not_initialized'

    def __init__(self, message='Game state not initialized'):
        super().__init__(message)


class NotFound(GameError):
    """A referenced comedian, story or player does not exist."""
    code = 'not_found'

    def __init__(self, kind, item_id):
        self.kind = kind
        self.item_id = item_id
        super().__init__(f"{kind.capitalize()} {item_id} not found")


class InvalidIndex(GameError):
    """Slide position out of range."""
    code = 'invalid_index'


class VotesLocked(GameError):
    """Vote submitted after voting closed for the current story."""
    code = 'votes_locked'

    def __init__(self, message='Votes are locked'):
        super().__init__(message)


class InvalidState(GameError):
    """Operation not allowed in the current mode/phase."""
    code = 'invalid_state'


class InvalidPayload(GameError):
    """Inbound event payload is missing fields or has the wrong shape."""
    code = 'invalid_payload'


class Forbidden(GameError):
    """Event sent from a channel whose role may not send it."""
    code = 'forbidden'
