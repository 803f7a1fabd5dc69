"""Rejection taxonomy for game intents.

Every ``GameError`` is recoverable: it is raised before the first write to
the game record, so the game is left exactly as it was before the attempt.
"""


class GameError(Exception):
    """Base class for rejected intents."""

    reason = 'invalid-state'
    default_message = 'Cannot perform this action right now'

    def __init__(self, message=None, **context):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def to_dict(self):
        payload = {'reason': self.reason, 'message': self.message}
        payload.update(self.context)
        return payload


class GameNotFound(GameError):
    reason = 'game-not-found'
    default_message = 'Game not found'


class PlayerNotFound(GameError):
    reason = 'player-not-found'
    default_message = 'Player not found'


class InvalidTeam(GameError):
    reason = 'invalid-team'
    default_message = 'Team not found'


class NotYourTurn(GameError):
    reason = 'not-your-turn'
    default_message = "It's not your turn to answer"


class AlreadyAnswered(GameError):
    reason = 'already-answered'
    default_message = 'Your team has already answered this question'


class Unauthorized(GameError):
    reason = 'unauthorized'
    default_message = 'You are not authorized to perform this action'


class InvalidGameState(GameError):
    reason = 'invalid-state'
    default_message = 'Game is not in a state that allows this action'


class InvalidAnswer(GameError):
    reason = 'invalid-answer'
    default_message = 'Answer cannot be empty'


class GameFull(InvalidGameState):
    reason = 'game-full'
    default_message = 'Game is full'


class InvariantViolation(RuntimeError):
    """A mutation left a game breaking one of its structural invariants."""

    def __init__(self, code, violations):
        self.code = code
        self.violations = list(violations)
        super().__init__(f"game {code} violates: {'; '.join(self.violations)}")
