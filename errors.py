"""Domain errors raised by the tournament lifecycle.

Every error carries a stable ``code`` and the HTTP status the blueprints
answer with. They subclass ``ValueError`` so callers that only care about
"the request was not acceptable" can keep catching that.
"""


class TournamentError(ValueError):
    code = 'tournament_error'
    status_code = 400

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message())
        self.message = str(self)

    @classmethod
    def default_message(cls) -> str:
        return cls.__doc__.strip() if cls.__doc__ else cls.code

    def to_dict(self) -> dict:
        return {'error': self.code, 'message': self.message}


class StateConflict(TournamentError):
    """Operation is not allowed in the current status."""

    code = 'state_conflict'
    status_code = 409


class Closed(StateConflict):
    """Tournament is not accepting registrations."""

    code = 'closed'


class Locked(StateConflict):
    """Registrations can no longer be changed for this tournament."""

    code = 'locked'


class Full(TournamentError):
    """Tournament has reached its participant limit."""

    code = 'full'
    status_code = 409


class Duplicate(TournamentError):
    """Already registered for this tournament."""

    code = 'duplicate'
    status_code = 409


class NotCaptain(TournamentError):
    """Only the team captain can do this."""

    code = 'not_captain'
    status_code = 403


class NotManager(TournamentError):
    """Only the tournament organizer or an admin can do this."""

    code = 'not_manager'
    status_code = 403


class NotOwner(TournamentError):
    """You do not own this resource."""

    code = 'not_owner'
    status_code = 403


class InvalidWinner(TournamentError):
    """Winner must be one of the match participants."""

    code = 'invalid_winner'


class InsufficientParticipants(TournamentError):
    """At least two confirmed participants are required."""

    code = 'insufficient_participants'
    status_code = 409


class AlreadyGenerated(TournamentError):
    """Bracket has already been generated for this tournament."""

    code = 'already_generated'
    status_code = 409


class NotFound(TournamentError):
    """Requested record does not exist."""

    code = 'not_found'
    status_code = 404


class ConcurrentUpdate(TournamentError):
    """Record was changed by another request, reload and try again."""

    code = 'concurrent_update'
    status_code = 409
