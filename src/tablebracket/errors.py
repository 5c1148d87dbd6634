"""
Exceptions raised by the bracket engine and the tournament service.
"""


class BracketError(Exception):
    """Base class for bracket engine failures."""


class MatchNotFoundError(BracketError, LookupError):
    def __init__(self, match_id):
        self.match_id = match_id
        super().__init__(f"Match {match_id} not found")


class MatchAlreadyDecidedError(BracketError):
    """A correction would rewrite a result that later matches already depend on."""

    def __init__(self, match_id, message=None):
        self.match_id = match_id
        super().__init__(message or f"Match {match_id} is already decided")


class InsufficientTeamsError(BracketError):
    def __init__(self, count, minimum=2):
        self.count = count
        self.minimum = minimum
        super().__init__(f"Need at least {minimum} teams to generate a bracket (got {count})")


class NoBracketError(BracketError):
    def __init__(self, tournament_id):
        self.tournament_id = tournament_id
        super().__init__(f"Tournament {tournament_id} has no bracket data; regenerate the bracket")


class ValidationError(ValueError):
    """Invalid user input; ``errors`` holds one message per failed field."""

    def __init__(self, errors):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__('; '.join(self.errors))


class RecordNotFoundError(KeyError):
    def __init__(self, collection, record_id):
        self.collection = collection
        self.record_id = record_id
        super().__init__(f"{collection} record {record_id} not found")

    def __str__(self):
        return self.args[0]


class ConflictError(Exception):
    """The request contradicts existing state (duplicates, records in use)."""


class DuplicateTeamError(ConflictError):
    def __init__(self, name):
        self.name = name
        super().__init__('A team with this name already exists')


class DuplicateFreeAgentError(ConflictError):
    def __init__(self, phone):
        self.phone = phone
        super().__init__('A free agent with this phone number already exists')


class ConfirmationRequiredError(Exception):
    """Regenerating a bracket that already has results needs explicit confirmation."""

    def __init__(self, tournament_id):
        self.tournament_id = tournament_id
        super().__init__(
            'Regenerating the bracket will permanently delete all current match results. '
            'Confirm to continue.'
        )
