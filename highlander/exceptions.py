"""Exceptions raised by the Highlander service layer.

Routes do not translate these one by one: ``highlander.main`` installs
handlers that render ``GameRuleError`` subclasses with their own status code
and message, and ``StorageUnavailableError`` as a generic 503.
"""


class HighlanderError(Exception):
    """Base class for all application errors."""


# ========== Precondition violations ==========


class GameRuleError(HighlanderError):
    """A request broke a game rule; nothing was written."""

    status_code = 400
    code = "game_rule_violation"
    message = "The request violates a game rule."

    def __init__(self, message: str | None = None):
        self.message = message or self.message
        super().__init__(self.message)


class GameNotFoundError(GameRuleError):
    status_code = 404
    code = "game_not_found"
    message = "Game not found."


class TicketNotFoundError(GameRuleError):
    status_code = 404
    code = "ticket_not_found"
    message = "Ticket not found."


class TeamNotFoundError(GameRuleError):
    status_code = 404
    code = "team_not_found"
    message = "Team not found."


class MatchNotFoundError(GameRuleError):
    status_code = 404
    code = "match_not_found"
    message = "Match not found."


class UserNotFoundError(GameRuleError):
    status_code = 404
    code = "user_not_found"
    message = "User not found."


class UserExistsError(GameRuleError):
    status_code = 409
    code = "user_exists"
    message = "A user with this username or email already exists."


class AuthenticationRequiredError(GameRuleError):
    status_code = 401
    code = "authentication_required"
    message = "Identify yourself with the X-User-Id header."


class AdminRequiredError(GameRuleError):
    status_code = 403
    code = "admin_required"
    message = "This action is reserved to administrators."


class NotGameOwnerError(GameRuleError):
    status_code = 403
    code = "not_game_owner"
    message = "Access denied - not your game."


class TicketNotOwnedError(GameRuleError):
    status_code = 403
    code = "ticket_not_owned"
    message = "This ticket does not belong to you."


class GameNotActiveError(GameRuleError):
    code = "game_not_active"
    message = "Game is not active."


class RegistrationClosedError(GameRuleError):
    code = "registration_closed"
    message = "Registration is closed for this game."


class SelectionsLockedError(GameRuleError):
    status_code = 409
    code = "selections_locked"
    message = "Selections are locked for this round."


class DeadlinePassedError(SelectionsLockedError):
    code = "deadline_passed"
    message = "The selection deadline has passed - selections are locked."


class TicketInactiveError(GameRuleError):
    code = "ticket_inactive"
    message = "This ticket has been eliminated."


class TeamAlreadyUsedError(GameRuleError):
    status_code = 409
    code = "team_already_selected"
    message = "Team already selected by this ticket in a previous round."


class TeamNotPlayingError(GameRuleError):
    code = "team_not_playing"
    message = "This team has no match in the current round."


class RoundNotReadyError(GameRuleError):
    status_code = 409
    code = "round_not_ready"
    message = "Cannot calculate the round - some matches are not completed yet."


class SelectionsStillOpenError(GameRuleError):
    status_code = 409
    code = "selections_still_open"
    message = "Lock selections for this round before calculating it."


class RoundAlreadyCalculatedError(GameRuleError):
    status_code = 409
    code = "round_already_calculated"
    message = "This round has already been calculated."


class RoundNotCalculatedError(GameRuleError):
    status_code = 409
    code = "round_not_calculated"
    message = "The current round must be calculated before starting the next one."


class InvalidDeadlineError(GameRuleError):
    code = "invalid_deadline"
    message = "The deadline must be in the future."


class InvalidTicketCountError(GameRuleError):
    code = "invalid_ticket_count"
    message = "Ticket count is out of range."


class AdminTicketError(GameRuleError):
    code = "admin_ticket"
    message = "Cannot assign tickets to admin users."


class InvalidFixtureError(GameRuleError):
    code = "invalid_fixture"
    message = "A team cannot play against itself."


# ========== Infrastructure ==========


class StorageUnavailableError(HighlanderError):
    """The database stayed unreachable after every retry attempt."""

    def __init__(self, operation: str, attempts: int):
        self.operation = operation
        self.attempts = attempts
        super().__init__(f"{operation} failed after {attempts} attempt(s)")
