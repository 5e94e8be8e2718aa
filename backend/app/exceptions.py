"""Domain exceptions raised by the rating and practice services."""


class PracticeError(Exception):
    """Base exception for all rating/practice errors."""


class UnknownProblemError(PracticeError):
    """Raised when a problem id is not part of the loaded corpus."""

    def __init__(self, problem_id: str):
        super().__init__(f"Problem '{problem_id}' not found")
        self.problem_id = problem_id


class InvalidPairError(PracticeError):
    """Raised when a vote compares a problem with itself."""


class InvalidTransitionError(PracticeError):
    """Raised when a practice session receives an event its current state does not accept."""

    def __init__(self, state: str, event: str):
        super().__init__(f"Cannot '{event}' while session is '{state}'")
        self.state = state
        self.event = event


class SessionNotFoundError(PracticeError):
    """Raised when no practice session exists for a session hash."""


class StaleRatingError(PracticeError):
    """Raised when a rating row changed between read and write."""


class JobAlreadyRunningError(PracticeError):
    """Raised when another runner holds the lease for a background job."""


class UnknownUserError(PracticeError):
    """Raised when a user id does not belong to a registered user."""

    def __init__(self, user_id: int):
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id


class EmailTakenError(PracticeError):
    """Raised when registering an email that already has an account."""


class InvalidCredentialsError(PracticeError):
    """Raised when an email / password pair does not match an account."""
