"""Exceptions for assessment session operations."""


class AssessmentError(Exception):
    """Base error for the assessment engine."""

    pass


class SessionStartError(AssessmentError):
    """A session could not be created. The host must route the taker elsewhere."""

    pass


class PermissionDeniedError(SessionStartError):
    """Taker is missing or not allowed to attempt the assessment."""

    pass


class EmptyPoolError(SessionStartError):
    """A section pool holds fewer questions than the session needs."""

    def __init__(self, section: str, available: int, required: int):
        self.section = section
        self.available = available
        self.required = required
        super().__init__(
            f"Not enough questions for section '{section}'. "
            f"Required={required}, Available={available}"
        )


class InvalidSessionConfigError(SessionStartError):
    """Section list, draw size or duration is unusable."""

    pass


class RepositoryUnavailableError(SessionStartError):
    """The question repository failed while loading a pool."""

    pass


class SessionNotFoundError(AssessmentError):
    """No live session for the given handle."""

    pass


class MutationRejected(AssessmentError):
    """Answer or navigation attempted while the session is not active."""

    pass


class InvalidOptionError(ValueError):
    """Option label is not one of A-D."""

    pass


class AttemptStoreError(AssessmentError):
    """The attempt store could not persist a record."""

    pass


class SubmissionError(AssessmentError):
    """Persisting the attempt failed; the frozen score is kept for retry."""

    def __init__(self, message: str, retryable: bool = True, attempts_used: int = 0):
        self.retryable = retryable
        self.attempts_used = attempts_used
        super().__init__(message)
