"""Exception types raised by the assessment core and its collaborators."""

from __future__ import annotations


class ValidationError(ValueError):
    """Input rejected locally before it reaches any store or the network."""


class NotFoundError(LookupError):
    """Requested assessment, task or user does not exist for the caller."""


class NotAssignedError(PermissionError):
    """Student tried to submit an assessment that was not assigned to them."""


class DuplicateSubmissionError(RuntimeError):
    """A result already exists for this (assessment, student) pair."""


class SubmissionWindowClosed(RuntimeError):
    """Submission arrived before the window opened or after it closed."""


class AlreadyInFlight(RuntimeError):
    """A submission for this session is still outstanding."""


class SubmissionRejected(RuntimeError):
    """The server refused the submission; retrying cannot succeed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SubmissionFailed(RuntimeError):
    """Submission did not go through after the automatic retry."""


class FetchFailed(RuntimeError):
    """Fetching data from the API failed."""
