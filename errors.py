"""Errors raised by the client-side data layer."""
from typing import Optional


class LostFoundError(Exception):
    """Base class for every error the data layer reports to callers."""


class InvalidInputError(LostFoundError):
    """A required field is missing; raised before any network call."""


class NotFoundError(LostFoundError):
    """The account or record does not exist."""


class ServiceUnavailableError(LostFoundError):
    """The authentication service could not be reached or could not serve the request."""


class AuthTimeoutError(ServiceUnavailableError):
    def __init__(self, timeout: float):
        super().__init__(f"The request took too long (over {timeout:g}s). Please try again.")
        self.timeout = timeout


class RemoteUnavailable(LostFoundError):
    """The remote tier could not be reached or failed on its side.

    Caught by the data store. Reads and writes then answer from the local
    tier; sign-up and login report it as ``ServiceUnavailableError``.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, timed_out: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.timed_out = timed_out
