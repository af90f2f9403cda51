"""
Error taxonomy shared by the API and the client session controller.

Server-side errors are raised by the service layer and translated to HTTP
responses by the routes. Client-side errors are raised by the storage
implementations so the front end can tell re-authentication, not-found,
server and network failures apart.
"""


class CoachError(Exception):
    """Base class for all application errors."""

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class UnauthorizedError(CoachError):
    """A store operation was attempted without a user identity."""


class SessionNotFoundError(CoachError):
    """Unknown session id, or a guest session whose id does not match."""


class SessionStateError(CoachError):
    """The requested transition is not allowed in the session's current state."""


class GenerationError(CoachError):
    """The model call failed or its output could not be parsed."""


# Client-side (network-backed storage)

class AuthenticationError(CoachError):
    """Missing, invalid or expired credentials; the user should sign in again."""


class ServerError(CoachError):
    """The API answered with a 5xx status."""

    def __init__(self, message: str = "", status_code: int = 500):
        super().__init__(message)
        self.status_code = status_code


class NetworkError(CoachError):
    """The API could not be reached at all."""
