"""
Exceptions raised across layers.

Everything derives from MatchClientError so the service layer can catch one type at its boundary.
"""


class MatchClientError(Exception):
    """Top-level error of the match client."""


class ConfigurationError(MatchClientError):
    """Misconfiguration detected while constructing a component. Fatal for the session view."""


class RepositoryError(MatchClientError):
    """Credential store could not complete the request."""


# --- NETWORK / AUTHORITY ---
class NetworkError(MatchClientError):
    """The authority did not answer with a usable 2xx response."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class AuthorizationError(NetworkError):
    """403: authenticated, but not allowed to see or act on this game."""


class AuthenticationError(NetworkError):
    """401: no valid credential attached."""


class TransientNetworkError(NetworkError):
    """Soft failure. The next scheduled tick simply tries again."""


class MalformedResponseError(TransientNetworkError):
    """Payload could not be interpreted."""


class SubmissionRejectedError(NetworkError):
    """The authority refused a move (or terminal action) that passed local checks."""


# --- ILLEGAL LOCAL ACTIONS ---
class IllegalActionError(MatchClientError):
    """Rejected locally, before any network call."""


class GameNotOngoingError(IllegalActionError):
    pass


class NotAPlayerError(IllegalActionError):
    pass


class NotYourTurnError(IllegalActionError):
    pass


class NotYourPieceError(IllegalActionError):
    pass


class NoSelectionError(IllegalActionError):
    pass


class IllegalMoveError(IllegalActionError):
    pass


class SubmissionInProgressError(IllegalActionError):
    pass


class NoDrawOfferError(IllegalActionError):
    pass


class DrawAlreadyOfferedError(IllegalActionError):
    pass
