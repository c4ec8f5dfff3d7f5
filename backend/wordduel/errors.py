"""Errors raised by the lobby core.

Every ``LobbyError`` is scoped to the connection that triggered it: socket
handlers turn it into an ``error`` event for that connection only.
"""


class LobbyError(Exception):
    """Base class for user-visible lobby failures."""

    default_message = 'Something went wrong'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ProtocolError(LobbyError):
    default_message = 'Malformed message'


class LobbyNotFound(LobbyError):
    default_message = 'Lobby not found'


class LobbyFull(LobbyError):
    default_message = 'Lobby is full'


class NotHost(LobbyError):
    default_message = 'Only the host can start the game'


class NotReady(LobbyError):
    default_message = 'At least 2 players and 1 word are needed to start'


class GameAlreadyRunning(LobbyError):
    default_message = 'Game has already started or is finished'


class GameNotRunning(LobbyError):
    default_message = 'Game is not in progress'


class NotInLobby(LobbyError):
    default_message = 'You are not in a lobby'


class CapacityExceeded(LobbyError):
    default_message = 'No lobby codes available, try again later'


class ConnectionClosed(Exception):
    """Raised when sending on an endpoint that is no longer alive."""
