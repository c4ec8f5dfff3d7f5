import threading
from typing import Dict, Optional

from wordduel.errors import LobbyNotFound, NotInLobby, ProtocolError


class PlayerSession:
    """Binding of one connection to at most one lobby identity."""

    def __init__(self, endpoint):
        self.endpoint = endpoint
        self.lobby_code: Optional[str] = None
        self.player_id: Optional[str] = None

    @property
    def bound(self):
        return self.lobby_code is not None

    def bind(self, lobby_code, player_id):
        if self.bound:
            raise ProtocolError('Connection is already in a lobby')
        self.lobby_code = lobby_code
        self.player_id = player_id

    def require_binding(self):
        if not self.bound:
            raise NotInLobby()
        return self.lobby_code, self.player_id

    def release(self):
        self.lobby_code = None
        self.player_id = None

    def release_if_stale(self, registry):
        """Drop the binding when its lobby has been retired."""
        if not self.bound:
            return
        try:
            lobby = registry.lookup(self.lobby_code)
        except LobbyNotFound:
            self.release()
            return
        if lobby.closed or self.player_id not in lobby.players:
            self.release()

    def require_unbound(self):
        if self.bound:
            raise ProtocolError('Connection is already in a lobby')


class SessionDirectory:
    """Connection sid -> PlayerSession, shared by all socket handlers."""

    def __init__(self):
        self._lock = threading.Lock()
        self._sessions: Dict[str, PlayerSession] = {}

    def open(self, endpoint) -> PlayerSession:
        session = PlayerSession(endpoint)
        with self._lock:
            self._sessions[endpoint.sid] = session
        return session

    def get(self, sid) -> Optional[PlayerSession]:
        with self._lock:
            return self._sessions.get(sid)

    def pop(self, sid) -> Optional[PlayerSession]:
        with self._lock:
            return self._sessions.pop(sid, None)
