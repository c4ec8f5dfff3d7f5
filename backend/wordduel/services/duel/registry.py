import logging
import random
import string
import threading
from typing import Dict, Iterable, List, Optional

from wordduel.errors import CapacityExceeded, LobbyNotFound
from wordduel.models import WordPair
from .lobby import Lobby, LobbySettings

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
MAX_CODE_ATTEMPTS = 50


def normalize_code(code: str) -> str:
    return (code or '').strip().upper()


def generate_lobby_code(length=6, rng=None) -> str:
    """Generate a short, human-typeable lobby code."""
    return ''.join((rng or random).choices(CODE_ALPHABET, k=length))


class LobbyRegistry:
    """Directory of live lobbies keyed by their public code.

    The registry lock only guards the code -> lobby mapping. It is never held
    while calling into a lobby; lobbies may call back into the registry while
    holding their own lock.
    """

    def __init__(self, scheduler, settings: Optional[LobbySettings] = None, rng=None):
        self.scheduler = scheduler
        self.settings = settings or LobbySettings()
        self._rng = rng
        self._lock = threading.Lock()
        self._lobbies: Dict[str, Lobby] = {}
        self._pending_removals: Dict[str, object] = {}

    def __len__(self):
        with self._lock:
            return len(self._lobbies)

    def __contains__(self, code):
        with self._lock:
            return normalize_code(code) in self._lobbies

    def time_limit_for_mode(self, mode: Optional[str]) -> int:
        return self.settings.time_limit_for_mode(mode)

    def create(self, words: Iterable[WordPair], time_limit: int) -> str:
        with self._lock:
            for _ in range(MAX_CODE_ATTEMPTS):
                code = generate_lobby_code(self.settings.code_length, self._rng)
                if code not in self._lobbies:
                    break
            else:
                logger.error(f"[code-exhausted] attempts={MAX_CODE_ATTEMPTS} live={len(self._lobbies)}")
                raise CapacityExceeded()
            lobby = self._lobbies[code] = Lobby(
                code,
                list(words),
                time_limit,
                self.scheduler,
                registry=self,
                settings=self.settings,
                rng=self._rng,
            )
        lobby.await_players()
        logger.info(f"[lobby-created] code={code} time_limit={time_limit}s")
        return code

    def lookup(self, code: str) -> Lobby:
        with self._lock:
            lobby = self._lobbies.get(normalize_code(code))
        if lobby is None:
            raise LobbyNotFound()
        return lobby

    def schedule_removal(self, code: str, after_seconds: float) -> None:
        """Remove ``code`` after a delay. Repeated calls keep the first schedule."""
        code = normalize_code(code)
        with self._lock:
            lobby = self._lobbies.get(code)
            if lobby is None or code in self._pending_removals:
                return
            self._pending_removals[code] = self.scheduler.call_later(
                after_seconds, self._remove, code, lobby
            )
        logger.info(f"[removal-scheduled] code={code} delay={after_seconds}s")

    def _remove(self, code: str, lobby: Lobby) -> None:
        self.discard(code, lobby)
        lobby.close()

    def discard(self, code: str, lobby: Lobby) -> bool:
        """Drop ``code`` if it still maps to ``lobby``."""
        with self._lock:
            if self._lobbies.get(code) is not lobby:
                return False
            del self._lobbies[code]
            pending = self._pending_removals.pop(code, None)
        if pending is not None:
            pending.cancel()
        logger.info(f"[lobby-removed] code={code}")
        return True

    def snapshot(self) -> List[dict]:
        with self._lock:
            lobbies = list(self._lobbies.values())
        return [lobby.snapshot() for lobby in lobbies]
