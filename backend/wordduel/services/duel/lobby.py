import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from wordduel.errors import (
    GameAlreadyRunning,
    GameNotRunning,
    LobbyFull,
    LobbyNotFound,
    NotHost,
    NotInLobby,
    NotReady,
)
from wordduel.models import LobbyState, Player, WordQueue
from .scheduler import Clock
from .scoring import answers_match, build_results

logger = logging.getLogger(__name__)

DEFAULT_TIME_MODES = {'quick': 60, 'normal': 180, 'long': 300}


@dataclass(frozen=True)
class LobbySettings:
    reconnect_grace: float = 5.0
    empty_lobby_grace: float = 30.0
    results_display: float = 10.0
    tick_interval: float = 1.0
    code_length: int = 6
    max_players: int = 2
    time_modes: Mapping[str, int] = field(default_factory=lambda: dict(DEFAULT_TIME_MODES))
    default_mode: str = 'normal'

    @classmethod
    def from_config(cls, config) -> 'LobbySettings':
        return cls(
            reconnect_grace=float(config.get('RECONNECT_GRACE_SEC', 5)),
            empty_lobby_grace=float(config.get('EMPTY_LOBBY_GRACE_SEC', 30)),
            results_display=float(config.get('RESULTS_DISPLAY_SEC', 10)),
            tick_interval=float(config.get('TICK_INTERVAL_SEC', 1)),
            code_length=int(config.get('LOBBY_CODE_LENGTH', 6)),
            time_modes=dict(config.get('TIME_MODES') or DEFAULT_TIME_MODES),
            default_mode=config.get('DEFAULT_TIME_MODE', 'normal'),
        )

    def time_limit_for_mode(self, mode: Optional[str]) -> int:
        default = self.time_modes.get(self.default_mode, DEFAULT_TIME_MODES['normal'])
        return int(self.time_modes.get(mode, default)) if mode else int(default)


class Outbox:
    """Events and closes produced by one transition, delivered after commit."""

    def __init__(self):
        self.messages = []
        self.closing = []

    def send(self, endpoint, event, payload):
        if endpoint is not None:
            self.messages.append((endpoint, event, payload))

    def close(self, endpoint):
        self.closing.append(endpoint)


class Lobby:
    """One duel: roster, host, word queue, countdown and the state machine.

    Every public operation runs as a transition: state is mutated under the
    lobby lock, outbound events are queued on an ``Outbox`` and sent once the
    state lock is released. Sends of consecutive transitions keep their order
    because the delivery lock is taken before the state lock is dropped.
    """

    def __init__(self, code, words, time_limit, scheduler, registry=None,
                 settings: Optional[LobbySettings] = None, rng=None):
        self.code = code
        self.words = words if isinstance(words, WordQueue) else WordQueue(words)
        self.time_limit = int(time_limit)
        self.time_remaining = self.time_limit
        self.state = LobbyState.WAITING
        self.players: Dict[str, Player] = {}
        self.host_id: Optional[str] = None
        self.closed = False
        self.scheduler = scheduler
        self.registry = registry
        self.settings = settings or LobbySettings()
        self._rng = rng
        self._clock: Optional[Clock] = None
        self._final_results = None
        self._grace_calls = {}
        self._purge_call = None
        self._lock = threading.RLock()
        self._delivery_lock = threading.RLock()

    def __repr__(self):
        return f'<Lobby {self.code} {self.state.value} players={len(self.players)}>'

    # ---- transition plumbing ----

    @contextmanager
    def _transition(self):
        outbox = Outbox()
        self._lock.acquire()
        try:
            yield outbox
            self._delivery_lock.acquire()
        finally:
            self._lock.release()
        try:
            self._deliver(outbox)
        finally:
            self._delivery_lock.release()
        for endpoint in outbox.closing:
            try:
                endpoint.close()
            except Exception as exc:
                logger.debug(f"[close-failed] code={self.code} endpoint={endpoint!r} error={exc}")

    def _deliver(self, outbox: Outbox) -> None:
        for endpoint, event, payload in outbox.messages:
            try:
                endpoint.send(event, payload)
            except Exception as exc:
                # One unreachable player must not block the other
                logger.debug(f"[send-failed] code={self.code} endpoint={endpoint!r} event={event} error={exc}")

    def _broadcast(self, outbox: Outbox, event: str, payload: dict) -> None:
        for player in self.players.values():
            outbox.send(player.connection, event, payload)

    def _roster(self) -> List[dict]:
        return [p.to_dict(host_id=self.host_id) for p in self.players.values()]

    def _member(self, player_id, endpoint=None) -> Player:
        player = self.players.get(player_id)
        if player is None:
            raise NotInLobby()
        if endpoint is not None and player.connection is not endpoint:
            raise NotInLobby('This connection was replaced by a newer one')
        return player

    # ---- queries ----

    @property
    def clock(self) -> Optional[Clock]:
        return self._clock

    def _find_by_name(self, name) -> Optional[Player]:
        for player in self.players.values():
            if player.name == name:
                return player
        return None

    def snapshot(self) -> dict:
        with self._lock:
            host = self.players.get(self.host_id)
            return {
                'code': self.code,
                'state': self.state.value,
                'players': self._roster(),
                'hostName': host.name if host else None,
                'timeLimit': self.time_limit,
                'timeRemaining': self.time_remaining,
                'wordCount': len(self.words),
            }

    # ---- roster ----

    def join(self, name: str, endpoint) -> Player:
        """Admit ``name`` or, when the name is already present, reconnect it.

        A known name always reconnects, whatever the state. A new name needs
        the lobby to be waiting (``GameAlreadyRunning``) and to have a free
        seat (``LobbyFull``), checked in that order.
        """
        with self._transition() as outbox:
            if self.closed:
                raise LobbyNotFound()
            existing = self._find_by_name(name)
            if existing is not None:
                player = self._transfer_identity(existing, endpoint, outbox)
            else:
                if self.state is not LobbyState.WAITING:
                    raise GameAlreadyRunning()
                if len(self.players) >= self.settings.max_players:
                    raise LobbyFull()
                player = Player(name=name, connection=endpoint)
                self.players[player.id] = player
                if self.host_id is None:
                    self.host_id = player.id
                self._cancel_purge()
                logger.info(f"[player-joined] code={self.code} player={player.id} name={name!r}")

            self._broadcast(outbox, 'playerJoined', {
                'players': self._roster(),
                'newPlayer': player.to_dict(host_id=self.host_id),
            })
            if existing is not None:
                self._resume(player, outbox)
            return player

    def _transfer_identity(self, existing: Player, endpoint, outbox: Outbox) -> Player:
        """Move ``existing``'s id, score, cursor and host flag onto ``endpoint``.

        The old record is replaced in place, so the roster never holds two
        entries for one name and host succession order is unchanged.
        """
        stale = existing.connection
        player = existing.carry_over(endpoint)
        self.players[player.id] = player
        pending = self._grace_calls.pop(player.id, None)
        if pending is not None:
            pending.cancel()
        if stale is not None and stale is not endpoint:
            outbox.close(stale)
        logger.info(f"[player-reconnected] code={self.code} player={player.id} name={player.name!r}")
        return player

    def _resume(self, player: Player, outbox: Outbox) -> None:
        if self.state is LobbyState.PLAYING:
            outbox.send(player.connection, 'gameStarted', {'timeLimit': self.time_limit})
            outbox.send(player.connection, 'timer', {'timeLeft': self.time_remaining})
            self._deal_next(player, outbox)
        elif self.state is LobbyState.FINISHED and self._final_results is not None:
            outbox.send(player.connection, 'gameOver', self._final_results)

    def connection_lost(self, player_id, endpoint) -> None:
        """Start the reconnect grace window for ``player_id``."""
        with self._transition():
            player = self.players.get(player_id)
            if self.closed or player is None or player.connection is not endpoint:
                return
            pending = self._grace_calls.pop(player_id, None)
            if pending is not None:
                pending.cancel()
            self._grace_calls[player_id] = self.scheduler.call_later(
                self.settings.reconnect_grace, self._expire_player, player_id, endpoint
            )
            logger.info(f"[grace-start] code={self.code} player={player_id} delay={self.settings.reconnect_grace}s")

    def _expire_player(self, player_id, stale) -> None:
        with self._transition() as outbox:
            player = self.players.get(player_id)
            if self.closed or player is None or player.connection is not stale:
                return
            self._grace_calls.pop(player_id, None)
            logger.info(f"[grace-expired] code={self.code} player={player_id} name={player.name!r}")
            self._remove_player(player, outbox)

    def _remove_player(self, player: Player, outbox: Outbox) -> None:
        del self.players[player.id]
        lost_host = player.id == self.host_id
        if lost_host:
            # Roster order decides succession
            self.host_id = next(iter(self.players), None)
        self._broadcast(outbox, 'playerLeft', {
            'playerName': player.name,
            'players': self._roster(),
        })
        if lost_host and self.host_id is not None:
            host = self.players[self.host_id]
            logger.info(f"[new-host] code={self.code} player={host.id} name={host.name!r}")
            self._broadcast(outbox, 'newHost', {'hostName': host.name})
        if self.state is LobbyState.PLAYING and len(self.players) < 2:
            self._finish('player-left', outbox)
        if not self.players and self.state is not LobbyState.FINISHED:
            self._schedule_purge()

    def await_players(self) -> None:
        """Purge the lobby unless someone joins within the empty-lobby grace."""
        with self._lock:
            if not self.players and not self.closed:
                self._schedule_purge()

    def _schedule_purge(self) -> None:
        if self._purge_call is None:
            self._purge_call = self.scheduler.call_later(
                self.settings.empty_lobby_grace, self._purge_if_empty
            )

    def _cancel_purge(self) -> None:
        if self._purge_call is not None:
            self._purge_call.cancel()
            self._purge_call = None

    def _purge_if_empty(self) -> None:
        with self._transition():
            self._purge_call = None
            if self.players or self.closed:
                return
            self.closed = True
            logger.info(f"[lobby-purged] code={self.code} reason=empty")
            if self.registry is not None:
                self.registry.discard(self.code, self)

    # ---- gameplay ----

    def start(self, player_id, endpoint=None) -> None:
        with self._transition() as outbox:
            if self.closed:
                raise LobbyNotFound()
            self._member(player_id, endpoint)
            if self.state is not LobbyState.WAITING:
                raise GameAlreadyRunning()
            if player_id != self.host_id:
                raise NotHost()
            if len(self.players) < 2 or not self.words:
                raise NotReady()

            self.words = self.words.shuffled(self._rng)
            for player in self.players.values():
                player.score = 0
                player.cursor = 0
            self.time_remaining = self.time_limit
            self.state = LobbyState.PLAYING
            self._clock = Clock(self.scheduler, self._on_tick, self.settings.tick_interval)
            self._clock.start()
            logger.info(f"[game-started] code={self.code} words={len(self.words)} time_limit={self.time_limit}s")

            self._broadcast(outbox, 'gameStarted', {'timeLimit': self.time_limit})
            for player in self.players.values():
                self._deal_next(player, outbox)

    def _deal_next(self, player: Player, outbox: Outbox) -> None:
        if player.cursor < len(self.words):
            word = self.words[player.cursor]
            outbox.send(player.connection, 'nextWord', {'word': word.to_dict()})
        else:
            outbox.send(player.connection, 'finished', {'score': player.score})

    def answer(self, player_id, text: str, endpoint=None) -> Optional[bool]:
        """Score ``text`` against the player's current word and advance.

        Returns whether it matched, or None when the player had no word left.
        """
        with self._transition() as outbox:
            if self.state is not LobbyState.PLAYING:
                raise GameNotRunning()
            player = self._member(player_id, endpoint)
            if player.cursor >= len(self.words):
                return None

            word = self.words[player.cursor]
            correct = answers_match(text, word.answer)
            if correct:
                player.score += 1
                outbox.send(player.connection, 'correct', {'score': player.score})
            else:
                outbox.send(player.connection, 'incorrect', {
                    'score': player.score,
                    'correctAnswer': word.answer,
                })
            player.cursor += 1
            self._deal_next(player, outbox)

            if all(p.cursor >= len(self.words) for p in self.players.values()):
                self._finish('all-done', outbox)
            return correct

    def _on_tick(self, clock: Clock) -> None:
        with self._transition() as outbox:
            if clock is not self._clock or self.state is not LobbyState.PLAYING:
                return
            self.time_remaining = max(0, self.time_remaining - 1)
            self._broadcast(outbox, 'timer', {'timeLeft': self.time_remaining})
            if self.time_remaining == 0:
                self._finish('time-up', outbox)

    def _finish(self, reason: str, outbox: Outbox) -> None:
        if self.state is LobbyState.FINISHED:
            return
        self.state = LobbyState.FINISHED
        if self._clock is not None:
            self._clock.cancel()
            self._clock = None
        self._final_results = build_results(self.players.values())
        logger.info(
            f"[game-over] code={self.code} reason={reason} winners={self._final_results['winners']} "
            f"max_score={self._final_results['maxScore']}"
        )
        self._broadcast(outbox, 'gameOver', self._final_results)
        if self.registry is not None:
            self.registry.schedule_removal(self.code, self.settings.results_display)

    def close(self) -> None:
        """Retire the lobby; stops timers and rejects further joins."""
        with self._transition():
            if self.closed:
                return
            self.closed = True
            if self._clock is not None:
                self._clock.cancel()
                self._clock = None
            for pending in self._grace_calls.values():
                pending.cancel()
            self._grace_calls.clear()
            self._cancel_purge()
