import random
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional, Tuple


class LobbyState(str, Enum):
    WAITING = 'waiting'
    PLAYING = 'playing'
    FINISHED = 'finished'


@dataclass(frozen=True)
class WordPair:
    question: str
    answer: str

    def to_dict(self, include_answer=False):
        data = {'question': self.question}
        if include_answer:
            data['answer'] = self.answer
        return data


class WordQueue:
    """Ordered, read-only sequence of word pairs.

    The queue is shared by both players of a lobby; each player walks it with
    their own cursor.
    """

    def __init__(self, pairs: Iterable[WordPair] = ()):
        self._pairs: Tuple[WordPair, ...] = tuple(pairs)

    def __len__(self):
        return len(self._pairs)

    def __getitem__(self, index):
        return self._pairs[index]

    def __iter__(self):
        return iter(self._pairs)

    def __bool__(self):
        return bool(self._pairs)

    def shuffled(self, rng: Optional[random.Random] = None) -> 'WordQueue':
        pairs = list(self._pairs)
        (rng or random).shuffle(pairs)
        return WordQueue(pairs)


def generate_player_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Player:
    name: str
    connection: Any = None
    id: str = field(default_factory=generate_player_id)
    score: int = 0
    cursor: int = 0

    @property
    def connected(self):
        return self.connection is not None and self.connection.alive

    def carry_over(self, connection) -> 'Player':
        """Return a new record with this identity bound to ``connection``."""
        return Player(
            name=self.name,
            connection=connection,
            id=self.id,
            score=self.score,
            cursor=self.cursor,
        )

    def to_dict(self, host_id=None):
        return {
            'id': self.id,
            'name': self.name,
            'isHost': self.id == host_id,
            'connected': self.connected,
        }
