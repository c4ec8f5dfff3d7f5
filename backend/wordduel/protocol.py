"""Inbound message variants and their decoding.

Clients talk to the server with JSON envelopes. Socket.IO clients send each
kind as its own event; plain WebSocket style clients send a ``message`` event
whose payload is ``{"type": <kind>, ...}`` (as text or already decoded).
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from wordduel.errors import ProtocolError
from wordduel.models import WordPair

NAME_MAX_LEN = 32
ANSWER_MAX_LEN = 200

CREATE_LOBBY = 'createLobby'
JOIN_LOBBY = 'joinLobby'
START_GAME = 'startGame'
ANSWER = 'answer'


@dataclass(frozen=True)
class CreateLobby:
    name: str
    words: List[WordPair] = field(default_factory=list)
    mode: Optional[str] = None


@dataclass(frozen=True)
class JoinLobby:
    code: str
    name: str


@dataclass(frozen=True)
class StartGame:
    pass


@dataclass(frozen=True)
class SubmitAnswer:
    answer: str


InboundMessage = Union[CreateLobby, JoinLobby, StartGame, SubmitAnswer]


def _require_str(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise ProtocolError(f'{key} is required')
    return value


def parse_name(data: Dict[str, Any]) -> str:
    name = _require_str(data, 'name').strip()
    if not name:
        raise ProtocolError('name is required')
    if len(name) > NAME_MAX_LEN:
        raise ProtocolError(f'name must be at most {NAME_MAX_LEN} characters')
    return name


def parse_words(raw) -> List[WordPair]:
    """Decode the word list, dropping pairs with a blank side."""
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ProtocolError('words must be a list')
    words = []
    for entry in raw:
        if not isinstance(entry, dict):
            raise ProtocolError('each word must be an object')
        question = entry.get('question', '')
        answer = entry.get('answer', '')
        if not isinstance(question, str) or not isinstance(answer, str):
            raise ProtocolError('question and answer must be strings')
        if question.strip() and answer.strip():
            words.append(WordPair(question.strip(), answer.strip()))
    return words


def _parse_create(data):
    mode = data.get('mode')
    if mode is not None and not isinstance(mode, str):
        raise ProtocolError('mode must be a string')
    return CreateLobby(name=parse_name(data), words=parse_words(data.get('words')), mode=mode)


def _parse_join(data):
    code = _require_str(data, 'code').strip().upper()
    if not code:
        raise ProtocolError('code is required')
    return JoinLobby(code=code, name=parse_name(data))


def _parse_start(data):
    return StartGame()


def _parse_answer(data):
    answer = _require_str(data, 'answer')
    if len(answer) > ANSWER_MAX_LEN:
        raise ProtocolError('answer is too long')
    return SubmitAnswer(answer=answer)


_PARSERS = {
    CREATE_LOBBY: _parse_create,
    JOIN_LOBBY: _parse_join,
    START_GAME: _parse_start,
    ANSWER: _parse_answer,
}


def parse_message(kind: str, data) -> InboundMessage:
    parser = _PARSERS.get(kind)
    if parser is None:
        raise ProtocolError(f'Unknown message type: {kind}')
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ProtocolError('Message payload must be an object')
    return parser(data)


def parse_envelope(raw) -> InboundMessage:
    """Decode a ``{"type": ...}`` envelope sent as text or as a mapping."""
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError:
            raise ProtocolError('Message is not valid JSON')
    if not isinstance(raw, dict):
        raise ProtocolError('Message must be a JSON object')
    kind = raw.get('type')
    if not isinstance(kind, str):
        raise ProtocolError('Message type is required')
    return parse_message(kind, raw)
