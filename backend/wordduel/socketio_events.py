from flask import current_app, request
from flask_socketio import emit

from wordduel import socketio
from wordduel.errors import ConnectionClosed, LobbyError, LobbyNotFound
from wordduel.protocol import (
    ANSWER,
    CREATE_LOBBY,
    JOIN_LOBBY,
    START_GAME,
    CreateLobby,
    JoinLobby,
    StartGame,
    SubmitAnswer,
)
from wordduel.sessions import PlayerSession
from wordduel.transport import NAMESPACE, SocketIOEndpoint


def _registry():
    return current_app.extensions['lobby_registry']


def _sessions():
    return current_app.extensions['player_sessions']


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _current_session() -> PlayerSession:
    sessions = _sessions()
    session = sessions.get(_get_sid())
    if session is None:
        session = sessions.open(SocketIOEndpoint(socketio, _get_sid(), NAMESPACE))
    return session


def _send_error(session: PlayerSession, message: str) -> None:
    try:
        session.endpoint.send('error', {'message': message})
    except ConnectionClosed:
        pass


# ---- Message handlers (one per inbound variant) ----

def _on_create_lobby(session: PlayerSession, message: CreateLobby) -> None:
    registry = _registry()
    session.release_if_stale(registry)
    session.require_unbound()
    time_limit = registry.time_limit_for_mode(message.mode)
    code = registry.create(message.words, time_limit)
    session.endpoint.send('lobbyCreated', {'code': code, 'timeLimit': time_limit})
    player = registry.lookup(code).join(message.name, session.endpoint)
    session.bind(code, player.id)


def _on_join_lobby(session: PlayerSession, message: JoinLobby) -> None:
    registry = _registry()
    session.release_if_stale(registry)
    session.require_unbound()
    lobby = registry.lookup(message.code)
    player = lobby.join(message.name, session.endpoint)
    session.bind(lobby.code, player.id)


def _on_start_game(session: PlayerSession, message: StartGame) -> None:
    code, player_id = session.require_binding()
    _registry().lookup(code).start(player_id, session.endpoint)


def _on_answer(session: PlayerSession, message: SubmitAnswer) -> None:
    code, player_id = session.require_binding()
    _registry().lookup(code).answer(player_id, message.answer, session.endpoint)


_HANDLERS = {
    CreateLobby: _on_create_lobby,
    JoinLobby: _on_join_lobby,
    StartGame: _on_start_game,
    SubmitAnswer: _on_answer,
}


def _dispatch(kind, data) -> None:
    session = _current_session()
    try:
        message = session.endpoint.receive(kind, data)
        _HANDLERS[type(message)](session, message)
    except LobbyError as exc:
        current_app.logger.info(f"[rejected] sid={session.endpoint.sid} kind={kind} error={exc.message!r}")
        _send_error(session, exc.message)


# ---- Socket.IO event handlers ----

def handle_connect(auth=None):
    _current_session()
    emit('connected', {'message': f'Connected to {NAMESPACE}'})


def handle_disconnect(reason=None):
    # Closing a connection never touches lobby state directly; it only
    # starts the reconnect grace window for the bound identity.
    session = _sessions().pop(_get_sid())
    if not session:
        return
    session.endpoint.mark_closed()
    if not session.bound:
        return
    try:
        lobby = _registry().lookup(session.lobby_code)
    except LobbyNotFound:
        return
    lobby.connection_lost(session.player_id, session.endpoint)


def handle_create_lobby(data=None):
    _dispatch(CREATE_LOBBY, data)


def handle_join_lobby(data=None):
    _dispatch(JOIN_LOBBY, data)


def handle_start_game(data=None):
    _dispatch(START_GAME, data)


def handle_answer(data=None):
    _dispatch(ANSWER, data)


def handle_message(data=None):
    _dispatch('message', data)


def handle_ping(data=None):
    emit('pong', data or {})


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on the '/ws' namespace."""
    socketio.on_event('connect', handle_connect, namespace=NAMESPACE)
    socketio.on_event('disconnect', handle_disconnect, namespace=NAMESPACE)
    socketio.on_event(CREATE_LOBBY, handle_create_lobby, namespace=NAMESPACE)
    socketio.on_event(JOIN_LOBBY, handle_join_lobby, namespace=NAMESPACE)
    socketio.on_event(START_GAME, handle_start_game, namespace=NAMESPACE)
    socketio.on_event(ANSWER, handle_answer, namespace=NAMESPACE)
    socketio.on_event('message', handle_message, namespace=NAMESPACE)
    socketio.on_event('ping', handle_ping, namespace=NAMESPACE)
