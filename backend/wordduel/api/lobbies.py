from flask import Blueprint, current_app, jsonify

from wordduel.errors import LobbyNotFound

lobbies = Blueprint('lobbies', __name__)


@lobbies.route('/<string:code>', methods=['GET'])
def get_lobby(code):
    """
    Returns the public state of a lobby so a join page can check a code
    before opening a socket.
    """
    try:
        lobby = current_app.extensions['lobby_registry'].lookup(code)
    except LobbyNotFound as exc:
        return jsonify({'error': exc.message}), 404
    return jsonify(lobby.snapshot()), 200
