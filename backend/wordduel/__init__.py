from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
import click
from wordduel.config import Config

# Handlers run inline on each connection's receive loop so messages from one
# client are processed in the order they arrive.
socketio = SocketIO(async_mode=None, async_handlers=False)


def create_app(config_class=Config, registry=None):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or '*'
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Lobby directory and connection sessions live on the app, not in module
    # globals, so every app (and every test) gets its own.
    from wordduel.services.duel import LobbyRegistry, LobbySettings, TaskScheduler
    from wordduel.sessions import SessionDirectory
    if registry is None:
        registry = LobbyRegistry(
            TaskScheduler(socketio),
            LobbySettings.from_config(flask_app.config),
        )
    flask_app.extensions['lobby_registry'] = registry
    flask_app.extensions['player_sessions'] = SessionDirectory()

    from wordduel.main import main
    flask_app.register_blueprint(main)

    from wordduel.api.lobbies import lobbies
    flask_app.register_blueprint(lobbies, url_prefix='/api/lobbies')

    from wordduel.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    @click.command('lobbies')
    def list_lobbies_command():
        """Lists live lobbies with their state and players."""
        snapshot = flask_app.extensions['lobby_registry'].snapshot()
        if not snapshot:
            click.echo('No live lobbies.')
            return
        for lobby in snapshot:
            names = ', '.join(p['name'] for p in lobby['players']) or '-'
            click.echo(f"{lobby['code']}  {lobby['state']:<8}  {lobby['timeRemaining']:>4}s  {names}")

    flask_app.cli.add_command(list_lobbies_command)

    return flask_app
