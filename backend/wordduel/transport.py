import threading

from wordduel.errors import ConnectionClosed
from wordduel.protocol import parse_envelope, parse_message

NAMESPACE = '/ws'


class ConnectionEndpoint:
    """One physical client connection.

    Subclasses implement ``_emit`` and ``_disconnect`` for their transport.
    """

    def __init__(self, sid):
        self.sid = sid
        self._alive = True
        self._close_lock = threading.Lock()

    def __repr__(self):
        state = 'alive' if self._alive else 'closed'
        return f'<{type(self).__name__} {self.sid} {state}>'

    @property
    def alive(self):
        return self._alive

    def send(self, event, payload):
        if not self._alive:
            raise ConnectionClosed(self.sid)
        self._emit(event, payload)

    def receive(self, kind, data):
        if kind == 'message':
            return parse_envelope(data)
        return parse_message(kind, data)

    def mark_closed(self):
        """Record that the transport already dropped the connection."""
        self._alive = False

    def close(self):
        with self._close_lock:
            if not self._alive:
                return
            self._alive = False
        self._disconnect()

    def _emit(self, event, payload):
        raise NotImplementedError

    def _disconnect(self):
        raise NotImplementedError


class SocketIOEndpoint(ConnectionEndpoint):
    def __init__(self, socketio, sid, namespace=NAMESPACE):
        super().__init__(sid)
        self.socketio = socketio
        self.namespace = namespace

    def _emit(self, event, payload):
        self.socketio.emit(event, payload, to=self.sid, namespace=self.namespace)

    def _disconnect(self):
        self.socketio.server.disconnect(self.sid, namespace=self.namespace)
