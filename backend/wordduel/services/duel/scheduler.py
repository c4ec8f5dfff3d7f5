import logging
import threading

logger = logging.getLogger(__name__)


class ScheduledCall:
    """Handle for a deferred callback. ``cancel()`` wins only once."""

    def __init__(self, func, args):
        self.func = func
        self.args = args
        self._lock = threading.Lock()
        self._cancelled = False
        self._done = False

    @property
    def cancelled(self):
        return self._cancelled

    def cancel(self) -> bool:
        with self._lock:
            if self._cancelled or self._done:
                return False
            self._cancelled = True
            return True

    def run(self) -> None:
        with self._lock:
            if self._cancelled or self._done:
                return
            self._done = True
        try:
            self.func(*self.args)
        except Exception:
            logger.exception(f"[task-error] callback={getattr(self.func, '__name__', self.func)!r}")


class TaskScheduler:
    """Runs delayed callbacks on Socket.IO background tasks.

    Works with whichever async mode the server runs in, since both the task
    and the sleep come from the ``SocketIO`` instance.
    """

    def __init__(self, socketio):
        self.socketio = socketio

    def call_later(self, delay, func, *args) -> ScheduledCall:
        call = ScheduledCall(func, args)

        def _runner():
            self.socketio.sleep(delay)
            call.run()

        self.socketio.start_background_task(_runner)
        return call


class Clock:
    """Repeating countdown timer bound to one lobby.

    Every interval ``on_tick(clock)`` is invoked; the receiver serializes the
    tick through its own lock and decides whether to stop. Once canceled the
    clock never fires again.
    """

    def __init__(self, scheduler, on_tick, interval=1.0):
        self.scheduler = scheduler
        self.on_tick = on_tick
        self.interval = interval
        self._lock = threading.Lock()
        self._pending = None
        self._cancelled = False
        self._started = False

    @property
    def cancelled(self):
        return self._cancelled

    def start(self):
        with self._lock:
            if self._started or self._cancelled:
                return
            self._started = True
            self._pending = self.scheduler.call_later(self.interval, self._fire)

    def cancel(self) -> bool:
        with self._lock:
            if self._cancelled:
                return False
            self._cancelled = True
            pending, self._pending = self._pending, None
        if pending is not None:
            pending.cancel()
        return True

    def _fire(self):
        if self._cancelled:
            return
        self.on_tick(self)
        with self._lock:
            if self._cancelled:
                return
            self._pending = self.scheduler.call_later(self.interval, self._fire)
