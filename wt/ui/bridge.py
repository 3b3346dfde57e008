"""Hands work between threads and the Qt GUI thread.

Network calls run on ``QThreadPool`` workers; their results, store change
notifications and Socket.IO events all come back as queued Qt signals so
widgets are only ever touched on the GUI thread.
"""

from PySide6.QtCore import QObject, QRunnable, QThreadPool, Signal, Slot
from wt.common.logger import log
from wt.util import Listeners


class _TaskSignals(QObject):
    finished = Signal(object)
    failed = Signal(object)


class _Task(QRunnable):

    def __init__(self, fn, args, kwargs):
        super().__init__()
        self.fn = fn
        self.args = args
        self.kwargs = kwargs
        self.signals = _TaskSignals()

    def run(self):
        try:
            result = self.fn(*self.args, **self.kwargs)
        except Exception as e:
            # Worker boundary: the error is reported back to the GUI thread instead of dying silently in the pool
            log.exception(f"Background task {getattr(self.fn, '__name__', self.fn)} failed")
            self.signals.failed.emit(e)
            return
        self.signals.finished.emit(result)


class QtBridge(QObject):

    time_entry_event = Signal(object)
    store_changed = Signal(str)
    socket_state_changed = Signal(bool)
    logged_out = Signal()

    def __init__(self, parent=None):
        super().__init__(parent)
        self._pool = QThreadPool.globalInstance()
        self._tasks = {}         # _TaskSignals -> (task, on_done, on_error)
        self._event_listeners = Listeners()
        self.time_entry_event.connect(self._deliver_event)

    # ------------------------------------------------------------------ #
    #  Push events                                                         #
    # ------------------------------------------------------------------ #

    # Re-emits the socket's events (delivered on the socketio thread) through a queued signal.
    def attach_socket(self, socket):
        socket.subscribe(self.time_entry_event.emit)
        socket.subscribe_connection(self.socket_state_changed.emit)

    # Same shape as SocketService.subscribe, but callbacks run on the GUI thread.
    def subscribe(self, callback):
        return self._event_listeners.subscribe(callback)

    @Slot(object)
    def _deliver_event(self, event):
        self._event_listeners.notify(event)

    # ------------------------------------------------------------------ #
    #  Stores                                                              #
    # ------------------------------------------------------------------ #

    # Forwards a store's change notifications as store_changed(name), from whatever thread the store changed on.
    def watch(self, store, name):
        return store.subscribe(lambda: self.store_changed.emit(name))

    # ------------------------------------------------------------------ #
    #  Background work                                                     #
    # ------------------------------------------------------------------ #

    # Runs fn(*args, **kwargs) on the pool. on_done(result) or on_error(exception) is called back on the GUI thread.
    def run_in_background(self, fn, *args, on_done=None, on_error=None, **kwargs):
        task = _Task(fn, args, kwargs)
        self._tasks[task.signals] = (task, on_done, on_error)
        task.signals.finished.connect(self._task_finished)
        task.signals.failed.connect(self._task_failed)
        self._pool.start(task)
        return task

    @Slot(object)
    def _task_finished(self, result):
        _, on_done, _ = self._tasks.pop(self.sender(), (None, None, None))
        if on_done is not None:
            on_done(result)

    @Slot(object)
    def _task_failed(self, error):
        _, _, on_error = self._tasks.pop(self.sender(), (None, None, None))
        if on_error is not None:
            on_error(error)

    # Fire-and-forget form used by the stores for follow-up work.
    def background(self, fn):
        self.run_in_background(fn)

    def wait_for_done(self, msecs=3000):
        return self._pool.waitForDone(msecs)
