"""Socket.IO push channel for time entry events.

The server emits ``timeEntry:started`` and ``timeEntry:ended`` with the entry
document as payload whenever the user's timer changes on any device.  Handlers
run on the socketio client's own thread; subscribers that touch the UI must
marshal onto the GUI thread themselves (see ``wt.ui.bridge``).
"""

import socketio
from socketio.exceptions import ConnectionError as SocketConnectionError, SocketIOError
from wt.common.logger import log
from wt.core.models import TimeEntryEvent, TimeEntryEventType
from wt.util import Listeners

EVENT_STARTED = "timeEntry:started"
EVENT_ENDED = "timeEntry:ended"


class SocketService:

    def __init__(self, url, client_factory=None):
        self.url = url
        self._client_factory = client_factory or (lambda: socketio.Client(reconnection=True, logger=False))
        self._client = None
        self._token = None
        self._subscribers = Listeners()
        self._connection_listeners = Listeners()

    # ------------------------------------------------------------------ #
    #  Subscriptions                                                       #
    # ------------------------------------------------------------------ #

    # `callback(event)` for every parsed TimeEntryEvent. Returns an unsubscribe callable.
    def subscribe(self, callback):
        return self._subscribers.subscribe(callback)

    # `callback(connected)` whenever the connection goes up or down.
    def subscribe_connection(self, callback):
        return self._connection_listeners.subscribe(callback)

    @property
    def is_connected(self):
        return self._client is not None and self._client.connected

    # ------------------------------------------------------------------ #
    #  Connection                                                          #
    # ------------------------------------------------------------------ #

    def _build_client(self):
        client = self._client_factory()
        client.on("connect", self._on_connect)
        client.on("disconnect", self._on_disconnect)
        client.on("connect_error", self._on_connect_error)
        client.on(EVENT_STARTED, self._on_started)
        client.on(EVENT_ENDED, self._on_ended)
        return client

    # Opens the connection authenticated with the given access token. Raises socketio's ConnectionError on failure.
    def connect(self, token):
        if self.is_connected and token == self._token:
            log.debug("Socket already connected")
            return
        if self._client is not None:
            self.disconnect()

        self._token = token
        self._client = self._build_client()
        log.info(f"Connecting to socket server at {self.url}")
        self._client.connect(self.url, auth={"token": token}, transports=["websocket"], wait_timeout=10)

    # Drops the current connection and opens a new one with a refreshed token.
    def reconnect(self, token):
        log.info("Reconnecting socket with refreshed token")
        self.disconnect()
        try:
            self.connect(token)
        except SocketConnectionError as e:
            log.warning(f"Socket reconnect failed: {e}")

    def disconnect(self):
        client, self._client = self._client, None
        if client is None:
            return
        try:
            client.disconnect()
        except SocketIOError as e:
            log.warning(f"Error while disconnecting socket: {e}")
        log.info("Socket disconnected")

    # ------------------------------------------------------------------ #
    #  Handlers                                                            #
    # ------------------------------------------------------------------ #

    def _on_connect(self):
        log.info("Socket connected")
        self._connection_listeners.notify(True)

    def _on_disconnect(self, *args):
        log.info("Socket connection lost")
        self._connection_listeners.notify(False)

    def _on_connect_error(self, data=None):
        log.warning(f"Socket connection error: {data}")

    def _on_started(self, payload):
        self._dispatch(TimeEntryEventType.STARTED, payload)

    def _on_ended(self, payload):
        self._dispatch(TimeEntryEventType.ENDED, payload)

    def _dispatch(self, event_type, payload):
        if not isinstance(payload, dict):
            log.warning(f"Ignoring {event_type.value} event with non-object payload: {payload!r}")
            return
        try:
            event = TimeEntryEvent.from_payload(event_type, payload)
        except (TypeError, ValueError):
            log.warning(f"Could not parse {event_type.value} event payload", exc_info=True)
            return
        log.info(f"Socket event received: {event}")
        self._subscribers.notify(event)
