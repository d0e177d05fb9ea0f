import json
import logging
from threading import Thread, Lock
from typing import Any, Callable, Dict, Optional

from websockets.exceptions import ConnectionClosed
from websockets.sync.client import connect

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]


class SocketConnection:
    """
    Client side of the push channel.

    Frames from the server look like {"type": event, "data": payload} and are
    dispatched to the handler registered for that event on a listener thread.
    """

    def __init__(self, url: str):
        self.url = url
        self._handlers: Dict[str, Handler] = {}
        self._lock = Lock()
        self._ws = None
        self._thread: Optional[Thread] = None
        self.connected = False

    def on(self, event: str, handler: Handler):
        with self._lock:
            self._handlers[event] = handler

    def off(self, event: str):
        with self._lock:
            self._handlers.pop(event, None)

    def connect(self):
        if self.connected:
            return
        self._ws = connect(self.url)
        self.connected = True
        self._thread = Thread(target=self._listen, name="chat-socket", daemon=True)
        self._thread.start()

    def emit(self, action: str, data: Any = None) -> bool:
        if not self.connected or self._ws is None:
            return False
        try:
            self._ws.send(json.dumps({"action": action, "data": data or {}}))
            return True
        except ConnectionClosed:
            self.connected = False
            return False

    def disconnect(self):
        self.connected = False
        if self._ws is not None:
            self._ws.close()

    def dispatch(self, raw: str):
        try:
            frame = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring malformed frame: %r", raw)
            return

        event = frame.get("type")
        with self._lock:
            handler = self._handlers.get(event)
        if handler is None:
            logger.debug("No handler for %s", event)
            return
        handler(frame.get("data"))

    def _listen(self):
        try:
            for raw in self._ws:
                try:
                    self.dispatch(raw)
                except Exception:
                    logger.exception("Socket handler failed")
        except ConnectionClosed as e:
            logger.info("Socket closed: %s", e)
        finally:
            self.connected = False
