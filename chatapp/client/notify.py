import logging
from collections import deque
from threading import Lock
from typing import List, Tuple

logger = logging.getLogger(__name__)


class Notifier:
    """Transient notifications shown by the UI on its next render."""

    def __init__(self, maxlen: int = 20):
        self._pending = deque(maxlen=maxlen)
        self._lock = Lock()

    def success(self, message: str):
        logger.info(message)
        self._push("success", message)

    def error(self, message: str):
        logger.warning(message)
        self._push("error", message)

    def _push(self, level: str, message: str):
        with self._lock:
            self._pending.append((level, message))

    def drain(self) -> List[Tuple[str, str]]:
        with self._lock:
            items = list(self._pending)
            self._pending.clear()
        return items
