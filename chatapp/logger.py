import logging

from chatapp.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = settings.LOG_LEVEL) -> None:
    root = logging.getLogger("chatapp")
    root.setLevel(level)

    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)

    # uvicorn access lines already cover request logging
    logging.getLogger("websockets").setLevel(logging.WARNING)
