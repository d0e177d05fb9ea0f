import logging
from pathlib import Path
from threading import Lock
from typing import Callable, List, Optional

import requests
from websockets.exceptions import WebSocketException

from chatapp.client.api import ApiError, ChatApiClient
from chatapp.client.connection import SocketConnection
from chatapp.client.notify import Notifier

logger = logging.getLogger(__name__)

CLIENT_ERRORS = (requests.RequestException, ApiError)


class TokenStore:
    """Keeps the auth token between runs."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Optional[str]:
        if not self.path.exists():
            return None
        token = self.path.read_text().strip()
        return token or None

    def save(self, token: str):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(token)

    def clear(self):
        if self.path.exists():
            self.path.unlink()


class AuthContext:
    def __init__(
        self,
        api: ChatApiClient,
        notifier: Optional[Notifier] = None,
        token_store: Optional[TokenStore] = None,
        socket_factory: Callable[[str], SocketConnection] = SocketConnection
    ):
        self.api = api
        self.notifier = notifier or Notifier()
        self.token_store = token_store
        self.socket_factory = socket_factory

        self.token = token_store.load() if token_store else None
        self.auth_user: Optional[dict] = None
        self.online_users: List[int] = []
        self.socket: Optional[SocketConnection] = None
        self._socket_subscribers: List[Callable[[SocketConnection], None]] = []
        self._lock = Lock()

        if self.token:
            self.api.set_token(self.token)

    def check_auth(self) -> bool:
        """Restore the session for a stored token."""
        if not self.token:
            return False
        try:
            data = self.api.check_auth()
        except CLIENT_ERRORS as e:
            self.notifier.error(str(e))
            return False

        if data.get("success"):
            self.auth_user = data["user"]
            self.connect_socket(self.auth_user)
            return True
        return False

    def login(self, state: str, credentials: dict) -> bool:
        try:
            data = self.api.authenticate(state, credentials)
        except CLIENT_ERRORS as e:
            self.notifier.error(str(e))
            return False

        if not data.get("success"):
            self.notifier.error(data.get("message", "Authentication failed"))
            return False

        self.auth_user = data["userData"]
        self.token = data["token"]
        self.api.set_token(self.token)
        if self.token_store:
            self.token_store.save(self.token)
        self.connect_socket(self.auth_user)
        self.notifier.success(data.get("message", "Logged in"))
        return True

    def logout(self):
        if self.token_store:
            self.token_store.clear()
        self.token = None
        self.auth_user = None
        with self._lock:
            self.online_users = []
        self.api.set_token(None)
        if self.socket is not None:
            self.socket.disconnect()
            self.socket = None
        self.notifier.success("Logged out successfully")

    def update_profile(self, body: dict) -> bool:
        try:
            data = self.api.update_profile(body)
        except CLIENT_ERRORS as e:
            self.notifier.error(str(e))
            return False

        if data.get("success"):
            self.auth_user = data["user"]
            self.notifier.success("Profile updated successfully")
            return True
        self.notifier.error(data.get("message", "Profile update failed"))
        return False

    def delete_user(self, user_id: int) -> bool:
        try:
            data = self.api.delete_user(user_id)
        except CLIENT_ERRORS as e:
            self.notifier.error(str(e))
            return False

        if data.get("success"):
            self.notifier.success("User deleted successfully")
            return True
        self.notifier.error(data.get("message", "Failed to delete user"))
        return False

    def connect_socket(self, user: Optional[dict]):
        if not user or not self.token:
            return
        if self.socket is not None and self.socket.connected:
            return

        socket = self.socket_factory(self.api.socket_url(self.token))
        # registered before connecting so the initial presence broadcast is not missed
        socket.on("getOnlineUsers", self.set_online_users)
        for subscriber in self._socket_subscribers:
            subscriber(socket)
        try:
            socket.connect()
        except (OSError, WebSocketException) as e:
            self.notifier.error(f"Realtime connection failed: {e}")
            return
        self.socket = socket

    def add_socket_subscriber(self, subscriber: Callable[[SocketConnection], None]):
        """Run subscriber against the live socket now and on every later connect."""
        self._socket_subscribers.append(subscriber)
        if self.socket is not None:
            subscriber(self.socket)

    def set_online_users(self, user_ids):
        with self._lock:
            self.online_users = list(user_ids or [])

    def is_online(self, user_id: int) -> bool:
        with self._lock:
            return user_id in self.online_users
