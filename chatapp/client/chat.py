import logging
from threading import RLock
from typing import Callable, Dict, List, Optional

from chatapp.client.auth import AuthContext, CLIENT_ERRORS

logger = logging.getLogger(__name__)

SOCKET_EVENTS = ("newMessage", "messageDeleted", "messagesDeleted")


class ChatContext:
    """
    Local mirror of the sidebar and the open conversation.

    Each call to select_user starts a new conversation sequence. REST responses
    and socket events are applied only if they still belong to the current
    sequence, so a slow fetch for a previous partner can not overwrite the
    conversation the user has moved on to.

    Socket handlers are registered whenever a socket connects, whether or not a
    conversation is open, so unseen counts keep growing on the sidebar.
    """

    def __init__(self, auth: AuthContext):
        self.auth = auth
        self.api = auth.api
        self.notifier = auth.notifier

        self.messages: List[dict] = []
        self.users: List[dict] = []
        self.selected_user: Optional[dict] = None
        self.unseen_messages: Dict[str, int] = {}

        self._sequence = 0
        self._lock = RLock()
        self._listeners: List[Callable[[], None]] = []

        # socket handlers run on the listener thread and get their own REST session
        self.event_api = None
        auth.add_socket_subscriber(self.subscribe_to_messages)

    @property
    def sequence(self) -> int:
        return self._sequence

    @property
    def selected_user_id(self) -> Optional[int]:
        return self.selected_user["_id"] if self.selected_user else None

    def add_listener(self, listener: Callable[[], None]):
        self._listeners.append(listener)

    def _changed(self):
        for listener in self._listeners:
            listener()

    def _is_current(self, sequence: int, user_id: Optional[int]) -> bool:
        return sequence == self._sequence and user_id == self.selected_user_id

    # -------------------------------
    # Sidebar
    # -------------------------------

    def get_users(self) -> bool:
        try:
            data = self.api.get_users()
        except CLIENT_ERRORS as e:
            self.notifier.error(str(e))
            return False

        if not data.get("success"):
            self.notifier.error(data.get("message", "Failed to load users"))
            return False

        with self._lock:
            self.users = data["users"]
            self.unseen_messages = dict(data.get("unseenMessages") or {})
            # the open conversation is read as it arrives
            if self.selected_user_id is not None:
                self.unseen_messages.pop(str(self.selected_user_id), None)
        self._changed()
        return True

    # -------------------------------
    # Conversation
    # -------------------------------

    def select_user(self, user: Optional[dict]) -> int:
        """Switch the open conversation and return its sequence number."""
        with self._lock:
            self._sequence += 1
            self.selected_user = user
            self.messages = []
            if user is not None:
                self.unseen_messages.pop(str(user["_id"]), None)
            sequence = self._sequence

        self.unsubscribe_from_messages()
        self.subscribe_to_messages()
        self._changed()
        return sequence

    def get_messages(self, user_id: Optional[int] = None) -> bool:
        with self._lock:
            sequence = self._sequence
            target = user_id if user_id is not None else self.selected_user_id
        if target is None:
            return False

        try:
            data = self.api.get_messages(target)
        except CLIENT_ERRORS as e:
            self.notifier.error(str(e))
            return False

        with self._lock:
            if not self._is_current(sequence, target):
                logger.debug("Discarding stale messages for user %s", target)
                return False
            if not data.get("success"):
                self.notifier.error(data.get("message", "Failed to load messages"))
                return False
            self.messages = data["messages"]
        self._changed()
        return True

    def send_message(self, message_data: dict) -> bool:
        with self._lock:
            sequence = self._sequence
            receiver_id = self.selected_user_id
        if receiver_id is None:
            return False

        try:
            data = self.api.send_message(receiver_id, message_data)
        except CLIENT_ERRORS as e:
            self.notifier.error(str(e))
            return False

        if not data.get("success"):
            self.notifier.error(data.get("message", "Failed to send message"))
            return False

        with self._lock:
            if self._is_current(sequence, receiver_id):
                self.messages.append(data["newMessage"])
        self._changed()
        return True

    def delete_all_messages(self) -> bool:
        with self._lock:
            sequence = self._sequence
            partner_id = self.selected_user_id
        if partner_id is None:
            return False

        try:
            data = self.api.delete_all_messages(partner_id)
        except CLIENT_ERRORS as e:
            self.notifier.error(str(e))
            return False

        if not data.get("success"):
            self.notifier.error(data.get("message") or "Failed to delete messages")
            return False

        with self._lock:
            if self._is_current(sequence, partner_id):
                self.messages = []
        self._changed()
        return True

    def delete_message_by_id(self, message_id: int) -> bool:
        auth_user = self.auth.auth_user
        if auth_user is None:
            return False
        receiver_id = self.selected_user_id

        try:
            data = self.api.delete_message(message_id, auth_user["_id"])
        except CLIENT_ERRORS as e:
            self.notifier.error(str(e))
            return False

        if not data.get("success"):
            self.notifier.error(data.get("message") or "Failed to delete message")
            return False

        with self._lock:
            self.messages = [msg for msg in self.messages if msg["_id"] != message_id]

        socket = self.auth.socket
        if socket is not None and receiver_id is not None:
            socket.emit("deleteMessage", {"messageId": message_id, "receiverId": receiver_id})
        self._changed()
        return True

    # -------------------------------
    # Socket events
    # -------------------------------

    def subscribe_to_messages(self, socket=None):
        socket = socket or self.auth.socket
        if socket is None:
            return
        if self.event_api is None or self.event_api.token != self.api.token:
            self.event_api = self.api.fork()
        socket.on("newMessage", self.handle_new_message)
        socket.on("messageDeleted", self.handle_message_deleted)
        socket.on("messagesDeleted", self.handle_messages_deleted)

    def unsubscribe_from_messages(self):
        socket = self.auth.socket
        if socket is None:
            return
        for event in SOCKET_EVENTS:
            socket.off(event)

    def handle_new_message(self, message: dict):
        sender_id = message.get("senderId")
        with self._lock:
            in_conversation = sender_id is not None and sender_id == self.selected_user_id
            if in_conversation:
                message["seen"] = True
                self.messages.append(message)
            else:
                key = str(sender_id)
                self.unseen_messages[key] = self.unseen_messages.get(key, 0) + 1

        if in_conversation:
            try:
                self.event_api.mark_seen(message["_id"])
            except CLIENT_ERRORS as e:
                self.notifier.error(str(e))
        self._changed()

    def handle_message_deleted(self, payload: dict):
        message_id = (payload or {}).get("messageId")
        with self._lock:
            self.messages = [msg for msg in self.messages if msg["_id"] != message_id]
        self._changed()

    def handle_messages_deleted(self, payload: dict):
        by = (payload or {}).get("by")
        with self._lock:
            if by is not None and by == self.selected_user_id:
                self.messages = []
            self.unseen_messages.pop(str(by), None)
        self._changed()
