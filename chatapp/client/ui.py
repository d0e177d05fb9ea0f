import base64
import mimetypes
from datetime import datetime, timezone
from pathlib import Path
from threading import RLock
from typing import Callable, List, Optional

from chatapp.client.auth import AuthContext
from chatapp.client.chat import ChatContext

HELP = (
    "Commands: /users, /open <n>, /image <path>, /delete <id>, /clear, "
    "/remove-user, /help, /quit. Anything else is sent as text."
)


def format_message_time(created_at: str) -> str:
    """HH:MM in local time; naive timestamps from the backend are UTC."""
    try:
        moment = datetime.fromisoformat(created_at)
    except (TypeError, ValueError):
        return "--:--"
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone().strftime("%H:%M")


def image_to_data_uri(path: Path) -> str:
    mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    encoded = base64.b64encode(path.read_bytes()).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


class ChatContainer:
    """Console chat window wired to the auth and chat contexts."""

    def __init__(
        self,
        auth: AuthContext,
        chat: ChatContext,
        input_fn: Callable[[str], str] = input,
        output: Callable[[str], None] = print
    ):
        self.auth = auth
        self.chat = chat
        self.input_fn = input_fn
        self.output = output
        self.refresh_needed = True
        self.waiting_for_input = False
        # shared by the input loop and the socket listener thread
        self._render_lock = RLock()
        chat.add_listener(self.mark_dirty)

    def mark_dirty(self):
        """Redraw now if the loop is parked on input, otherwise before the next prompt."""
        with self._render_lock:
            if self.waiting_for_input:
                self.render()
            else:
                self.refresh_needed = True

    # -------------------------------
    # Rendering
    # -------------------------------

    def sidebar_lines(self) -> List[str]:
        lines = []
        for index, user in enumerate(self.chat.users, start=1):
            marker = "*" if self.auth.is_online(user["_id"]) else " "
            unseen = self.chat.unseen_messages.get(str(user["_id"]), 0)
            badge = f" ({unseen})" if unseen else ""
            lines.append(f"{index:>2}. [{marker}] {user['fullName']}{badge}")
        return lines or ["No other users yet."]

    def message_lines(self) -> List[str]:
        me = self.auth.auth_user["_id"] if self.auth.auth_user else None
        partner = self.chat.selected_user or {}
        lines = []
        for msg in self.chat.messages:
            author = "You" if msg["senderId"] == me else partner.get("fullName", "?")
            body = msg.get("text") or ""
            if msg.get("image"):
                body = f"{body} [image] {msg['image']}".strip()
            seen = " ✓" if msg["senderId"] == me and msg.get("seen") else ""
            lines.append(f"[{format_message_time(msg['createdAt'])}] #{msg['_id']} {author}: {body}{seen}")
        return lines

    def show_notifications(self):
        for level, message in self.auth.notifier.drain():
            self.output(f"{'!' if level == 'error' else '+'} {message}")

    def render(self):
        with self._render_lock:
            self.show_notifications()

            partner = self.chat.selected_user
            if partner is None:
                self.output("-- Select a conversation --")
                for line in self.sidebar_lines():
                    self.output(line)
                return

            status = "online" if self.auth.is_online(partner["_id"]) else "offline"
            self.output(f"== {partner['fullName']} ({status}) ==")
            for line in self.message_lines():
                self.output(line)

    # -------------------------------
    # Input
    # -------------------------------

    def confirm(self, question: str) -> bool:
        return self.input_fn(f"{question} [y/N] ").strip().lower() in ("y", "yes")

    def open_conversation(self, number: str):
        try:
            user = self.chat.users[int(number) - 1]
        except (ValueError, IndexError):
            self.auth.notifier.error(f"No user #{number}")
            return
        self.chat.select_user(user)
        self.chat.get_messages(user["_id"])

    def delete_message(self, raw_id: str):
        try:
            message_id = int(raw_id)
        except ValueError:
            self.auth.notifier.error(f"Invalid message id: {raw_id}")
            return

        me = self.auth.auth_user["_id"] if self.auth.auth_user else None
        message = next((msg for msg in self.chat.messages if msg["_id"] == message_id), None)
        if message is None or message["senderId"] != me:
            self.auth.notifier.error("You can only delete your own messages.")
            return
        self.chat.delete_message_by_id(message_id)

    def send_image(self, raw_path: str):
        path = Path(raw_path).expanduser()
        if not path.is_file():
            self.auth.notifier.error(f"No such file: {raw_path}")
            return
        self.chat.send_message({"image": image_to_data_uri(path)})

    def handle_input(self, line: str) -> bool:
        """Apply one line of input; returns False once the user quits."""
        line = line.strip()
        if not line:
            return True

        command, _, argument = line.partition(" ")
        argument = argument.strip()

        if command == "/quit":
            return False
        elif command == "/help":
            self.output(HELP)
        elif command == "/users":
            self.chat.select_user(None)
            self.chat.get_users()
        elif command == "/open":
            self.open_conversation(argument)
        elif self.chat.selected_user is None:
            self.auth.notifier.error("Open a conversation first (/open <n>).")
        elif command == "/image":
            self.send_image(argument)
        elif command == "/delete":
            self.delete_message(argument)
        elif command == "/clear":
            if self.confirm("This will delete all messages with this user. Continue?"):
                self.chat.delete_all_messages()
        elif command == "/remove-user":
            if self.confirm("Delete this user? You won't be able to revert this!"):
                if self.auth.delete_user(self.chat.selected_user_id):
                    self.chat.select_user(None)
                    self.chat.get_users()
        elif command.startswith("/"):
            self.auth.notifier.error(f"Unknown command: {command}")
        else:
            self.chat.send_message({"text": line})
        return True

    def run(self, prompt: Optional[str] = "> "):
        self.chat.get_users()
        self.output(HELP)
        while True:
            with self._render_lock:
                if self.refresh_needed:
                    self.refresh_needed = False
                    self.render()
                else:
                    self.show_notifications()
                self.waiting_for_input = True
            try:
                line = self.input_fn(prompt)
            except EOFError:
                break
            finally:
                with self._render_lock:
                    self.waiting_for_input = False
            if not self.handle_input(line):
                break
