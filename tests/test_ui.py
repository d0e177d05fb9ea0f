import time

import pytest

from chatapp.client.auth import AuthContext
from chatapp.client.chat import ChatContext
from chatapp.client.ui import ChatContainer, format_message_time, image_to_data_uri
from test_client_contexts import BOB, CAROL, ME, FakeApi, FakeSocket, message


class Console:
    def __init__(self, answers=()):
        self.answers = list(answers)
        self.lines = []

    def input(self, prompt):
        if not self.answers:
            raise EOFError
        return self.answers.pop(0)

    def output(self, line):
        self.lines.append(line)


@pytest.fixture(autouse=True)
def local_timezone(monkeypatch):
    """Render timestamps as if the machine ran on UTC, unless a test says otherwise."""
    def use(tz):
        monkeypatch.setenv("TZ", tz)
        time.tzset()

    use("UTC0")
    yield use
    monkeypatch.undo()
    time.tzset()


@pytest.fixture
def api():
    api = FakeApi()
    api.conversations = {2: [message(1, 1, 2, "hello bob", seen=True), message(2, 2, 1, "hey")]}
    return api


def build(api, answers=()):
    auth = AuthContext(api, socket_factory=FakeSocket)
    auth.login("login", {"email": "me@example.com", "password": "secret123"})
    auth.notifier.drain()
    chat = ChatContext(auth)
    console = Console(answers)
    container = ChatContainer(auth, chat, input_fn=console.input, output=console.output)
    return container, chat, console


def test_format_message_time():
    assert format_message_time("2026-10-19T09:05:41.123456") == "09:05"
    assert format_message_time("garbage") == "--:--"


def test_format_message_time_converts_utc_to_local(local_timezone):
    local_timezone("IST-5:30")

    assert format_message_time("2026-10-19T09:05:41.123456") == "14:35"
    assert format_message_time("2026-10-19T21:00:00+00:00") == "02:30"


def test_image_to_data_uri(tmp_path):
    image = tmp_path / "cat.png"
    image.write_bytes(b"\x89PNG")

    assert image_to_data_uri(image) == "data:image/png;base64,iVBORw=="


def test_sidebar_shows_presence_and_unseen_counts(api):
    container, chat, console = build(api)
    chat.get_users()
    container.auth.set_online_users([2])

    container.render()

    assert console.lines == [
        "-- Select a conversation --",
        " 1. [*] Bob (1)",
        " 2. [ ] Carol (4)",
    ]


def test_open_conversation_renders_messages(api):
    container, chat, console = build(api)
    chat.get_users()

    container.handle_input("/open 1")
    container.render()

    assert chat.selected_user == BOB
    assert console.lines == [
        "== Bob (offline) ==",
        "[12:30] #1 You: hello bob ✓",
        "[12:30] #2 Bob: hey",
    ]


def test_plain_text_is_sent(api):
    container, chat, _ = build(api)
    chat.get_users()
    container.handle_input("/open 1")

    container.handle_input("  how are you?  ")

    assert ("send_message", (2,)) in api.calls
    assert chat.messages[-1]["text"] == "how are you?"


def test_commands_need_an_open_conversation(api):
    container, _, _ = build(api)

    container.handle_input("just text")

    assert ("send_message", (2,)) not in api.calls
    assert container.auth.notifier.drain() == [("error", "Open a conversation first (/open <n>).")]


def test_cannot_delete_someone_elses_message(api):
    container, chat, _ = build(api)
    chat.get_users()
    container.handle_input("/open 1")

    container.handle_input("/delete 2")
    assert [m["_id"] for m in chat.messages] == [1, 2]
    assert container.auth.notifier.drain() == [("error", "You can only delete your own messages.")]

    container.handle_input("/delete 1")
    assert [m["_id"] for m in chat.messages] == [2]


def test_clear_asks_for_confirmation(api):
    container, chat, _ = build(api, answers=["n", "y"])
    chat.get_users()
    container.handle_input("/open 1")

    container.handle_input("/clear")
    assert len(chat.messages) == 2

    container.handle_input("/clear")
    assert chat.messages == []


def test_remove_user_returns_to_sidebar(api):
    container, chat, _ = build(api, answers=["yes"])
    chat.get_users()
    container.handle_input("/open 2")
    assert chat.selected_user == CAROL

    container.handle_input("/remove-user")

    assert ("delete_user", (3,)) in api.calls
    assert chat.selected_user is None


def test_run_loop_until_quit(api):
    container, chat, console = build(api, answers=["/open 1", "/quit", "never read"])

    container.run()

    assert chat.selected_user == BOB
    assert console.answers == ["never read"]
    assert any(line.startswith("Commands:") for line in console.lines)


def run_with_event(container, console, fire):
    """Run the loop, firing a socket event while it waits on the first prompt."""
    drawn = []

    def input_fn(prompt):
        if drawn:
            return "/quit"
        before = len(console.lines)
        fire()
        drawn.extend(console.lines[before:])
        return ""

    container.input_fn = input_fn
    container.run()
    return drawn


def test_incoming_message_is_drawn_while_waiting_for_input(api):
    container, chat, console = build(api)
    chat.get_users()
    container.handle_input("/open 1")

    drawn = run_with_event(
        container, console,
        lambda: chat.auth.socket.fire("newMessage", message(9, BOB["_id"], ME["_id"], "still there?")),
    )

    assert drawn == [
        "== Bob (offline) ==",
        "[12:30] #1 You: hello bob ✓",
        "[12:30] #2 Bob: hey",
        "[12:30] #9 Bob: still there?",
    ]


def test_unseen_badge_is_drawn_while_waiting_for_input(api):
    container, chat, console = build(api)

    drawn = run_with_event(
        container, console,
        lambda: chat.auth.socket.fire("newMessage", message(9, CAROL["_id"], ME["_id"])),
    )

    assert drawn == [
        "-- Select a conversation --",
        " 1. [ ] Bob (1)",
        " 2. [ ] Carol (5)",
    ]


def test_changes_outside_the_prompt_wait_for_next_render(api):
    container, chat, console = build(api)
    container.refresh_needed = False

    chat.get_users()

    assert container.refresh_needed is True
    assert console.lines == []
