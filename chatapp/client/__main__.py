import argparse
import getpass
import logging
from pathlib import Path

from chatapp.client.api import BACKEND_URL, ChatApiClient
from chatapp.client.auth import AuthContext, TokenStore
from chatapp.client.chat import ChatContext
from chatapp.client.ui import ChatContainer

TOKEN_PATH = Path.home() / ".chatapp" / "token"


def prompt_login(auth: AuthContext) -> bool:
    state = input("Login or sign up? [login/signup] ").strip().lower() or "login"
    if state not in ("login", "signup"):
        print("Please answer login or signup.")
        return False

    credentials = {"email": input("Email: ").strip()}
    if state == "signup":
        credentials["fullName"] = input("Full name: ").strip()
        credentials["bio"] = input("Bio (optional): ").strip() or None
    credentials["password"] = getpass.getpass("Password: ")

    return auth.login(state, credentials)


def main():
    parser = argparse.ArgumentParser(description="Console chat client")
    parser.add_argument("--backend-url", default=BACKEND_URL)
    parser.add_argument("--token-file", type=Path, default=TOKEN_PATH)
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.ERROR,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    auth = AuthContext(ChatApiClient(args.backend_url), token_store=TokenStore(args.token_file))
    chat = ChatContext(auth)
    container = ChatContainer(auth, chat)

    try:
        if not auth.check_auth():
            while not prompt_login(auth):
                container.show_notifications()
        container.run()
    except (KeyboardInterrupt, EOFError):
        pass
    finally:
        if auth.socket is not None:
            auth.socket.disconnect()


if __name__ == "__main__":
    main()
