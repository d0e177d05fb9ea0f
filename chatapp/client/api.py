import os
from typing import Optional

import requests

# Base URL of the chat backend
BACKEND_URL = os.getenv("BACKEND_URL", "http://localhost:8000")


class ApiError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ChatApiClient:
    """
    Thin wrapper over the REST endpoints.

    Every call returns the decoded `{success, ...}` envelope. Transport
    failures surface as requests exceptions, and responses without an
    envelope (auth rejections, validation errors) as ApiError.
    """

    def __init__(self, base_url: str = BACKEND_URL, session: Optional[requests.Session] = None, timeout: float = 10):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout
        self.token: Optional[str] = None

    def set_token(self, token: Optional[str]):
        self.token = token
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"
        else:
            self.session.headers.pop("Authorization", None)

    def fork(self) -> "ChatApiClient":
        """Same backend and token on a fresh session, for calls made off the UI thread."""
        client = ChatApiClient(self.base_url, timeout=self.timeout)
        client.set_token(self.token)
        return client

    def socket_url(self, token: str) -> str:
        if self.base_url.startswith("https://"):
            root = "wss://" + self.base_url[len("https://"):]
        else:
            root = "ws://" + self.base_url.split("://", 1)[-1]
        return f"{root}/api/ws/chat?token={token}"

    def _request(self, method: str, path: str, **kwargs) -> dict:
        response = self.session.request(
            method, f"{self.base_url}{path}", timeout=self.timeout, **kwargs
        )
        try:
            data = response.json()
        except ValueError:
            raise ApiError(f"Unexpected response ({response.status_code})", response.status_code)

        if isinstance(data, dict) and "success" in data:
            return data

        detail = data.get("detail") if isinstance(data, dict) else None
        raise ApiError(str(detail or f"Request failed ({response.status_code})"), response.status_code)

    # -------------------------------
    # Authentication
    # -------------------------------

    def authenticate(self, state: str, credentials: dict) -> dict:
        """state is either "login" or "signup"."""
        return self._request("POST", f"/api/auth/{state}", json=credentials)

    def check_auth(self) -> dict:
        return self._request("GET", "/api/auth/check")

    def update_profile(self, body: dict) -> dict:
        return self._request("PUT", "/api/auth/update-profile", json=body)

    def delete_user(self, user_id: int) -> dict:
        return self._request("DELETE", f"/api/auth/delete/{user_id}")

    # -------------------------------
    # Messages
    # -------------------------------

    def get_users(self) -> dict:
        return self._request("GET", "/api/messages/users")

    def get_messages(self, user_id: int) -> dict:
        return self._request("GET", f"/api/messages/{user_id}")

    def mark_seen(self, message_id: int) -> dict:
        return self._request("PUT", f"/api/messages/mark/{message_id}")

    def send_message(self, user_id: int, message_data: dict) -> dict:
        return self._request("POST", f"/api/messages/send/{user_id}", json=message_data)

    def delete_all_messages(self, user_id: int) -> dict:
        return self._request("DELETE", f"/api/messages/delete-messages/{user_id}")

    def delete_message(self, message_id: int, user_id: int) -> dict:
        return self._request(
            "DELETE", f"/api/messages/delete-message/{message_id}", json={"userId": user_id}
        )
