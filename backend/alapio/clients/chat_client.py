# alapio/clients/chat_client.py

import random
import uuid
from typing import Optional

import requests

# =========================
# CONFIGURATION
# =========================

SERVER_URL = "http://127.0.0.1:3000"
AVATAR_URL = "https://api.dicebear.com/7.x/avataaars/svg?seed={seed}"
REQUEST_TIMEOUT = 30  # seconds; history can carry inline attachments

# =========================
# LOGIN HELPERS
# =========================

def avatar_for(seed: str) -> str:
    return AVATAR_URL.format(seed=seed)


def direct_login_user(phone_number: str, country_code: str = "+880") -> dict:
    """Identity for the unauthenticated direct-login fallback (no SMS)."""
    return {
        "id": f"user-{phone_number}",
        "username": f"{country_code} {phone_number}",
        "avatar": avatar_for(phone_number),
    }


def verified_user(uid: str, phone_number: Optional[str] = None) -> dict:
    """Identity after the auth provider confirmed the OTP."""
    return {
        "id": uid,
        "username": phone_number or "User",
        "avatar": avatar_for(uid),
    }


def demo_user() -> dict:
    suffix = uuid.uuid4().hex[:9]
    return {
        "id": f"demo-{suffix}",
        "username": f"Demo User {random.randint(0, 999)}",
        "avatar": avatar_for(f"demo-{suffix}"),
    }


def new_message_id() -> str:
    return uuid.uuid4().hex


def message_type_for(mime_type: Optional[str]) -> str:
    """Message type for an attachment, from its MIME type."""
    mime_type = (mime_type or "").lower()
    for prefix in ("image", "video", "audio"):
        if mime_type.startswith(prefix + "/"):
            return prefix
    return "document"

# =========================
# HTTP CLIENT
# =========================

class AlapioClient:
    """Directory and history endpoints. Realtime traffic goes over /ws."""

    def __init__(self, base_url: str = SERVER_URL, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _get(self, path: str):
        resp = self.session.get(self._url(path), timeout=REQUEST_TIMEOUT)
        resp.raise_for_status()
        return resp.json()

    def health(self) -> bool:
        return self._get("/health").get("status") == "ok"

    def login(self, user: dict) -> dict:
        """Upsert the user returned by the auth step."""
        resp = self.session.post(
            self._url("/users"),
            json={"id": user["id"], "username": user["username"], "avatar": user.get("avatar", "")},
            timeout=REQUEST_TIMEOUT,
        )
        resp.raise_for_status()
        return user

    def list_users(self, exclude: Optional[str] = None) -> list:
        users = self._get("/users")
        if exclude is not None:
            users = [u for u in users if u["id"] != exclude]
        return users

    def online_users(self) -> list:
        return self._get("/users/online")["online"]

    def conversation(self, user_a: str, user_b: str) -> list:
        return self._get(f"/messages/{user_a}/{user_b}")

    def realtime_url(self) -> str:
        scheme, rest = self.base_url.split("://", 1)
        return f"{'wss' if scheme == 'https' else 'ws'}://{rest}/ws"
