"""Client-side data store for the lost & found app.

``DataStore`` asks the primary (remote) tier first and answers from the
local mirror whenever the remote tier is unreachable. Every call returns a
``Served`` tuple naming the tier that produced the value, so callers and
tests can tell a degraded answer from a live one.

Reads degrade silently. Validation and not-found errors always reach the
caller. Sign-up and login never degrade: when a remote tier is configured,
an account is only created or looked up there, and any failure to reach it
is reported. A store built without a remote tier authenticates locally.
"""
import logging
import os
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional

from backends import (
    AUTH_TIMEOUT,
    SESSION_KEY,
    Backend,
    LocalBackend,
    LocalStorage,
    RemoteBackend,
    to_wire,
)
from errors import AuthTimeoutError, InvalidInputError, NotFoundError, RemoteUnavailable, ServiceUnavailableError
from inbox import build_conversations
from schemas import ITEM_PROTECTED_FIELDS, USER_IDENTITY_FIELDS, Conversation, Item, ItemStatus, User

logger = logging.getLogger(__name__)

API_URL = os.getenv("LOSTFOUND_API_URL", "http://localhost:8000")
STORE_PATH = os.getenv("LOSTFOUND_STORE_PATH")


class Tier(str, Enum):
    REMOTE = "remote"
    LOCAL = "local"


class Served(NamedTuple):
    value: Any
    tier: Tier
    error: Optional[RemoteUnavailable] = None

    @property
    def degraded(self) -> bool:
        """True when the remote tier failed and the local mirror answered."""
        return self.error is not None


class Session:
    """The signed-in user, mirrored into local storage."""

    def __init__(self, storage: LocalStorage):
        self.storage = storage

    def get(self) -> Optional[User]:
        doc = self.storage.get_json(SESSION_KEY)
        return User.model_validate(doc) if doc else None

    def set(self, user: Optional[User]) -> None:
        if user is None:
            self.clear()
        else:
            self.storage.set_json(SESSION_KEY, user.to_document())

    def clear(self) -> None:
        self.storage.remove_item(SESSION_KEY)


def visible_items(items: List[Item]) -> List[Item]:
    return [i for i in items if i.is_verified]


class DataStore:
    def __init__(self, primary: Optional[Backend], fallback: LocalBackend, session: Session):
        self.primary = primary
        self.fallback = fallback
        self.session = session

    @classmethod
    def from_env(cls) -> "DataStore":
        storage = LocalStorage(STORE_PATH)
        return cls(RemoteBackend.from_url(API_URL), LocalBackend(storage), Session(storage))

    # Tier selection

    def _serve(self, op: str, *args, auth: bool = False) -> Served:
        if self.primary is None:
            return Served(getattr(self.fallback, op)(*args), Tier.LOCAL)
        try:
            return Served(getattr(self.primary, op)(*args), Tier.REMOTE)
        except RemoteUnavailable as exc:
            if auth and exc.timed_out:
                raise AuthTimeoutError(getattr(self.primary, "auth_timeout", AUTH_TIMEOUT)) from exc
            if auth and exc.status_code is not None:
                raise ServiceUnavailableError(f"Authentication service unavailable: {exc}") from exc
            if auth:
                raise ServiceUnavailableError("Network error: Is the server running?") from exc
            logger.warning("Remote %s unavailable, answering from local mirror: %s", op, exc)
            return Served(getattr(self.fallback, op)(*args), Tier.LOCAL, exc)

    def _serve_either(self, op: str, *args) -> Served:
        """Like ``_serve`` but a remote not-found is retried against the local mirror."""
        try:
            return self._serve(op, *args)
        except NotFoundError:
            if self.primary is None:
                raise
            return Served(getattr(self.fallback, op)(*args), Tier.LOCAL)

    # Session

    def get_current_user(self) -> Optional[User]:
        return self.session.get()

    def set_current_user(self, user: Optional[User]) -> None:
        self.session.set(user)

    def logout(self) -> None:
        self.session.clear()

    # Users

    def signup(self, name: str, email: str, **profile) -> Served:
        """Register ``email``; an already-registered email returns the existing account."""
        name = (name or "").strip()
        email = (email or "").strip().lower()
        if not email:
            raise InvalidInputError("Email address is required.")
        if not name:
            raise InvalidInputError("Please enter your full name.")
        fields = {k: v for k, v in to_wire(profile).items() if k not in USER_IDENTITY_FIELDS}
        fields.update(name=name, email=email)
        served = self._serve("signup", fields, auth=True)
        self.session.set(served.value)
        return served

    def login(self, email: str) -> Served:
        email = (email or "").strip().lower()
        if not email:
            raise InvalidInputError("Email address is required.")
        served = self._serve("login", email, auth=True)
        self.session.set(served.value)
        return served

    def update_user(self, user_id: str, fields: Dict[str, Any]) -> Served:
        updates = {k: v for k, v in to_wire(fields).items() if k not in USER_IDENTITY_FIELDS}
        served = self._serve_either("update_user", user_id, updates)
        current = self.session.get()
        if current is not None and current.id == user_id:
            self.session.set(served.value)
        return served

    def get_users(self) -> Served:
        return self._serve("list_users")

    # Items

    def get_items(self, include_unverified: bool = False) -> Served:
        served = self._serve("list_items", include_unverified)
        if include_unverified:
            return served
        return served._replace(value=visible_items(served.value))

    def save_item(self, fields: Dict[str, Any]) -> Served:
        fields = {k: v for k, v in to_wire(fields).items() if k not in ITEM_PROTECTED_FIELDS}
        for required in ("title", "description"):
            if not str(fields.get(required) or "").strip():
                raise InvalidInputError(f"Item {required} is required.")
        if not fields.get("posterId") or not fields.get("posterName"):
            raise InvalidInputError("Sign in before posting a report.")
        fields["isVerified"] = False
        return self._serve("create_item", fields)

    def update_item(self, item_id: str, fields: Dict[str, Any]) -> Served:
        updates = {k: v for k, v in to_wire(fields).items() if k not in ITEM_PROTECTED_FIELDS}
        return self._serve_either("update_item", item_id, updates)

    def update_item_status(self, item_id: str, status: ItemStatus) -> Served:
        return self.update_item(item_id, {"status": ItemStatus(status)})

    def verify_item(self, item_id: str, verified: bool = True) -> Served:
        return self.update_item(item_id, {"is_verified": verified})

    def delete_item(self, item_id: str) -> Served:
        """Delete remotely when possible; the local copy is purged either way."""
        removed_remote = False
        error = None
        if self.primary is not None:
            try:
                removed_remote = self.primary.delete_item(item_id)
            except NotFoundError:
                pass
            except RemoteUnavailable as exc:
                logger.warning("Remote delete_item unavailable, purging local mirror only: %s", exc)
                error = exc
        removed_local = self.fallback.delete_item(item_id)
        if not removed_remote and not removed_local and error is None:
            raise NotFoundError("Item not found")
        return Served(removed_remote or removed_local, Tier.REMOTE if removed_remote else Tier.LOCAL, error)

    # Messages

    def send_message(
        self,
        sender_id: str,
        receiver_id: str,
        item_id: str,
        content: str = "",
        image: Optional[str] = None,
    ) -> Served:
        if not sender_id or not receiver_id or not item_id:
            raise InvalidInputError("Sender, receiver and item are required.")
        content = (content or "").strip()
        if not content and not image:
            raise InvalidInputError("Write a message or attach an image.")
        fields = {"senderId": sender_id, "receiverId": receiver_id, "itemId": item_id, "content": content}
        if image:
            fields["image"] = image
        return self._serve("create_message", fields)

    def get_messages(self, user_id: str) -> Served:
        return self._serve("list_messages", user_id)

    def get_messages_for_item(self, user_id: str, item_id: str) -> Served:
        served = self.get_messages(user_id)
        return served._replace(value=[m for m in served.value if m.item_id == item_id])

    def get_conversations(self, user_id: str) -> Served:
        items = self.get_items(include_unverified=True)
        messages = self.get_messages(user_id)
        conversations: List[Conversation] = build_conversations(user_id, messages.value, items.value)
        tier = Tier.LOCAL if Tier.LOCAL in (items.tier, messages.tier) else Tier.REMOTE
        return Served(conversations, tier, messages.error or items.error)
