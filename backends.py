"""Storage tiers behind the data store.

``RemoteBackend`` talks to the REST service over HTTP, ``LocalBackend`` keeps
a mirror of each collection in ``LocalStorage``. Both expose the same
operations so the data store can swap one for the other.
"""
import json
import logging
import os
import time
import uuid
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from errors import InvalidInputError, NotFoundError, RemoteUnavailable
from schemas import (
    ITEM_PROTECTED_FIELDS,
    USER_IDENTITY_FIELDS,
    Category,
    Item,
    ItemStatus,
    Message,
    User,
)

logger = logging.getLogger(__name__)

AUTH_TIMEOUT = 10.0

ITEMS_KEY = "aau_lf_items"
MESSAGES_KEY = "aau_lf_messages"
USERS_KEY = "aau_lf_users"
SESSION_KEY = "aau_lf_session"
INITIALIZED_KEY = "aau_lf_initialized"


def now_ms() -> int:
    return int(time.time() * 1000)


def to_wire(fields: Dict[str, Any]) -> Dict[str, Any]:
    """camelCase the keys of ``fields`` and unwrap enum values."""
    wire = {}
    for key, value in fields.items():
        if "_" in key.strip("_"):
            key = to_camel(key)
        if isinstance(value, Enum):
            value = value.value
        wire[key] = value
    return wire


class Backend(ABC):
    @abstractmethod
    def signup(self, fields: Dict[str, Any]) -> User:
        """Create the account, or return the one already registered under that email."""

    @abstractmethod
    def login(self, email: str) -> User:
        ...

    @abstractmethod
    def update_user(self, user_id: str, updates: Dict[str, Any]) -> User:
        ...

    @abstractmethod
    def list_users(self) -> List[User]:
        ...

    @abstractmethod
    def list_items(self, include_unverified: bool) -> List[Item]:
        ...

    @abstractmethod
    def create_item(self, fields: Dict[str, Any]) -> Item:
        ...

    @abstractmethod
    def update_item(self, item_id: str, updates: Dict[str, Any]) -> Item:
        ...

    @abstractmethod
    def delete_item(self, item_id: str) -> bool:
        ...

    @abstractmethod
    def list_messages(self, user_id: str) -> List[Message]:
        """Messages sent or received by ``user_id``, oldest first."""

    @abstractmethod
    def create_message(self, fields: Dict[str, Any]) -> Message:
        ...


# Remote tier

def _detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("error")
        if detail:
            return detail if isinstance(detail, str) else json.dumps(detail)
    return response.reason_phrase


class RemoteBackend(Backend):
    """Backend served by the REST API.

    Connection failures, timeouts and 5xx answers raise ``RemoteUnavailable``;
    404 raises ``NotFoundError`` and other 4xx raise ``InvalidInputError``.
    """

    def __init__(self, client: httpx.Client, auth_timeout: float = AUTH_TIMEOUT):
        self.client = client
        self.auth_timeout = auth_timeout

    @classmethod
    def from_url(cls, base_url: str, auth_timeout: float = AUTH_TIMEOUT) -> "RemoteBackend":
        # Only the auth flow is bounded; other calls wait as long as the transport does
        return cls(httpx.Client(base_url=base_url, timeout=None), auth_timeout=auth_timeout)

    def _request(self, method: str, path: str, timeout: Optional[float] = None, **kwargs) -> Any:
        if timeout is not None:
            kwargs["timeout"] = timeout
        try:
            response = self.client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise RemoteUnavailable(f"{method} {path} timed out", timed_out=True) from exc
        except httpx.HTTPError as exc:
            raise RemoteUnavailable(f"{method} {path} failed: {exc}") from exc

        if response.status_code >= 500:
            raise RemoteUnavailable(_detail(response), status_code=response.status_code)
        if response.status_code == 404:
            raise NotFoundError(_detail(response))
        if response.status_code >= 400:
            raise InvalidInputError(_detail(response))
        return response.json()

    def _auth(self, payload: Dict[str, Any]) -> User:
        return User.model_validate(self._request("POST", "/api/auth", json=payload, timeout=self.auth_timeout))

    def signup(self, fields):
        extra = {k: v for k, v in fields.items() if k not in ("name", "email")}
        return self._auth({"action": "signup", "email": fields["email"], "name": fields["name"], "updates": extra})

    def login(self, email):
        return self._auth({"action": "login", "email": email})

    def update_user(self, user_id, updates):
        data = self._request("POST", "/api/auth", json={"action": "update", "userId": user_id, "updates": updates})
        return User.model_validate(data)

    def list_users(self):
        return [User.model_validate(u) for u in self._request("GET", "/api/users")]

    def list_items(self, include_unverified):
        data = self._request("GET", "/api/items", params={"all": "true" if include_unverified else "false"})
        return [Item.model_validate(d) for d in data]

    def create_item(self, fields):
        return Item.model_validate(self._request("POST", "/api/items", json=fields))

    def update_item(self, item_id, updates):
        return Item.model_validate(self._request("PUT", "/api/items", json={**updates, "itemId": item_id}))

    def delete_item(self, item_id):
        self._request("DELETE", "/api/items", params={"itemId": item_id})
        return True

    def list_messages(self, user_id):
        return [Message.model_validate(m) for m in self._request("GET", "/api/messages", params={"userId": user_id})]

    def create_message(self, fields):
        return Message.model_validate(self._request("POST", "/api/messages", json=fields))


# Local tier

class LocalStorage:
    """String key/value store kept in one JSON file, or in memory when ``path`` is None.

    Every call re-reads the file, so two processes sharing a path simply
    overwrite each other.
    """

    def __init__(self, path: Optional[str] = None):
        self.path = path
        self._memory: Dict[str, str] = {}

    def _load(self) -> Dict[str, str]:
        if self.path is None:
            return self._memory
        if not os.path.exists(self.path):
            return {}
        with open(self.path, encoding="utf-8") as f:
            return json.load(f)

    def _dump(self, data: Dict[str, str]) -> None:
        if self.path is None:
            self._memory = data
            return
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f)

    def get_item(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._dump(data)

    def remove_item(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._dump(data)

    def get_json(self, key: str, default=None):
        raw = self.get_item(key)
        return default if raw is None else json.loads(raw)

    def set_json(self, key: str, value) -> None:
        self.set_item(key, json.dumps(value))


SEED_ITEMS = [
    {
        "title": "Black Lenovo Laptop Charger",
        "description": "Left on a desk near the second floor reading area.",
        "category": Category.ELECTRONICS.value,
        "location": "Main Library",
        "status": ItemStatus.FOUND.value,
        "posterId": "seed_user_1",
        "posterName": "Library Desk",
    },
    {
        "title": "Student ID Card",
        "description": "ID card in a blue holder, lost between the cafeteria and the main gate.",
        "category": Category.DOCUMENTS.value,
        "location": "Student Cafeteria",
        "status": ItemStatus.LOST.value,
        "posterId": "seed_user_2",
        "posterName": "Hanna T.",
    },
    {
        "title": "Brown Leather Wallet",
        "description": "Handed in at the sports complex reception after Saturday's match.",
        "category": Category.WALLETS.value,
        "location": "Sports Complex",
        "status": ItemStatus.FOUND.value,
        "posterId": "seed_user_3",
        "posterName": "Security Office",
    },
]


def new_id() -> str:
    return f"local_{uuid.uuid4().hex[:12]}"


class LocalBackend(Backend):
    """Backend kept in client-side storage, used when the remote tier is unreachable."""

    def __init__(self, storage: LocalStorage):
        self.storage = storage

    def _ensure_seeded(self) -> None:
        if self.storage.get_item(INITIALIZED_KEY) is not None:
            return
        created = now_ms()
        seeded = [
            {**doc, "id": new_id(), "createdAt": created - i * 3600 * 1000, "isVerified": True}
            for i, doc in enumerate(SEED_ITEMS)
        ]
        self.storage.set_json(ITEMS_KEY, seeded + self.storage.get_json(ITEMS_KEY, []))
        self.storage.set_item(INITIALIZED_KEY, "true")
        logger.info("Seeded local mirror with %d example items", len(seeded))

    def _items(self) -> List[Dict[str, Any]]:
        self._ensure_seeded()
        return self.storage.get_json(ITEMS_KEY, [])

    @staticmethod
    def _patch(docs: List[Dict[str, Any]], doc_id: str, updates: Dict[str, Any], label: str) -> Dict[str, Any]:
        for doc in docs:
            if doc.get("id") == doc_id:
                doc.update(updates)
                return doc
        raise NotFoundError(f"{label} not found")

    @staticmethod
    def _validated(model, doc: Dict[str, Any]):
        # Nothing reaches storage unless it parses
        try:
            return model.model_validate(doc)
        except ValidationError as e:
            raise InvalidInputError(f"Invalid {model.__name__.lower()} fields: {e.errors()[0]['msg']}")

    # Users

    def _find_user(self, email: str) -> Optional[Dict[str, Any]]:
        email = email.lower()
        for doc in self.storage.get_json(USERS_KEY, []):
            if doc.get("email") == email:
                return doc
        return None

    def signup(self, fields):
        existing = self._find_user(fields["email"])
        if existing:
            return User.model_validate(existing)
        user = self._validated(User, {**fields, "id": new_id(), "createdAt": now_ms()})
        users = self.storage.get_json(USERS_KEY, [])
        users.append(user.to_document())
        self.storage.set_json(USERS_KEY, users)
        return user

    def login(self, email):
        doc = self._find_user(email)
        if doc is None:
            raise NotFoundError("User account not found. Please sign up instead.")
        return User.model_validate(doc)

    def update_user(self, user_id, updates):
        updates = {k: v for k, v in updates.items() if k not in USER_IDENTITY_FIELDS}
        users = self.storage.get_json(USERS_KEY, [])
        user = self._validated(User, self._patch(users, user_id, updates, "User"))
        self.storage.set_json(USERS_KEY, users)
        return user

    def list_users(self):
        users = [User.model_validate(u) for u in self.storage.get_json(USERS_KEY, [])]
        return sorted(users, key=lambda u: u.created_at or 0, reverse=True)

    # Items

    def list_items(self, include_unverified):
        items = [Item.model_validate(d) for d in self._items()]
        if include_unverified:
            return items
        return [i for i in items if i.is_verified]

    def create_item(self, fields):
        item = self._validated(Item, {**fields, "id": new_id(), "createdAt": now_ms(), "isVerified": False})
        # Newest first
        self.storage.set_json(ITEMS_KEY, [item.to_document()] + self._items())
        return item

    def update_item(self, item_id, updates):
        updates = {k: v for k, v in updates.items() if k not in ITEM_PROTECTED_FIELDS}
        items = self._items()
        item = self._validated(Item, self._patch(items, item_id, updates, "Item"))
        self.storage.set_json(ITEMS_KEY, items)
        return item

    def delete_item(self, item_id):
        items = self._items()
        kept = [d for d in items if d.get("id") != item_id]
        if len(kept) == len(items):
            return False
        self.storage.set_json(ITEMS_KEY, kept)
        return True

    # Messages

    def list_messages(self, user_id):
        msgs = [
            Message.model_validate(m)
            for m in self.storage.get_json(MESSAGES_KEY, [])
            if m.get("senderId") == user_id or m.get("receiverId") == user_id
        ]
        return sorted(msgs, key=lambda m: m.timestamp)

    def create_message(self, fields):
        message = Message.model_validate({**fields, "id": new_id(), "timestamp": now_ms()})
        msgs = self.storage.get_json(MESSAGES_KEY, [])
        msgs.append(message.to_document())
        self.storage.set_json(MESSAGES_KEY, msgs)
        return message
