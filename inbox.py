import logging
import threading
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from schemas import ADMIN_ID, Conversation, Item, Message

logger = logging.getLogger(__name__)

UNKNOWN_ITEM_TITLE = "Unknown Item"
GENERIC_USER_NAME = "Student"
ADMIN_DESK_NAME = "Admin Desk"
IMAGE_PREVIEW = "Sent an image"


def preview(message: Message) -> str:
    if not message.content and message.image:
        return IMAGE_PREVIEW
    return message.content


def counterpart_name(other_user_id: str, item: Optional[Item]) -> str:
    if other_user_id == ADMIN_ID:
        return ADMIN_DESK_NAME
    if item is not None and item.poster_id == other_user_id:
        return item.poster_name
    # No user directory is available to ordinary participants
    return GENERIC_USER_NAME


def build_conversations(user_id: str, messages: Iterable[Message], items: Iterable[Item]) -> List[Conversation]:
    """Group ``user_id``'s messages into one thread per (item, counterpart).

    Threads keep the messages in the order given; the list is sorted with
    the most recently active thread first.
    """
    catalog = {item.id: item for item in items}
    threads: Dict[Tuple[str, str], Conversation] = {}

    for msg in messages:
        if user_id not in (msg.sender_id, msg.receiver_id):
            continue
        other_user_id = msg.receiver_id if msg.sender_id == user_id else msg.sender_id
        key = (msg.item_id, other_user_id)

        conv = threads.get(key)
        if conv is None:
            item = catalog.get(msg.item_id)
            conv = threads[key] = Conversation(
                item_id=msg.item_id,
                other_user_id=other_user_id,
                other_user_name=counterpart_name(other_user_id, item),
                item_title=item.title if item else UNKNOWN_ITEM_TITLE,
                last_message=preview(msg),
                last_timestamp=msg.timestamp,
            )
        conv.messages.append(msg)
        if msg.timestamp > conv.last_timestamp:
            conv.last_message = preview(msg)
            conv.last_timestamp = msg.timestamp

    return sorted(threads.values(), key=lambda c: c.last_timestamp, reverse=True)


class InboxPoller:
    """Refresh a user's conversations every ``interval`` seconds.

    Each tick starts its own refresh thread, so a slow round trip does not
    delay the next one and refreshes may overlap.
    """

    def __init__(self, store, user_id: str, on_update: Callable[[List[Conversation]], None], interval: float = 5.0):
        self.store = store
        self.user_id = user_id
        self.on_update = on_update
        self.interval = interval
        self._stopped = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def refresh(self) -> List[Conversation]:
        served = self.store.get_conversations(self.user_id)
        self.on_update(served.value)
        return served.value

    def _safe_refresh(self) -> None:
        try:
            self.refresh()
        except Exception:
            logger.exception("Inbox refresh failed for %s", self.user_id)

    def _run(self) -> None:
        while not self._stopped.is_set():
            threading.Thread(target=self._safe_refresh, daemon=True).start()
            self._stopped.wait(self.interval)

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stopped.clear()
        self._thread = threading.Thread(target=self._run, name=f"inbox-{self.user_id}", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stopped.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
