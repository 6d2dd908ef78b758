"""Feed browsing and admin moderation views over a list of items."""
from typing import Dict, Iterable, List, Optional

from schemas import Item, ItemStatus

ALL = "ALL"
ADMIN_TABS = ("pending", "all", "resolved")


def _matches(text: str, needle: str) -> bool:
    return needle in (text or "").lower()


def _wanted_status(status) -> Optional[str]:
    # Case-insensitive; an unknown value selects nothing
    if status is None:
        return None
    value = str(getattr(status, "value", status)).strip().upper()
    return None if value in ("", ALL) else value


def filter_feed(
    items: Iterable[Item],
    search: str = "",
    status: Optional[str] = None,
    location: Optional[str] = None,
    poster_id: Optional[str] = None,
) -> List[Item]:
    """Public feed filter; ``None`` or ``"ALL"`` disables a criterion, ``poster_id`` selects "my posts".

    ``status`` matches case-insensitively, so ``"lost"`` and ``ItemStatus.LOST``
    are equivalent. A status that names no ``ItemStatus`` matches no items.
    """
    needle = (search or "").strip().lower()
    wanted = _wanted_status(status)
    result = []
    for item in items:
        if needle and not (_matches(item.title, needle) or _matches(item.description, needle)):
            continue
        if wanted is not None and item.status.value != wanted:
            continue
        if location not in (None, ALL) and item.location != location:
            continue
        if poster_id is not None and item.poster_id != poster_id:
            continue
        result.append(item)
    return result


def admin_view(items: Iterable[Item], tab: str = "pending", search: str = "") -> List[Item]:
    if tab == "pending":
        selected = [i for i in items if not i.is_verified]
    elif tab == "resolved":
        selected = [i for i in items if i.status == ItemStatus.RECLAIMED]
    elif tab == "all":
        selected = [i for i in items if i.is_verified and i.status != ItemStatus.RECLAIMED]
    else:
        raise ValueError(f"Unknown admin tab: {tab!r}")

    needle = (search or "").strip().lower()
    if needle:
        selected = [
            i for i in selected
            if _matches(i.title, needle) or _matches(i.poster_name, needle) or _matches(i.location, needle)
        ]
    return selected


def moderation_stats(items: Iterable[Item]) -> Dict[str, int]:
    items = list(items)
    return {
        "pending": sum(1 for i in items if not i.is_verified),
        "active": sum(1 for i in items if i.is_verified and i.status != ItemStatus.RECLAIMED),
        "resolved": sum(1 for i in items if i.status == ItemStatus.RECLAIMED),
    }
