from typing import Any, List, Optional

from attendcache.services.durable_cache import DurableCacheStore
from attendcache.utils.log import app_logger

MINUTE = 60
HOUR = 60 * MINUTE

# TTLs in seconds, by kind of data
CACHE_DURATIONS = {
    "PROGRAMS": 24 * HOUR,
    "USERS": HOUR,
    "EVENTS": 15 * MINUTE,
    "ATTENDANCE": 5 * MINUTE,
    "SEARCH_RESULTS": 2 * MINUTE,
    "DASHBOARD": {
        "STATS": 5 * MINUTE,
        # status flips often
        "ONGOING_EVENTS": MINUTE,
        "UPCOMING_EVENTS": 15 * MINUTE,
        "RECENT_MEMBERS": 30 * MINUTE,
    },
    "UI_STATE": 30,
}


class CACHE_KEYS:
    """Key builders. Keys are namespaced as '<type>:...' so a type can be dropped by prefix."""

    ALL_EVENTS = "events:client-cache:all"

    @staticmethod
    def event_details(event_id: str) -> str:
        return f"event:{event_id}"

    @staticmethod
    def events_by_status(status: str) -> str:
        return f"events:status:{status}"

    @staticmethod
    def paginated_events(params: str) -> str:
        return f"events:paginated:{params}"

    @staticmethod
    def ui_view(params: str) -> str:
        return f"ui:events:view:{params}"

    @staticmethod
    def attendees_page(signature: str, page: int, page_size: int) -> str:
        return f"event-attendees:{signature}:page{page}:size{page_size}"


def invalidate_type(cache: DurableCacheStore, data_type: str) -> int:
    """Drop every entry of one data type, e.g. 'events', 'members' or 'dashboard'."""
    removed = cache.invalidate_by_prefix(f"{data_type}:")
    app_logger.info("cache.invalidate_type", data_type=data_type, removed=removed)
    return removed


class EventsCacheService:
    """Cache upkeep around the events list (create/update/delete hooks and client-side search)."""

    def __init__(self, cache: DurableCacheStore):
        self.cache = cache

    def invalidate_events_cache(self) -> int:
        removed = self.cache.invalidate_by_prefix("events:")
        removed += self.cache.invalidate_by_prefix("ui:events:")
        # dashboard tiles embed event data
        removed += self.cache.invalidate_by_prefix("dashboard:upcoming-events")
        removed += self.cache.invalidate_by_prefix("dashboard:ongoing-events")
        app_logger.info("cache.events_invalidated", removed=removed)
        return removed

    def cache_all_events(self, events: List[Any]) -> None:
        self.cache.set(CACHE_KEYS.ALL_EVENTS, events, 5 * MINUTE)

    def get_cached_all_events(self) -> Optional[List[Any]]:
        entry = self.cache.get(CACHE_KEYS.ALL_EVENTS)
        return entry.value if entry else None

    def invalidate_event_cache(self, event_id: str) -> bool:
        return self.cache.invalidate(CACHE_KEYS.event_details(event_id))

    def invalidate_ui_cache(self, tab: str, sort_field: str, sort_direction: str) -> int:
        return self.cache.invalidate_by_prefix(CACHE_KEYS.ui_view(f"{tab}:{sort_field}-{sort_direction}"))
