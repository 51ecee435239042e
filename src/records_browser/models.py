"""Data models and constants for the records browser."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import Any

# Application identity: single source of truth for platformdirs config paths
CONFIG_APP_NAME = "records-browser"

# Paging constants
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
PAGE_SIZE_OPTIONS = (10, 25, 50, 100)

# Upper bound on records pulled for a client-sorted snapshot
DEFAULT_SNAPSHOT_CAP = 1000
MAX_SNAPSHOT_CAP = 5000

# Free-text search coalescing window
DEFAULT_SEARCH_DEBOUNCE_MS = 500

# Realtime duplicate-alert suppression window
DEFAULT_DEDUPE_HORIZON_SECONDS = 30.0

DEFAULT_API_BASE_URL = "http://localhost:8000/api/v1"
DEFAULT_COLLECTION = "org/call-logs"
DEFAULT_ITEMS_KEY = "items"
DEFAULT_DURATION_COLUMNS = ("Duration",)
DEFAULT_PLAYER_COMMAND = "ffplay -nodisp -autoexit -loglevel quiet {url}"

SORT_DIRECTIONS = ("asc", "desc")
MODE_SERVER = "server-paginated"
MODE_SNAPSHOT = "client-sorted-snapshot"

Record = dict[str, Any]
FilterPairs = tuple[tuple[str, str], ...]


def normalize_filters(filters: Mapping[str, str | Sequence[str]] | None) -> FilterPairs:
    """Flatten a filter mapping into ordered ``(key, value)`` pairs.

    Sequence values expand into one pair per item so multi-valued filters can
    be sent as repeated query parameters. Empty keys and values are dropped.
    """
    if not filters:
        return ()
    pairs: list[tuple[str, str]] = []
    for key in sorted(filters):
        if not key:
            continue
        raw = filters[key]
        values = [raw] if isinstance(raw, str) else list(raw)
        for value in values:
            if value is None or str(value) == "":
                continue
            pairs.append((str(key), str(value)))
    return tuple(pairs)


@dataclass(frozen=True, slots=True)
class ListQuery:
    """Immutable list query. A new instance supersedes the prior one as a whole."""

    page_index: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    search_text: str = ""
    filters: FilterPairs = ()
    sort_column: str | None = None
    sort_direction: str = "asc"
    server_sort: str = ""

    def __post_init__(self) -> None:
        if self.page_index < 1:
            raise ValueError(f"page_index must be >= 1, got {self.page_index}")
        if self.page_size < 1:
            raise ValueError(f"page_size must be > 0, got {self.page_size}")
        if self.sort_direction not in SORT_DIRECTIONS:
            raise ValueError(f"sort_direction must be 'asc' or 'desc', got {self.sort_direction!r}")

    @property
    def skip(self) -> int:
        return (self.page_index - 1) * self.page_size

    @property
    def shape(self) -> tuple[Any, ...]:
        """Everything except the page index; total estimates are kept per shape."""
        return (
            self.page_size,
            self.search_text,
            self.filters,
            self.sort_column,
            self.sort_direction,
            self.server_sort,
        )

    @property
    def filter_map(self) -> dict[str, list[str]]:
        result: dict[str, list[str]] = {}
        for key, value in self.filters:
            result.setdefault(key, []).append(value)
        return result

    def with_page(self, page_index: int) -> ListQuery:
        return replace(self, page_index=max(1, page_index))

    def with_page_size(self, page_size: int) -> ListQuery:
        return replace(self, page_size=page_size, page_index=1)

    def with_search(self, search_text: str) -> ListQuery:
        return replace(self, search_text=search_text.strip(), page_index=1)

    def with_filters(self, filters: Mapping[str, str | Sequence[str]] | None) -> ListQuery:
        return replace(self, filters=normalize_filters(filters), page_index=1)

    def with_server_sort(self, token: str) -> ListQuery:
        return replace(self, server_sort=token, page_index=1)

    def with_sort(self, column: str | None, direction: str = "asc") -> ListQuery:
        return replace(self, sort_column=column, sort_direction=direction, page_index=1)

    def toggle_sort(self, column: str) -> ListQuery:
        """Flip direction on the active column, otherwise sort the new column ascending."""
        if self.sort_column == column:
            direction = "desc" if self.sort_direction == "asc" else "asc"
            return self.with_sort(column, direction)
        return self.with_sort(column, "asc")

    def clear_sort(self) -> ListQuery:
        return self.with_sort(None, "asc")


@dataclass(frozen=True, slots=True)
class PageRequest:
    """One bounded list request sent to the backend."""

    skip: int
    limit: int
    search: str = ""
    filters: FilterPairs = ()
    sort: str = ""


@dataclass(slots=True)
class PageResponse:
    """Backend answer for one :class:`PageRequest`."""

    items: list[Record]
    total: int | None = None
    has_more: bool | None = None


@dataclass(frozen=True, slots=True)
class TotalEstimate:
    """Best-effort total record count; ``exact`` once the true end is known."""

    value: int = 0
    exact: bool = False


@dataclass(frozen=True, slots=True)
class ListWindowState:
    """The visible page of records plus metadata about what else exists."""

    mode: str = MODE_SERVER
    items: tuple[Record, ...] = ()
    displayed_total: int = 0
    total_is_exact: bool = False
    has_more_hint: bool = False
    in_flight_request_id: int | None = None
    query: ListQuery = field(default_factory=ListQuery)
    loading: bool = False
    error: str | None = None
    truncated: bool = False

    @property
    def total_pages(self) -> int:
        """Known page count; in server mode one past the current page while more is hinted."""
        page = self.query.page_index
        if self.mode == MODE_SNAPSHOT or self.total_is_exact:
            return max(1, -(-self.displayed_total // self.query.page_size))
        return page + 1 if self.has_more_hint else page

    @property
    def start_record(self) -> int:
        return self.query.skip + 1 if self.items else 0

    @property
    def end_record(self) -> int:
        return self.query.skip + len(self.items)


@dataclass(frozen=True, slots=True)
class DedupeEntry:
    """A notification identity and when it was first seen."""

    key: str
    seen_at: float


@dataclass(frozen=True, slots=True)
class PlaybackSession:
    """The single system-wide playback owner and its progress."""

    owner_id: str | None = None
    progress: float = 0.0


@dataclass(slots=True)
class SessionState:
    """State to restore on next run (search, sort, page size)."""

    search: str = ""
    sort_column: str | None = None
    sort_direction: str = "asc"
    page_size: int = DEFAULT_PAGE_SIZE

    def __post_init__(self) -> None:
        """Clamp restored values so a hand-edited config cannot break the query."""
        if self.sort_direction not in SORT_DIRECTIONS:
            self.sort_direction = "asc"
        if self.page_size < 1 or self.page_size > MAX_PAGE_SIZE:
            self.page_size = DEFAULT_PAGE_SIZE


@dataclass(slots=True)
class UserConfig:
    """Complete user configuration including session state and preferences."""

    api_base_url: str = DEFAULT_API_BASE_URL
    api_token: str = ""
    collection: str = DEFAULT_COLLECTION
    items_key: str = DEFAULT_ITEMS_KEY
    page_size: int = DEFAULT_PAGE_SIZE
    snapshot_cap: int = DEFAULT_SNAPSHOT_CAP
    search_debounce_ms: int = DEFAULT_SEARCH_DEBOUNCE_MS
    dedupe_horizon_seconds: float = DEFAULT_DEDUPE_HORIZON_SECONDS
    trust_server_total: bool = False
    request_timeout_seconds: int = 30
    unread_poll_seconds: int = 30  # 0 disables polling
    player_command: str = DEFAULT_PLAYER_COMMAND
    duration_columns: list[str] = field(default_factory=lambda: list(DEFAULT_DURATION_COLUMNS))
    session: SessionState = field(default_factory=SessionState)
    version: int = 1


__all__ = [
    "CONFIG_APP_NAME",
    "DEFAULT_API_BASE_URL",
    "DEFAULT_COLLECTION",
    "DEFAULT_DEDUPE_HORIZON_SECONDS",
    "DEFAULT_DURATION_COLUMNS",
    "DEFAULT_ITEMS_KEY",
    "DEFAULT_PAGE_SIZE",
    "DEFAULT_PLAYER_COMMAND",
    "DEFAULT_SEARCH_DEBOUNCE_MS",
    "DEFAULT_SNAPSHOT_CAP",
    "MAX_PAGE_SIZE",
    "MAX_SNAPSHOT_CAP",
    "MODE_SERVER",
    "MODE_SNAPSHOT",
    "PAGE_SIZE_OPTIONS",
    "SORT_DIRECTIONS",
    "DedupeEntry",
    "FilterPairs",
    "ListQuery",
    "ListWindowState",
    "PageRequest",
    "PageResponse",
    "PlaybackSession",
    "Record",
    "SessionState",
    "TotalEstimate",
    "UserConfig",
    "normalize_filters",
]
