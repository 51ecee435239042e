"""Records browser: a terminal client for paginated, realtime-refreshed record collections."""

from records_browser.dedupe import DedupeCache
from records_browser.estimation import TotalEstimator
from records_browser.models import (
    ListQuery,
    ListWindowState,
    PageRequest,
    PageResponse,
    PlaybackSession,
    TotalEstimate,
    UserConfig,
)
from records_browser.playback import PlaybackController, PlaybackStartFailure, PlayerState
from records_browser.refresh import RefreshCoordinator
from records_browser.window import WindowedListController

__all__ = [
    "DedupeCache",
    "ListQuery",
    "ListWindowState",
    "PageRequest",
    "PageResponse",
    "PlaybackController",
    "PlaybackSession",
    "PlaybackStartFailure",
    "PlayerState",
    "RefreshCoordinator",
    "TotalEstimate",
    "TotalEstimator",
    "UserConfig",
    "WindowedListController",
]
