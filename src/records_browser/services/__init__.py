"""Internal service layer for app orchestration extraction."""

from records_browser.services.records_api_service import (
    build_collection_url,
    build_headers,
    fetch_page,
    fetch_unread_count,
    parse_page_response,
)

__all__ = [
    "build_collection_url",
    "build_headers",
    "fetch_page",
    "fetch_unread_count",
    "parse_page_response",
]
