"""
YouTube API fetcher module.
Handles all interactions with the YouTube Data API v3.

Features:
- Generic cursor pagination over list endpoints
- Channel identifier resolution (ID, @handle, URL)
- Quota accounting per request

No retry: any API or network error aborts the fetch
and propagates to the caller.
"""

import json
import re
from typing import Callable, Optional

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from logger import get_logger
from models import MalformedResponseError, VideoRecord, parse_video_item
from quota import QuotaTracker

log = get_logger("youtube_api")


VIDEOS_PAGE_SIZE = 50
COMMENTS_PAGE_SIZE = 100


class ChannelNotFoundError(ValueError):
    """Raised when a channel identifier cannot be resolved to a channel ID."""
    pass


# ============================================================================
# PAGINATION
# ============================================================================

def fetch_all_pages(
    request_page: Callable[[Optional[str]], dict],
    label: str = "list",
) -> list[dict]:
    """
    Follow nextPageToken cursors until the endpoint is exhausted.

    Args:
        request_page: Issues one request for the given page token (None for the
                      first page) and returns the decoded response.
        label: Description used in log messages.

    Returns:
        Every item of every page, in response order.
    """
    items = []
    page_token = None
    page_count = 0

    while True:
        response = request_page(page_token)
        page_count += 1

        if not isinstance(response, dict):
            raise MalformedResponseError(
                f"{label}: page {page_count} is {type(response).__name__}, expected an object"
            )

        page_items = response.get("items", [])
        if not isinstance(page_items, list):
            raise MalformedResponseError(
                f"{label}: 'items' on page {page_count} is {type(page_items).__name__}, expected a list"
            )
        items.extend(page_items)

        log.debug(f"{label}: page {page_count} returned {len(page_items)} items")

        page_token = response.get("nextPageToken")
        if not page_token:
            break

    log.debug(f"{label}: fetched {len(items)} items in {page_count} pages")
    return items


def parse_http_error_reason(error: HttpError) -> Optional[str]:
    """
    Extract the reason from an HttpError by parsing its content.

    Returns:
        The error reason (e.g. 'commentsDisabled', 'quotaExceeded') or None.
    """
    try:
        content = error.content
        if isinstance(content, bytes):
            content = content.decode("utf-8")
        payload = json.loads(content)
        errors = payload.get("error", {}).get("errors") or [{}]
        return errors[0].get("reason")
    except (json.JSONDecodeError, UnicodeDecodeError, AttributeError, IndexError, TypeError):
        return None


class YouTubeFetcher:
    """Handles fetching channel videos and comment threads from the YouTube API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        quota: Optional[QuotaTracker] = None,
        service=None,
    ):
        """
        Args:
            api_key: YouTube Data API key
            quota: Optional QuotaTracker charged before every request
            service: Pre-built API resource (used instead of building one from api_key)
        """
        if service is None and not api_key:
            raise ValueError("YouTube API key not provided")

        self.api_key = api_key
        self.quota = quota
        self._shared_service = api_key is None
        self.youtube = service if service is not None else build(
            "youtube", "v3", developerKey=api_key, cache_discovery=False
        )

        log.debug("YouTubeFetcher initialized")

    def clone(self) -> "YouTubeFetcher":
        """
        Create a fetcher for use on another thread.

        The underlying HTTP client is not thread-safe, so a fresh API client is
        built from the key. An injected service has no key and is shared as-is.
        """
        if self._shared_service:
            return YouTubeFetcher(quota=self.quota, service=self.youtube)
        return YouTubeFetcher(api_key=self.api_key, quota=self.quota)

    def _execute(self, operation: str, request):
        if self.quota is not None:
            self.quota.spend(operation)
        return request.execute()

    def resolve_channel_id(self, identifier: str) -> str:
        """Resolve various channel identifiers to a channel ID."""
        log.debug(f"Resolving channel identifier: {identifier}")
        identifier = identifier.strip()

        # Direct channel ID
        if identifier.startswith("UC") and len(identifier) == 24:
            log.debug(f"Direct channel ID: {identifier}")
            return identifier

        if identifier.startswith("@"):
            handle = identifier.lstrip("@")
        elif "youtube.com/@" in identifier:
            match = re.search(r"youtube\.com/@([\w.-]+)", identifier)
            handle = match.group(1) if match else None
        elif "youtube.com/channel/" in identifier:
            match = re.search(r"youtube\.com/channel/(UC[\w-]{22})", identifier)
            if match:
                log.debug(f"Extracted channel ID from URL: {match.group(1)}")
                return match.group(1)
            handle = None
        else:
            # Assume it's a handle without @
            handle = identifier

        if handle:
            log.debug(f"Looking up handle: {handle}")
            request = self.youtube.channels().list(
                part="id",
                forHandle=handle
            )
            response = self._execute("channels.list", request)

            if response.get("items"):
                channel_id = response["items"][0]["id"]
                log.debug(f"Resolved handle '{handle}' to channel ID: {channel_id}")
                return channel_id

        raise ChannelNotFoundError(f"Could not resolve channel ID for: {identifier}")

    def _search_channel_videos_page(self, channel_id: str, page_token: Optional[str] = None) -> dict:
        """Fetch a single page of the channel's videos."""
        kwargs = {
            "part": "snippet",
            "channelId": channel_id,
            "type": "video",
            "maxResults": VIDEOS_PAGE_SIZE,
        }
        if page_token:
            kwargs["pageToken"] = page_token

        request = self.youtube.search().list(**kwargs)
        return self._execute("search.list", request)

    def list_channel_videos(self, channel_id: str) -> list[VideoRecord]:
        """
        List every video published by a channel.

        Returns:
            VideoRecords in the order the search endpoint returned them.
        """
        log.debug(f"Listing videos for channel {channel_id}")
        items = fetch_all_pages(
            lambda token: self._search_channel_videos_page(channel_id, token),
            label=f"search.list channel={channel_id}",
        )
        return [parse_video_item(item) for item in items]

    def _fetch_comments_page(self, video_id: str, page_token: Optional[str] = None) -> dict:
        """Fetch a single page of top-level comment threads."""
        kwargs = {
            "part": "snippet",
            "videoId": video_id,
            "maxResults": COMMENTS_PAGE_SIZE,
            "textFormat": "plainText",
        }
        if page_token:
            kwargs["pageToken"] = page_token

        request = self.youtube.commentThreads().list(**kwargs)
        return self._execute("commentThreads.list", request)

    def fetch_comment_threads(self, video_id: str) -> list[dict]:
        """
        Fetch every top-level comment thread of a video.

        Raises HttpError when the API refuses the video (e.g. commentsDisabled).
        """
        log.debug(f"Fetching comment threads for video {video_id}")
        return fetch_all_pages(
            lambda token: self._fetch_comments_page(video_id, token),
            label=f"commentThreads.list video={video_id}",
        )
