"""
Record types produced by the harvester.

Raw API items are projected into these immutable records as soon as they are
parsed. A raw item missing any projected field is rejected with
MalformedResponseError instead of carrying None into the output tables.
"""

from dataclasses import dataclass
from typing import ClassVar


VIDEO_URL_TEMPLATE = "https://www.youtube.com/watch?v={video_id}"


class MalformedResponseError(ValueError):
    """Raised when an API response does not have the expected shape."""
    pass


def _require(mapping, path: str, context: str):
    """Walk a dotted key path through nested dicts, raising if any step is missing."""
    value = mapping
    for key in path.split("."):
        if not isinstance(value, dict) or key not in value:
            raise MalformedResponseError(f"Missing field '{path}' in {context}")
        value = value[key]
    if value is None:
        raise MalformedResponseError(f"Field '{path}' is null in {context}")
    return value


@dataclass(frozen=True)
class VideoRecord:
    """One video of the channel, as listed by the search endpoint."""

    COLUMNS: ClassVar[tuple] = ("url", "videoId", "publishTime", "title", "description")

    url: str
    video_id: str
    publish_time: str
    title: str
    description: str

    def as_row(self) -> tuple:
        return (self.url, self.video_id, self.publish_time, self.title, self.description)


@dataclass(frozen=True)
class CommentRecord:
    """
    One top-level comment thread joined with the video it belongs to.

    Video fields are repeated on every row (denormalized join).
    """

    COLUMNS: ClassVar[tuple] = (
        "videoId",
        "videoPublishTime",
        "videoTitle",
        "commentPublishedAt",
        "commentUpdatedAt",
        "likeCount",
        "authorDisplayName",
        "textDisplay",
    )

    video_id: str
    video_publish_time: str
    video_title: str
    comment_published_at: str
    comment_updated_at: str
    like_count: int
    author_display_name: str
    text_display: str

    def as_row(self) -> tuple:
        return (
            self.video_id,
            self.video_publish_time,
            self.video_title,
            self.comment_published_at,
            self.comment_updated_at,
            self.like_count,
            self.author_display_name,
            self.text_display,
        )


def parse_video_item(item: dict) -> VideoRecord:
    """Project a search.list result item into a VideoRecord."""
    video_id = _require(item, "id.videoId", "search result")
    context = f"search result for video {video_id}"
    return VideoRecord(
        url=VIDEO_URL_TEMPLATE.format(video_id=video_id),
        video_id=video_id,
        publish_time=_require(item, "snippet.publishTime", context),
        title=_require(item, "snippet.title", context),
        description=_require(item, "snippet.description", context),
    )


def parse_comment_thread(item: dict, video: VideoRecord) -> CommentRecord:
    """Join a commentThreads.list item with the video whose comments were fetched."""
    context = f"comment thread {item.get('id', '?') if isinstance(item, dict) else '?'} of video {video.video_id}"
    snippet = _require(item, "snippet.topLevelComment.snippet", context)
    return CommentRecord(
        video_id=video.video_id,
        video_publish_time=video.publish_time,
        video_title=video.title,
        comment_published_at=_require(snippet, "publishedAt", context),
        comment_updated_at=_require(snippet, "updatedAt", context),
        like_count=_require(snippet, "likeCount", context),
        author_display_name=_require(snippet, "authorDisplayName", context),
        text_display=_require(snippet, "textDisplay", context),
    )


def sort_videos(videos: list[VideoRecord]) -> list[VideoRecord]:
    """Stable sort by publish time (ISO-8601 strings compare chronologically)."""
    return sorted(videos, key=lambda v: v.publish_time)
