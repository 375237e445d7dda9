"""
Comment collection: joins every listed video with its comment threads.

Comments for each video are fetched either sequentially or with a bounded
thread pool. Either way the flat CommentRecord list is assembled in video
listing order before sorting, so the output does not depend on the order in
which worker threads finish.
"""

import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Optional

from googleapiclient.errors import HttpError

from logger import get_logger, inherit_channel_context
from models import CommentRecord, VideoRecord, parse_comment_thread
from youtube_api import YouTubeFetcher, parse_http_error_reason

log = get_logger("collect")


COMMENTS_DISABLED_REASON = "commentsDisabled"


def sort_comments(comments: list[CommentRecord]) -> list[CommentRecord]:
    """Stable sort by owning video's publish time, then the comment's publish time."""
    return sorted(comments, key=lambda c: (c.video_publish_time, c.comment_published_at))


def _fetch_threads(fetcher: YouTubeFetcher, video: VideoRecord, skip_disabled: bool) -> list[dict]:
    try:
        return fetcher.fetch_comment_threads(video.video_id)
    except HttpError as e:
        reason = parse_http_error_reason(e)
        if skip_disabled and reason == COMMENTS_DISABLED_REASON:
            log.warning(f"Comments disabled for video {video.video_id}, skipping")
            return []
        log.error(f"Comment fetch failed for video {video.video_id} "
                  f"(HTTP {e.resp.status}, reason={reason})")
        raise


def _fetch_all_parallel(
    fetcher: YouTubeFetcher,
    videos: list[VideoRecord],
    workers: int,
    skip_disabled: bool,
) -> dict[str, list[dict]]:
    """
    Fetch comment threads for many videos with a thread pool.

    Each worker thread gets its own fetcher (the API client is not thread-safe).
    The first failure cancels work that has not started and is re-raised.

    Returns:
        Raw thread items keyed by video ID.
    """
    thread_local = threading.local()

    def get_thread_fetcher() -> YouTubeFetcher:
        if not hasattr(thread_local, 'fetcher'):
            thread_local.fetcher = fetcher.clone()
        return thread_local.fetcher

    def fetch_single_video(video: VideoRecord) -> list[dict]:
        return _fetch_threads(get_thread_fetcher(), video, skip_disabled)

    unique_videos = list({v.video_id: v for v in videos}.values())
    results = {}

    with ThreadPoolExecutor(max_workers=workers, initializer=inherit_channel_context()) as executor:
        futures = {executor.submit(fetch_single_video, v): v for v in unique_videos}

        for future in as_completed(futures):
            video = futures[future]
            try:
                threads = future.result()
            except BaseException:
                for f in futures:
                    f.cancel()
                raise
            results[video.video_id] = threads
            log.info(f"Video {video.video_id}: {len(threads)} comments retrieved")

    return results


def collect_comments(
    fetcher: YouTubeFetcher,
    videos: list[VideoRecord],
    workers: int = 1,
    skip_disabled: bool = False,
) -> list[CommentRecord]:
    """
    Fetch and join the comment threads of every video, then sort them.

    Args:
        fetcher: API fetcher (cloned per worker thread when workers > 1)
        videos: Videos in listing order
        workers: Number of parallel comment fetches (1 = sequential)
        skip_disabled: Treat videos with comments disabled as having no comments
                       instead of aborting the run

    Returns:
        CommentRecords sorted by (video publish time, comment publish time).
    """
    if workers < 1:
        raise ValueError(f"workers must be at least 1, got {workers}")

    threads_by_video: Optional[dict[str, list[dict]]] = None
    if workers > 1 and len(videos) > 1:
        log.debug(f"Fetching comments for {len(videos)} videos with {workers} workers")
        threads_by_video = _fetch_all_parallel(fetcher, videos, workers, skip_disabled)

    comments = []
    for video in videos:
        if threads_by_video is not None:
            threads = threads_by_video[video.video_id]
        else:
            threads = _fetch_threads(fetcher, video, skip_disabled)
            log.info(f"Video {video.video_id}: {len(threads)} comments retrieved")

        comments.extend(parse_comment_thread(item, video) for item in threads)

    log.debug(f"Collected {len(comments)} comments across {len(videos)} videos")
    return sort_comments(comments)
