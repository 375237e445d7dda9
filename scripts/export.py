"""
CSV export of the harvested tables.

Each table is written independently; a failure while writing one table
leaves the tables written before it in place.
"""

import csv
import os
from typing import Iterable

from logger import get_logger
from models import CommentRecord, VideoRecord, sort_videos

log = get_logger("export")


def _write_csv(path: str, columns: Iterable[str], rows: Iterable[tuple]) -> int:
    count = 0
    with open(path, 'w', newline='', encoding='utf-8') as f:
        writer = csv.writer(f)
        writer.writerow(columns)
        for row in rows:
            writer.writerow(row)
            count += 1
    return count


def output_paths(channel_id: str, output_dir: str = ".") -> dict[str, str]:
    """File names for the three tables of a channel."""
    return {
        "videos": os.path.join(output_dir, f"{channel_id}-videolist.csv"),
        "comments": os.path.join(output_dir, f"{channel_id}-youtube_comments.csv"),
        "comment_texts": os.path.join(output_dir, f"{channel_id}_youtube_comment_texts.csv"),
    }


def write_video_table(path: str, videos: list[VideoRecord]) -> int:
    """Write videos in the given order. Returns the number of rows written."""
    return _write_csv(path, VideoRecord.COLUMNS, (v.as_row() for v in videos))


def write_comment_table(path: str, comments: list[CommentRecord]) -> int:
    return _write_csv(path, CommentRecord.COLUMNS, (c.as_row() for c in comments))


def write_comment_text_table(path: str, comments: list[CommentRecord]) -> int:
    return _write_csv(path, ("textDisplay",), ((c.text_display,) for c in comments))


def export_tables(
    channel_id: str,
    videos: list[VideoRecord],
    comments: list[CommentRecord],
    output_dir: str = ".",
) -> dict[str, str]:
    """
    Write the video, comment and comment-text tables for a channel.

    Args:
        channel_id: Used to name the output files
        videos: Videos in any order; the table is sorted by publish time
        comments: Comments in final (sorted) order
        output_dir: Directory the files are created in

    Returns:
        Dict mapping table name to written file path.
    """
    os.makedirs(output_dir, exist_ok=True)
    paths = output_paths(channel_id, output_dir)

    rows = write_video_table(paths["videos"], sort_videos(videos))
    log.info(f"Wrote {rows} videos to {paths['videos']}")

    rows = write_comment_table(paths["comments"], comments)
    log.info(f"Wrote {rows} comments to {paths['comments']}")

    rows = write_comment_text_table(paths["comment_texts"], comments)
    log.info(f"Wrote {rows} comment texts to {paths['comment_texts']}")

    return paths
