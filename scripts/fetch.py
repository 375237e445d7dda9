#!/usr/bin/env python3
"""
YouTube Channel Comment Harvester

Lists every video of a channel, fetches the top-level comment threads of each
video and writes three CSV tables:
- <channelId>-videolist.csv              videos sorted by publish time
- <channelId>-youtube_comments.csv       comments joined with their video
- <channelId>_youtube_comment_texts.csv  comment text only

The run is all-or-nothing: the first API, network or credential error stops
it with exit status 1.

Usage:
    python fetch.py UCxxxxxxxxxxxxxxxxxxxxxx
    python fetch.py @GoogleDevelopers --comment-workers 4
    python fetch.py @GoogleDevelopers --config config/settings.yaml
"""

import argparse
import sys
import time
from typing import Optional

from config import get_config, load_api_key
from logger import setup_logging, get_logger, ChannelContext, LogContext
from collect import collect_comments
from export import export_tables
from quota import QuotaTracker
from youtube_api import YouTubeFetcher

log = get_logger("fetch")


def harvest_channel(
    fetcher: YouTubeFetcher,
    channel_identifier: str,
    output_dir: str = ".",
    comment_workers: int = 1,
    skip_disabled_comments: bool = False,
) -> dict:
    """
    Harvest one channel and write its tables.

    Returns:
        Dict with the resolved channel ID, record counts and written file paths.
    """
    with ChannelContext(channel_identifier):
        log.info(f"Processing: {channel_identifier}")

        with LogContext(log, f"Resolving channel ID for {channel_identifier}"):
            channel_id = fetcher.resolve_channel_id(channel_identifier)
        log.debug(f"Resolved channel ID: {channel_id}")

        with LogContext(log, "Listing channel videos"):
            videos = fetcher.list_channel_videos(channel_id)
        log.info(f"Found {len(videos)} videos")

        with LogContext(log, f"Fetching comments for {len(videos)} videos"):
            comments = collect_comments(
                fetcher,
                videos,
                workers=comment_workers,
                skip_disabled=skip_disabled_comments,
            )
        log.info(f"Retrieved {len(comments)} comments in total")

        paths = export_tables(channel_id, videos, comments, output_dir)

        return {
            "channel_id": channel_id,
            "videos": len(videos),
            "comments": len(comments),
            "paths": paths,
        }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Export every video of a YouTube channel and its top-level comments to CSV",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument(
        "channel",
        help="Channel ID (UC...), handle (@username), or channel URL"
    )
    parser.add_argument(
        "--config",
        help="Path to settings YAML file (default: config/settings.yaml if present)"
    )
    parser.add_argument(
        "--comment-workers",
        type=int,
        default=None,
        help="Parallel workers for comment fetching (default: from config, 1=sequential)"
    )
    parser.add_argument(
        "--skip-disabled-comments",
        action="store_true",
        default=None,
        help="Skip videos whose comments are disabled instead of aborting the run"
    )
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    cfg = get_config(args.config, reload=args.config is not None)
    if args.comment_workers is None:
        args.comment_workers = cfg.comment_workers
    if args.skip_disabled_comments is None:
        args.skip_disabled_comments = cfg.skip_disabled_comments

    if args.comment_workers < 1:
        parser.error("--comment-workers must be at least 1")

    try:
        setup_logging()
    except OSError as e:
        # No handlers yet; logging's last-resort handler still reaches stderr
        log.error(f"Could not set up logging in {cfg.log_dir}: {type(e).__name__}: {e}")
        return 1

    log.info("=" * 60)
    log.info("YouTube Comment Harvester Starting")
    log.info("=" * 60)
    log.debug(f"Arguments: {vars(args)}")

    start_time = time.time()
    quota = QuotaTracker()

    try:
        api_key = load_api_key(cfg.api_key_file)
        fetcher = YouTubeFetcher(api_key=api_key, quota=quota)

        result = harvest_channel(
            fetcher,
            args.channel,
            output_dir=cfg.output_dir,
            comment_workers=args.comment_workers,
            skip_disabled_comments=args.skip_disabled_comments,
        )
    except Exception as e:
        log.exception(f"Harvest failed for {args.channel}: {type(e).__name__}: {e}")
        quota.log_summary()
        return 1

    elapsed = time.time() - start_time

    log.info("=" * 60)
    log.info("HARVEST SUMMARY")
    log.info("=" * 60)
    log.info(f"Runtime: {elapsed:.1f} seconds")
    log.info(f"Channel: {result['channel_id']}")
    log.info(f"Videos: {result['videos']}")
    log.info(f"Comments: {result['comments']}")
    for table, path in result["paths"].items():
        log.info(f"  {table}: {path}")

    quota.log_summary()
    return 0


if __name__ == "__main__":
    sys.exit(main())
