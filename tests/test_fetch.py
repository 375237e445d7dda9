import csv

import pytest

import fetch
from conftest import CHANNEL_ID, FakeYouTube, http_error, thread_item, video_item
from youtube_api import YouTubeFetcher


def read_rows(path):
    with open(path, newline="", encoding="utf-8") as f:
        return list(csv.reader(f))


@pytest.fixture
def workspace(tmp_path, reset_logging):
    (tmp_path / "apikey.txt").write_text("test-key\n", encoding="utf-8")
    settings = tmp_path / "settings.yaml"
    settings.write_text(
        "settings:\n"
        f"  api_key_file: {tmp_path / 'apikey.txt'}\n"
        f"  output_dir: {tmp_path / 'out'}\n"
        f"  log_dir: {tmp_path / 'logs'}\n",
        encoding="utf-8",
    )
    return tmp_path


@pytest.fixture
def use_service(monkeypatch):
    """Route the CLI's fetcher to a fake service; records the key it was given."""
    seen = {}

    def install(service):
        def make_fetcher(api_key, quota):
            seen["api_key"] = api_key
            return YouTubeFetcher(quota=quota, service=service)
        monkeypatch.setattr(fetch, "YouTubeFetcher", make_fetcher)
        return seen

    return install


def two_videos_two_pages():
    return FakeYouTube(
        videos={CHANNEL_ID: [
            [video_item("late", "2023-02-01T00:00:00Z")],
            [video_item("early", "2023-01-01T00:00:00Z")],
        ]},
        comments={
            "late": [
                [thread_item("late-2", "2023-02-05T00:00:00Z")],
                [thread_item("late-1", "2023-02-04T00:00:00Z")],
            ],
            "early": [
                [thread_item("early-2", "2023-01-05T00:00:00Z")],
                [thread_item("early-1", "2023-01-04T00:00:00Z")],
            ],
        },
    )


class TestHarvestChannel:

    def test_two_videos_two_comments_each(self, tmp_path):
        service = two_videos_two_pages()

        result = fetch.harvest_channel(YouTubeFetcher(service=service), CHANNEL_ID, output_dir=str(tmp_path))

        assert result["videos"] == 2
        assert result["comments"] == 4

        video_rows = read_rows(result["paths"]["videos"])
        assert [row[1] for row in video_rows[1:]] == ["early", "late"]

        comment_rows = read_rows(result["paths"]["comments"])
        assert len(comment_rows) == 5
        assert [row[0] for row in comment_rows[1:]] == ["early", "early", "late", "late"]
        assert [row[3] for row in comment_rows[1:]] == [
            "2023-01-04T00:00:00Z",
            "2023-01-05T00:00:00Z",
            "2023-02-04T00:00:00Z",
            "2023-02-05T00:00:00Z",
        ]

        text_rows = read_rows(result["paths"]["comment_texts"])
        assert text_rows == [["textDisplay"], ["text early-1"], ["text early-2"], ["text late-1"], ["text late-2"]]

        assert len(service.calls_to("search")) == 2
        assert len(service.calls_to("commentThreads")) == 4

    def test_channel_without_videos(self, tmp_path):
        service = FakeYouTube(videos={CHANNEL_ID: [[]]})

        result = fetch.harvest_channel(YouTubeFetcher(service=service), CHANNEL_ID, output_dir=str(tmp_path))

        for path in result["paths"].values():
            assert len(read_rows(path)) == 1
        assert service.calls_to("commentThreads") == []

    def test_single_video_without_comments(self, tmp_path):
        service = FakeYouTube(
            videos={CHANNEL_ID: [[video_item("only", "2023-01-01T00:00:00Z")]]},
            comments={"only": [[]]},
        )

        result = fetch.harvest_channel(YouTubeFetcher(service=service), CHANNEL_ID, output_dir=str(tmp_path))

        assert len(read_rows(result["paths"]["videos"])) == 2
        assert len(read_rows(result["paths"]["comments"])) == 1
        assert len(read_rows(result["paths"]["comment_texts"])) == 1

    def test_files_named_after_resolved_channel(self, tmp_path):
        service = two_videos_two_pages()
        service.scripts["channels"]["handle"] = {"items": [{"id": CHANNEL_ID}]}

        result = fetch.harvest_channel(YouTubeFetcher(service=service), "@handle", output_dir=str(tmp_path))

        assert result["channel_id"] == CHANNEL_ID
        assert (tmp_path / f"{CHANNEL_ID}-videolist.csv").exists()


class TestMain:

    def test_successful_run(self, workspace, use_service):
        seen = use_service(two_videos_two_pages())

        status = fetch.main([CHANNEL_ID, "--config", str(workspace / "settings.yaml")])

        assert status == 0
        assert seen["api_key"] == "test-key"
        out = workspace / "out"
        assert len(read_rows(out / f"{CHANNEL_ID}-videolist.csv")) == 3
        assert len(read_rows(out / f"{CHANNEL_ID}-youtube_comments.csv")) == 5
        assert len(read_rows(out / f"{CHANNEL_ID}_youtube_comment_texts.csv")) == 5
        assert (workspace / "logs" / "latest.log").exists()

    def test_parallel_run_matches_sequential(self, workspace, use_service):
        config = str(workspace / "settings.yaml")
        out = workspace / "out" / f"{CHANNEL_ID}-youtube_comments.csv"

        use_service(two_videos_two_pages())
        assert fetch.main([CHANNEL_ID, "--config", config]) == 0
        sequential = read_rows(out)

        use_service(two_videos_two_pages())
        assert fetch.main([CHANNEL_ID, "--config", config, "--comment-workers", "3"]) == 0

        assert read_rows(out) == sequential

    def test_missing_key_file_fails_before_any_call(self, workspace, use_service):
        (workspace / "apikey.txt").unlink()
        service = two_videos_two_pages()
        use_service(service)

        status = fetch.main([CHANNEL_ID, "--config", str(workspace / "settings.yaml")])

        assert status == 1
        assert service.calls == []
        assert not (workspace / "out").exists()

    def test_api_error_fails_the_run(self, workspace, use_service):
        service = two_videos_two_pages()
        service.scripts["commentThreads"]["early"] = http_error(403, "commentsDisabled")
        use_service(service)

        status = fetch.main([CHANNEL_ID, "--config", str(workspace / "settings.yaml")])

        assert status == 1
        assert not (workspace / "out").exists()

    def test_skip_disabled_comments_flag(self, workspace, use_service):
        service = two_videos_two_pages()
        service.scripts["commentThreads"]["early"] = http_error(403, "commentsDisabled")
        use_service(service)

        status = fetch.main([CHANNEL_ID, "--config", str(workspace / "settings.yaml"), "--skip-disabled-comments"])

        assert status == 0
        rows = read_rows(workspace / "out" / f"{CHANNEL_ID}-youtube_comments.csv")
        assert [row[0] for row in rows[1:]] == ["late", "late"]

    def test_quota_limit_from_config(self, workspace, use_service):
        settings = workspace / "settings.yaml"
        settings.write_text(settings.read_text(encoding="utf-8") + "  quota_limit: 150\n", encoding="utf-8")
        use_service(two_videos_two_pages())

        assert fetch.main([CHANNEL_ID, "--config", str(settings)]) == 1

    def test_channel_argument_is_required(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            fetch.main([])
        assert exc_info.value.code == 2

    def test_rejects_zero_workers(self, workspace):
        with pytest.raises(SystemExit):
            fetch.main([CHANNEL_ID, "--config", str(workspace / "settings.yaml"), "--comment-workers", "0"])

    def test_run_past_daily_quota_completes_by_default(self, workspace, use_service):
        # 101 search pages at 100 units each spend more than a day's 10000 units
        pages = [[video_item("only", "2023-01-01T00:00:00Z")]] + [[] for _ in range(100)]
        service = FakeYouTube(videos={CHANNEL_ID: pages}, comments={"only": [[thread_item("c", "2023-01-02T00:00:00Z")]]})
        use_service(service)

        status = fetch.main([CHANNEL_ID, "--config", str(workspace / "settings.yaml")])

        assert status == 0
        assert len(service.calls_to("search")) == 101
        assert len(read_rows(workspace / "out" / f"{CHANNEL_ID}-youtube_comments.csv")) == 2

    def test_unusable_log_dir_fails_cleanly(self, workspace, use_service):
        blocker = workspace / "not-a-dir"
        blocker.write_text("", encoding="utf-8")
        settings = workspace / "settings.yaml"
        settings.write_text(
            settings.read_text(encoding="utf-8").replace(str(workspace / "logs"), str(blocker)),
            encoding="utf-8",
        )
        service = two_videos_two_pages()
        use_service(service)

        status = fetch.main([CHANNEL_ID, "--config", str(settings)])

        assert status == 1
        assert service.calls == []
        assert not (workspace / "out").exists()
