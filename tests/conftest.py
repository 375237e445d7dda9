import json
import logging
import threading

import httplib2
import pytest
from googleapiclient.errors import HttpError

from config import Config, set_config
from logger import LOGGER_NAME


CHANNEL_ID = "UCabcdefghijklmnopqrstuv"


def video_item(video_id, publish_time, title=None, description=None):
    """A search.list result item as returned by the API."""
    return {
        "kind": "youtube#searchResult",
        "id": {"kind": "youtube#video", "videoId": video_id},
        "snippet": {
            "publishedAt": publish_time,
            "channelId": CHANNEL_ID,
            "title": title if title is not None else f"Title {video_id}",
            "description": description if description is not None else f"Description {video_id}",
            "publishTime": publish_time,
        },
    }


def thread_item(thread_id, published_at, text=None, like_count=0, author=None, updated_at=None):
    """A commentThreads.list item as returned by the API."""
    return {
        "kind": "youtube#commentThread",
        "id": thread_id,
        "snippet": {
            "topLevelComment": {
                "id": thread_id,
                "snippet": {
                    "authorDisplayName": author if author is not None else f"@author-{thread_id}",
                    "textDisplay": text if text is not None else f"text {thread_id}",
                    "likeCount": like_count,
                    "publishedAt": published_at,
                    "updatedAt": updated_at or published_at,
                },
            },
            "totalReplyCount": 0,
        },
    }


def http_error(status, reason):
    content = json.dumps({
        "error": {
            "code": status,
            "message": reason,
            "errors": [{"reason": reason, "domain": "youtube.commentThread"}],
        }
    }).encode("utf-8")
    return HttpError(httplib2.Response({"status": status}), content)


class FakeRequest:
    """A prepared request; the call is recorded on the service only when executed."""

    def __init__(self, service, name, kwargs, response=None, error=None):
        self._service = service
        self._name = name
        self._kwargs = kwargs
        self._response = response
        self._error = error

    def execute(self):
        self._service.record(self._name, self._kwargs)
        if self._error is not None:
            raise self._error
        return self._response


class FakeResource:
    def __init__(self, service, name, key_field):
        self._service = service
        self._name = name
        self._key_field = key_field

    def request(self, kwargs, **outcome):
        return FakeRequest(self._service, self._name, kwargs, **outcome)

    def list(self, **kwargs):
        script = self._service.scripts[self._name].get(kwargs.get(self._key_field))
        if script is None:
            return self.request(kwargs, error=http_error(404, "notFound"))
        if isinstance(script, Exception):
            return self.request(kwargs, error=script)
        if isinstance(script, dict):
            return self.request(kwargs, response=script)

        token = kwargs.get("pageToken")
        index = 0 if token is None else int(token.split("-")[1])
        response = {"items": list(script[index])}
        if index + 1 < len(script):
            response["nextPageToken"] = f"page-{index + 1}"
        return self.request(kwargs, response=response)


class FakeYouTube:
    """
    Stand-in for the googleapiclient YouTube resource.

    Scripts map the request key (channelId, videoId, forHandle) to either a
    list of pages (each page a list of items), a raw response dict, or an
    exception raised on execute().
    """

    def __init__(self, videos=None, comments=None, handles=None):
        self.scripts = {
            "search": videos or {},
            "commentThreads": comments or {},
            "channels": {
                handle: {"items": [{"id": channel_id}]} for handle, channel_id in (handles or {}).items()
            },
        }
        self.calls = []
        self._lock = threading.Lock()

    def record(self, name, kwargs):
        with self._lock:
            self.calls.append((name, dict(kwargs)))

    def calls_to(self, name):
        return [kwargs for call_name, kwargs in self.calls if call_name == name]

    def search(self):
        return FakeResource(self, "search", "channelId")

    def commentThreads(self):
        return FakeResource(self, "commentThreads", "videoId")

    def channels(self):
        return FakeResource(self, "channels", "forHandle")


@pytest.fixture(autouse=True)
def default_config():
    set_config(Config())
    yield
    set_config(None)


@pytest.fixture
def reset_logging():
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
