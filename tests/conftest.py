from __future__ import annotations
import copy
import datetime
from typing import Dict, List, Optional

import pytest

from yt_collect.config import CollectorContext, Settings
from yt_collect.errors import ExternalFetchFailed, PersistenceWriteFailed
from yt_collect.records import Keyword


def make_video(vid: str, channel_id: str = "UC1", views="1000", likes="10", comments="1",
               duration="PT4M30S", thumbnails=None, title=None) -> Dict:
    if thumbnails is None:
        thumbnails = {
            "default": {"url": f"https://i.ytimg.com/vi/{vid}/default.jpg"},
            "high": {"url": f"https://i.ytimg.com/vi/{vid}/hqdefault.jpg"},
        }
    stats = {}
    if views is not None:
        stats["viewCount"] = views
    if likes is not None:
        stats["likeCount"] = likes
    if comments is not None:
        stats["commentCount"] = comments
    return {
        "id": vid,
        "snippet": {
            "title": title or f"video {vid}",
            "channelId": channel_id,
            "channelTitle": f"channel {channel_id}",
            "publishedAt": "2026-10-01T09:00:00Z",
            "thumbnails": thumbnails,
        },
        "statistics": stats,
        "contentDetails": {"duration": duration} if duration is not None else {},
    }


class FakeYouTube:
    def __init__(self, trending=None, search=None, videos=None, subscribers=None):
        self.trending: List[Dict] = trending or []
        self.search: Dict[str, List[str]] = search or {}
        self.video_items: Dict[str, Dict] = videos or {}
        self.subscribers: Dict[str, int] = subscribers or {}
        self.calls: List[tuple] = []
        self.fail_on: Optional[str] = None

    def _maybe_fail(self, name):
        if self.fail_on == name:
            raise ExternalFetchFailed(f"{name}: HTTPError: 503 Server Error")

    def most_popular(self, region_code, max_results=50):
        self.calls.append(("most_popular", region_code))
        self._maybe_fail("most_popular")
        return self.trending[:max_results]

    def search_video_ids(self, query, max_results=50):
        self.calls.append(("search", query))
        self._maybe_fail("search")
        return self.search.get(query, [])[:max_results]

    def videos(self, ids):
        self.calls.append(("videos", list(ids)))
        self._maybe_fail("videos")
        return [self.video_items[i] for i in ids if i in self.video_items]

    def channels(self, ids):
        self.calls.append(("channels", list(ids)))
        self._maybe_fail("channels")
        return [
            {"id": cid, "statistics": {"subscriberCount": str(self.subscribers[cid])}}
            for cid in ids
            if cid in self.subscribers
        ]


class MemoryStore:
    """In-memory tables with the same keyed upsert rules as BigQueryStore."""

    def __init__(self, keywords=None):
        self.trending: Dict[tuple, Dict] = {}
        self.videos: Dict[str, Dict] = {}
        self.keywords: List[Keyword] = list(keywords or [])
        self.fail_on: Optional[str] = None
        self.writes: List[str] = []

    def _maybe_fail(self, name):
        if self.fail_on == name:
            raise PersistenceWriteFailed(f"{name}: 403 Access Denied")

    def upsert_trending(self, records):
        self.writes.append("trending")
        self._maybe_fail("upsert_trending")
        for r in records:
            row = r.to_row()
            self.trending[(row["id"], row["crawled_date"])] = row
        return len(records)

    def upsert_videos(self, records):
        self.writes.append("videos")
        self._maybe_fail("upsert_videos")
        for r in records:
            row = r.to_row()
            old = self.videos.get(row["id"])
            if old is not None:
                row["keywords"] = sorted(set(old["keywords"]) | set(row["keywords"]))
            self.videos[row["id"]] = row
        return len(records)

    def load_keywords(self):
        self._maybe_fail("load_keywords")
        return [copy.copy(k) for k in self.keywords]

    def advance_keyword(self, keyword_id, collected_at, video_count):
        self.writes.append("advance")
        self._maybe_fail("advance_keyword")
        for k in self.keywords:
            if k.id == keyword_id:
                k.last_collected_at = collected_at
                k.collected_video_count = video_count

    def keyword(self, text) -> Keyword:
        return next(k for k in self.keywords if k.keyword == text)


@pytest.fixture
def settings():
    return Settings(youtube_api_key="test-key", gcp_project_id="proj", region_code="KR")


@pytest.fixture
def youtube():
    return FakeYouTube()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def ctx(settings, youtube, store):
    return CollectorContext(settings=settings, youtube=youtube, store=store)


@pytest.fixture
def now():
    return datetime.datetime(2026, 10, 19, 3, 30, tzinfo=datetime.timezone.utc)
