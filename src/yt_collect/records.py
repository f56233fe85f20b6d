"""
Normalized rows for the two video tables, plus the keyword registry entry.

The videos.list payload is loose (statistics can be missing, likeCount is
hidden on some videos, thumbnails vary). VideoItem turns it into explicit
optional fields once; every default the tables rely on is applied here.
"""
from __future__ import annotations
import datetime
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from yt_collect.duration import parse_duration
from yt_collect.errors import ExternalFetchFailed


def _to_int(v: Any) -> int:
    try:
        return max(int(v), 0)
    except (TypeError, ValueError):
        return 0


def _part(it: Dict[str, Any], name: str) -> Dict[str, Any]:
    part = it.get(name) or {}
    if not isinstance(part, dict):
        raise ExternalFetchFailed(f"videos: {name} is not an object for {it.get('id')}")
    return part


def pick_thumbnail(thumbnails: Optional[Dict[str, Any]]) -> Optional[str]:
    """URL of the high-resolution thumbnail, else the default one."""
    if not isinstance(thumbnails, dict):
        return None
    for size in ("high", "default"):
        entry = thumbnails.get(size)
        url = entry.get("url") if isinstance(entry, dict) else None
        if url:
            return url
    return None


def view_to_subscriber_ratio(view_count: int, subscriber_count: int) -> int:
    # half-up, not Python's round-half-even
    if subscriber_count <= 0:
        return 0
    return int(math.floor(view_count / subscriber_count + 0.5))


@dataclass
class VideoItem:
    id: str
    title: Optional[str] = None
    channel_id: Optional[str] = None
    channel_title: Optional[str] = None
    published_at: Optional[str] = None
    view_count: Optional[int] = None
    like_count: Optional[int] = None
    comment_count: Optional[int] = None
    duration: Optional[str] = None
    thumbnails: Optional[Dict[str, Any]] = None

    @classmethod
    def from_api(cls, it: Dict[str, Any]) -> "VideoItem":
        if not isinstance(it, dict):
            raise ExternalFetchFailed(f"videos: item is not an object: {it!r}")
        vid = it.get("id")
        if not vid or not isinstance(vid, str):
            raise ExternalFetchFailed(f"videos: item without a video id: {vid!r}")
        sn = _part(it, "snippet")
        st = _part(it, "statistics")
        cd = _part(it, "contentDetails")
        return cls(
            id=vid,
            title=sn.get("title"),
            channel_id=sn.get("channelId"),
            channel_title=sn.get("channelTitle"),
            published_at=sn.get("publishedAt"),
            view_count=_to_int(st["viewCount"]) if "viewCount" in st else None,
            like_count=_to_int(st["likeCount"]) if "likeCount" in st else None,
            comment_count=_to_int(st["commentCount"]) if "commentCount" in st else None,
            duration=cd.get("duration"),
            thumbnails=sn.get("thumbnails"),
        )


@dataclass
class _BaseRecord:
    id: str
    title: Optional[str]
    channel_id: Optional[str]
    channel_title: Optional[str]
    subscriber_count: int
    view_count: int
    like_count: int
    comment_count: int
    published_at: Optional[str]
    thumbnail: Optional[str]
    duration: str
    duration_seconds: int

    @classmethod
    def _common(cls, item: VideoItem, subscribers: Dict[str, int]) -> Dict[str, Any]:
        return dict(
            id=item.id,
            title=item.title,
            channel_id=item.channel_id,
            channel_title=item.channel_title,
            subscriber_count=subscribers.get(item.channel_id or "", 0),
            view_count=item.view_count or 0,
            like_count=item.like_count or 0,
            comment_count=item.comment_count or 0,
            published_at=item.published_at,
            thumbnail=pick_thumbnail(item.thumbnails),
            duration=item.duration or "",
            duration_seconds=parse_duration(item.duration),
        )

    def _base_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "channel_id": self.channel_id,
            "channel_title": self.channel_title,
            "subscriber_count": self.subscriber_count,
            "view_count": self.view_count,
            "like_count": self.like_count,
            "comment_count": self.comment_count,
            "published_at": self.published_at,
            "thumbnail": self.thumbnail,
            "duration": self.duration,
            "duration_seconds": self.duration_seconds,
        }


@dataclass
class TrendingRecord(_BaseRecord):
    """Dated snapshot row of trending_videos, keyed by (id, crawled_date)."""

    rank: int = 0
    region_code: str = ""
    crawled_date: Optional[datetime.date] = None

    def key(self):
        return (self.id, self.crawled_date)

    def to_row(self) -> Dict[str, Any]:
        row = self._base_row()
        row.update(
            rank=self.rank,
            region_code=self.region_code,
            crawled_date=self.crawled_date.isoformat() if self.crawled_date else None,
        )
        return row


@dataclass
class KeywordVideoRecord(_BaseRecord):
    """Canonical row of videos, keyed by id; keywords accumulate across runs."""

    keywords: List[str] = field(default_factory=list)
    view_to_sub_ratio: int = 0
    crawled_at: Optional[datetime.datetime] = None

    def key(self):
        return self.id

    def to_row(self) -> Dict[str, Any]:
        row = self._base_row()
        row.update(
            keywords=sorted(set(self.keywords)),
            view_to_sub_ratio=self.view_to_sub_ratio,
            crawled_at=self.crawled_at.isoformat() if self.crawled_at else None,
        )
        return row


@dataclass
class Keyword:
    id: str
    keyword: str
    last_collected_at: Optional[datetime.datetime] = None
    collected_video_count: int = 0


def dedupe_by_key(records: Iterable[Any]) -> List[Any]:
    """Drop records whose key was already seen; the first occurrence wins."""
    seen = set()
    out = []
    for r in records:
        k = r.key()
        if k in seen:
            continue
        seen.add(k)
        out.append(r)
    return out


def build_trending_records(
    items: List[VideoItem],
    subscribers: Dict[str, int],
    region_code: str,
    crawled_date: datetime.date,
) -> List[TrendingRecord]:
    """One row per video in response order; rank is the 1-based position."""
    rows = [
        TrendingRecord(
            **TrendingRecord._common(item, subscribers),
            rank=idx + 1,
            region_code=region_code,
            crawled_date=crawled_date,
        )
        for idx, item in enumerate(items)
    ]
    return dedupe_by_key(rows)


def build_keyword_records(
    items: List[VideoItem],
    subscribers: Dict[str, int],
    keyword: str,
    crawled_at: datetime.datetime,
) -> List[KeywordVideoRecord]:
    rows = []
    for item in items:
        common = KeywordVideoRecord._common(item, subscribers)
        rows.append(
            KeywordVideoRecord(
                **common,
                keywords=[keyword],
                view_to_sub_ratio=view_to_subscriber_ratio(
                    common["view_count"], common["subscriber_count"]
                ),
                crawled_at=crawled_at,
            )
        )
    return dedupe_by_key(rows)
