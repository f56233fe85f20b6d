"""
The two collection runs.

collect_trending:
  mostPopular(region) → channel ids → subscriber counts → rows → trending_videos

collect_keyword_videos:
  least recently collected keyword → search → videos.list → channel ids
  → subscriber counts → rows → videos → advance keyword

Each call is one run. Failures end the run and come back as a CollectResult
with status 500; the scheduler decides when to try again.
"""
from __future__ import annotations
import datetime
import enum
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import pytz

from yt_collect.channel_stats import fetch_subscriber_counts
from yt_collect.config import CollectorContext
from yt_collect.errors import CollectorError, NoKeywordsAvailable
from yt_collect.records import (
    Keyword,
    VideoItem,
    build_keyword_records,
    build_trending_records,
)
from yt_collect.youtube_api import MAX_IDS_PER_CALL

log = logging.getLogger(__name__)

UTC = pytz.utc
_NEVER = datetime.datetime.min.replace(tzinfo=UTC)


class TrendingStage(str, enum.Enum):
    SELECT_REGION = "SelectRegion"
    FETCH_TOP50 = "FetchTop50"
    EXTRACT_CHANNEL_IDS = "ExtractChannelIds"
    RESOLVE_CHANNEL_STATS = "ResolveChannelStats"
    BUILD_RECORDS = "BuildRecords"
    UPSERT = "Upsert"
    DONE = "Done"


class KeywordStage(str, enum.Enum):
    SELECT_KEYWORD = "SelectKeyword"
    SEARCH = "Search"
    FETCH_VIDEO_STATS = "FetchVideoStats"
    EXTRACT_CHANNEL_IDS = "ExtractChannelIds"
    RESOLVE_CHANNEL_STATS = "ResolveChannelStats"
    BUILD_RECORDS = "BuildRecords"
    UPSERT_VIDEOS = "UpsertVideos"
    ADVANCE_KEYWORD = "AdvanceKeyword"
    DONE = "Done"


@dataclass
class CollectResult:
    collected: int = 0
    date: Optional[str] = None
    keyword: Optional[str] = None
    error: Optional[str] = None
    stage: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def status_code(self) -> int:
        return 200 if self.ok else 500

    def to_payload(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"collected": self.collected}
        if self.date is not None:
            out["date"] = self.date
        if self.keyword is not None:
            out["keyword"] = self.keyword
        if self.error is not None:
            out["error"] = self.error
        return out


def _now(now: Optional[datetime.datetime]) -> datetime.datetime:
    if now is None:
        return datetime.datetime.now(tz=UTC)
    if now.tzinfo is None:
        return UTC.localize(now)
    return now.astimezone(UTC)


def _unique_channel_ids(items: List[VideoItem]) -> List[str]:
    # de-duplicate while preserving order
    return list(dict.fromkeys(it.channel_id for it in items if it.channel_id))


def _failed(name: str, stage: enum.Enum, err: CollectorError,
            keyword: Optional[str] = None) -> CollectResult:
    err.stage = err.stage or stage.value
    if keyword is not None:
        log.error("[%s] failed at %s (keyword=%r): %s", name, err.stage, keyword, err)
    else:
        log.error("[%s] failed at %s: %s", name, err.stage, err)
    return CollectResult(keyword=keyword, error=str(err), stage=err.stage)


def collect_trending(ctx: CollectorContext, now: Optional[datetime.datetime] = None) -> CollectResult:
    """Store today's snapshot of the region's top 50 trending videos."""
    stage = TrendingStage.SELECT_REGION
    try:
        region = ctx.settings.region_code
        crawled_date = _now(now).date()

        stage = TrendingStage.FETCH_TOP50
        raw = ctx.youtube.most_popular(region, max_results=MAX_IDS_PER_CALL)
        if not raw:
            log.info("[crawl-trending] no trending videos for %s", region)
            return CollectResult(collected=0, stage=TrendingStage.DONE.value)
        items = [VideoItem.from_api(it) for it in raw]

        stage = TrendingStage.EXTRACT_CHANNEL_IDS
        channel_ids = _unique_channel_ids(items)

        stage = TrendingStage.RESOLVE_CHANNEL_STATS
        subscribers = fetch_subscriber_counts(ctx.youtube, channel_ids)

        stage = TrendingStage.BUILD_RECORDS
        records = build_trending_records(items, subscribers, region, crawled_date)

        stage = TrendingStage.UPSERT
        ctx.store.upsert_trending(records)
    except CollectorError as e:
        return _failed("crawl-trending", stage, e)

    log.info("[crawl-trending] done: %d rows stored (%s, %s)", len(records), region, crawled_date)
    return CollectResult(
        collected=len(records),
        date=crawled_date.isoformat(),
        stage=TrendingStage.DONE.value,
    )


def select_keyword(keywords: List[Keyword]) -> Keyword:
    """
    The keyword whose last collection is oldest. Never-collected keywords
    come first; ties keep registry order.
    """
    if not keywords:
        raise NoKeywordsAvailable("no keywords registered")

    def sort_key(kw: Keyword) -> datetime.datetime:
        ts = kw.last_collected_at
        if ts is None:
            return _NEVER
        return _now(ts)

    return min(keywords, key=sort_key)


def collect_keyword_videos(ctx: CollectorContext, now: Optional[datetime.datetime] = None) -> CollectResult:
    """Collect search results for the next keyword in rotation."""
    stage = KeywordStage.SELECT_KEYWORD
    keyword: Optional[str] = None
    try:
        chosen = select_keyword(ctx.store.load_keywords())
        keyword = chosen.keyword
        log.info("[crawl-videos] keyword: %s", keyword)

        stage = KeywordStage.SEARCH
        video_ids = list(dict.fromkeys(ctx.youtube.search_video_ids(keyword, max_results=MAX_IDS_PER_CALL)))
        if not video_ids:
            # left in place so the keyword comes up again next run
            log.info("[crawl-videos] no search results for %r", keyword)
            return CollectResult(collected=0, keyword=keyword, stage=KeywordStage.DONE.value)

        stage = KeywordStage.FETCH_VIDEO_STATS
        items = [VideoItem.from_api(it) for it in ctx.youtube.videos(video_ids)]
        if not items:
            log.info("[crawl-videos] %d ids for %r resolved to no videos", len(video_ids), keyword)
            return CollectResult(collected=0, keyword=keyword, stage=KeywordStage.DONE.value)

        stage = KeywordStage.EXTRACT_CHANNEL_IDS
        channel_ids = _unique_channel_ids(items)

        stage = KeywordStage.RESOLVE_CHANNEL_STATS
        subscribers = fetch_subscriber_counts(ctx.youtube, channel_ids)

        stage = KeywordStage.BUILD_RECORDS
        crawled_at = _now(now)
        records = build_keyword_records(items, subscribers, keyword, crawled_at)

        stage = KeywordStage.UPSERT_VIDEOS
        ctx.store.upsert_videos(records)

        stage = KeywordStage.ADVANCE_KEYWORD
        ctx.store.advance_keyword(chosen.id, crawled_at, len(records))
    except CollectorError as e:
        return _failed("crawl-videos", stage, e, keyword=keyword)

    log.info("[crawl-videos] done: %s (%d videos)", keyword, len(records))
    return CollectResult(collected=len(records), keyword=keyword, stage=KeywordStage.DONE.value)
