from __future__ import annotations
import logging
from typing import Dict, Iterable

from yt_collect.errors import ExternalFetchFailed
from yt_collect.youtube_api import MAX_IDS_PER_CALL, chunked

log = logging.getLogger(__name__)


def _subscriber_count(cid: str, raw) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ExternalFetchFailed(f"channels: bad subscriberCount {raw!r} for {cid}")


def fetch_subscriber_counts(client, channel_ids: Iterable[str]) -> Dict[str, int]:
    """
    Look up subscriber counts for `channel_ids`, 50 ids per channels.list call.

    Ids are chunked in sorted order. Channels that are missing from the
    response, or hide their subscriber count, are absent from the result;
    callers default those to 0. A failure on any chunk propagates as
    ExternalFetchFailed so a partial map is never returned.
    """
    ids = sorted({c for c in channel_ids if c})
    counts: Dict[str, int] = {}
    for batch in chunked(ids, MAX_IDS_PER_CALL):
        for it in client.channels(batch):
            if not isinstance(it, dict):
                raise ExternalFetchFailed(f"channels: item is not an object: {it!r}")
            cid = it.get("id")
            if not cid or not isinstance(cid, str):
                raise ExternalFetchFailed(f"channels: item without a channel id: {cid!r}")
            stats = it.get("statistics") or {}
            if not isinstance(stats, dict):
                raise ExternalFetchFailed(f"channels: statistics is not an object for {cid}")
            if stats.get("hiddenSubscriberCount") or "subscriberCount" not in stats:
                continue
            counts[cid] = _subscriber_count(cid, stats["subscriberCount"])
    log.info("subscriber counts: %d/%d channels resolved", len(counts), len(ids))
    return counts
