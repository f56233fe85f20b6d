"""
Thin YouTube Data API v3 client (requests).

Calls used by the collectors:
  videos.list?chart=mostPopular   → ranked trending videos for a region
  search.list?type=video&q=...    → video ids matching a keyword
  videos.list?id=...              → statistics + snippet + contentDetails
  channels.list?id=...            → channel statistics (subscriberCount)

Any transport error, timeout, non-2xx status or unparseable body is raised as
ExternalFetchFailed. There is no retry here; a failed run is re-triggered by
the scheduler.
"""
from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional

import requests

from yt_collect.errors import ExternalFetchFailed

log = logging.getLogger(__name__)

YOUTUBE_API = "https://www.googleapis.com/youtube/v3"
MAX_IDS_PER_CALL = 50
VIDEO_PARTS = "snippet,statistics,contentDetails"


def chunked(xs: List[str], n: int) -> List[List[str]]:
    return [xs[i : i + n] for i in range(0, len(xs), n)]


class YouTubeClient:
    def __init__(
        self,
        api_key: str,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
        base_url: str = YOUTUBE_API,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self.base_url = base_url
        self.session = session or requests.Session()

    def _get(self, resource: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """GET `resource` and return the decoded JSON body with a list `items`."""
        url = f"{self.base_url}/{resource}"
        query = dict(params, key=self.api_key)
        try:
            r = self.session.get(url, params=query, timeout=self.timeout)
            r.raise_for_status()
            data = r.json()
        except requests.RequestException as e:
            raise ExternalFetchFailed(f"{resource}: {type(e).__name__}: {e}") from e
        except ValueError as e:
            raise ExternalFetchFailed(f"{resource}: response is not JSON") from e

        if not isinstance(data, dict):
            raise ExternalFetchFailed(f"{resource}: unexpected response shape")
        if data.get("error"):
            err = data["error"]
            msg = err.get("message") if isinstance(err, dict) else err
            raise ExternalFetchFailed(f"{resource}: API error: {msg}")
        items = data.get("items", [])
        if items is None:
            items = []
        if not isinstance(items, list):
            raise ExternalFetchFailed(f"{resource}: 'items' is not a list")
        data["items"] = items
        return data

    def most_popular(self, region_code: str, max_results: int = MAX_IDS_PER_CALL) -> List[Dict[str, Any]]:
        """Top ranked videos for a region, in rank order."""
        data = self._get(
            "videos",
            {
                "part": VIDEO_PARTS,
                "chart": "mostPopular",
                "regionCode": region_code,
                "maxResults": max_results,
            },
        )
        return data["items"]

    def search_video_ids(self, query: str, max_results: int = MAX_IDS_PER_CALL) -> List[str]:
        """Video ids for a text search, in result order."""
        data = self._get(
            "search",
            {"part": "snippet", "q": query, "type": "video", "maxResults": max_results},
        )
        ids: List[str] = []
        for it in data["items"]:
            ref = it.get("id") if isinstance(it, dict) else None
            if not isinstance(ref, dict):
                raise ExternalFetchFailed(f"search: malformed result {it!r}")
            vid = ref.get("videoId")
            if vid:
                ids.append(vid)
        return ids

    def videos(self, ids: List[str]) -> List[Dict[str, Any]]:
        """Video resources for `ids`, fetched 50 ids per call."""
        out: List[Dict[str, Any]] = []
        for chunk in chunked(ids, MAX_IDS_PER_CALL):
            data = self._get(
                "videos",
                {"part": VIDEO_PARTS, "id": ",".join(chunk), "maxResults": MAX_IDS_PER_CALL},
            )
            out.extend(data["items"])
        return out

    def channels(self, ids: List[str]) -> List[Dict[str, Any]]:
        """Channel resources (statistics part) for at most 50 ids."""
        if len(ids) > MAX_IDS_PER_CALL:
            raise ValueError(f"channels.list accepts at most {MAX_IDS_PER_CALL} ids, got {len(ids)}")
        data = self._get(
            "channels",
            {"part": "statistics", "id": ",".join(ids), "maxResults": MAX_IDS_PER_CALL},
        )
        log.debug("channels.list: %d ids → %d items", len(ids), len(data["items"]))
        return data["items"]
