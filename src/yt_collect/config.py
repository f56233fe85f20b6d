"""
Process-wide settings for the collectors.

Env (.env is picked up via python-dotenv):
  YOUTUBE_API_KEY        (required)
  GCP_PROJECT_ID         (required for the BigQuery store)
  BQ_DATASET             (default: youtube_trends)
  BQ_LOCATION            (default: asia-northeast3)
  TRENDING_REGION_CODE   (default: KR)
  YT_REQUEST_TIMEOUT     (seconds, default: 30)
"""
from __future__ import annotations
import os
from dataclasses import dataclass
from typing import Any, Optional

from dotenv import find_dotenv, load_dotenv

DEFAULT_DATASET = "youtube_trends"
DEFAULT_LOCATION = "asia-northeast3"
DEFAULT_REGION = "KR"
DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class Settings:
    youtube_api_key: str
    gcp_project_id: Optional[str] = None
    bq_dataset: str = DEFAULT_DATASET
    bq_location: str = DEFAULT_LOCATION
    region_code: str = DEFAULT_REGION
    request_timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv(find_dotenv())
        api_key = os.getenv("YOUTUBE_API_KEY")
        if not api_key:
            raise RuntimeError("YOUTUBE_API_KEY missing in environment or .env")
        timeout_raw = os.getenv("YT_REQUEST_TIMEOUT")
        try:
            timeout = float(timeout_raw) if timeout_raw else DEFAULT_TIMEOUT
        except ValueError:
            raise RuntimeError(f"YT_REQUEST_TIMEOUT is not a number: {timeout_raw!r}")
        return cls(
            youtube_api_key=api_key,
            gcp_project_id=os.getenv("GCP_PROJECT_ID"),
            bq_dataset=os.getenv("BQ_DATASET", DEFAULT_DATASET),
            bq_location=os.getenv("BQ_LOCATION", DEFAULT_LOCATION),
            region_code=os.getenv("TRENDING_REGION_CODE", DEFAULT_REGION),
            request_timeout=timeout,
        )


@dataclass
class CollectorContext:
    """Settings plus the two collaborators a collector run talks to."""

    settings: Settings
    youtube: Any
    store: Any

    @classmethod
    def from_settings(cls, settings: Settings) -> "CollectorContext":
        # imported here so tests that inject fakes never need GCP credentials
        from yt_collect.bq_store import BigQueryStore
        from yt_collect.youtube_api import YouTubeClient

        if not settings.gcp_project_id:
            raise RuntimeError("GCP_PROJECT_ID missing in environment or .env")
        return cls(
            settings=settings,
            youtube=YouTubeClient(settings.youtube_api_key, timeout=settings.request_timeout),
            store=BigQueryStore(
                project=settings.gcp_project_id,
                dataset=settings.bq_dataset,
                location=settings.bq_location,
            ),
        )

    @classmethod
    def from_env(cls) -> "CollectorContext":
        return cls.from_settings(Settings.from_env())
