from __future__ import annotations
import logging
import uuid
from typing import Any, Dict, List, Optional, Sequence

from google.api_core.exceptions import GoogleAPIError, NotFound
from google.auth.exceptions import GoogleAuthError
from google.cloud import bigquery

from yt_collect.errors import PersistenceWriteFailed
from yt_collect.records import Keyword, KeywordVideoRecord, TrendingRecord

log = logging.getLogger(__name__)

TRENDING_TABLE = "trending_videos"
VIDEOS_TABLE = "videos"
KEYWORDS_TABLE = "keywords"

# auth failures (expired or missing credentials) surface outside GoogleAPIError
STORE_ERRORS = (GoogleAPIError, GoogleAuthError)

_VIDEO_FIELDS = [
    bigquery.SchemaField("id", "STRING", mode="REQUIRED"),
    bigquery.SchemaField("title", "STRING"),
    bigquery.SchemaField("channel_id", "STRING"),
    bigquery.SchemaField("channel_title", "STRING"),
    bigquery.SchemaField("subscriber_count", "INT64"),
    bigquery.SchemaField("view_count", "INT64"),
    bigquery.SchemaField("like_count", "INT64"),
    bigquery.SchemaField("comment_count", "INT64"),
    bigquery.SchemaField("published_at", "TIMESTAMP"),
    bigquery.SchemaField("thumbnail", "STRING"),
    bigquery.SchemaField("duration", "STRING"),
    bigquery.SchemaField("duration_seconds", "INT64"),
]

SCHEMAS: Dict[str, List[bigquery.SchemaField]] = {
    TRENDING_TABLE: _VIDEO_FIELDS
    + [
        bigquery.SchemaField("rank", "INT64"),
        bigquery.SchemaField("region_code", "STRING"),
        bigquery.SchemaField("crawled_date", "DATE", mode="REQUIRED"),
    ],
    VIDEOS_TABLE: _VIDEO_FIELDS
    + [
        bigquery.SchemaField("keywords", "STRING", mode="REPEATED"),
        bigquery.SchemaField("view_to_sub_ratio", "INT64"),
        bigquery.SchemaField("crawled_at", "TIMESTAMP"),
    ],
    KEYWORDS_TABLE: [
        bigquery.SchemaField("id", "STRING", mode="REQUIRED"),
        bigquery.SchemaField("keyword", "STRING", mode="REQUIRED"),
        bigquery.SchemaField("last_collected_at", "TIMESTAMP"),
        bigquery.SchemaField("collected_video_count", "INT64"),
    ],
}


def _columns(table: str) -> List[str]:
    return [f.name for f in SCHEMAS[table]]


def _build_merge_condition_from_keys(keys: Sequence[str]) -> str:
    conds = [f"T.{k} = S.{k}" for k in keys if k]
    return " AND ".join(conds) if conds else "FALSE"


def _build_update_set(cols: Sequence[str]) -> str:
    return ",\n      ".join(f"{c} = S.{c}" for c in cols)


def _build_source(stg: str, target: str, cols: Sequence[str], keys: Sequence[str],
                  computed: Optional[Dict[str, str]] = None) -> str:
    """
    MERGE source. Columns that need the existing row are precomputed here
    against a LEFT JOIN on the target; subqueries are not allowed in UPDATE SET.
    """
    if not computed:
        return f"`{stg}`"
    select = ",\n                ".join(f"{computed.get(c, 'S.' + c)} AS {c}" for c in cols)
    return f"""(
              SELECT
                {select}
              FROM `{stg}` S
              LEFT JOIN `{target}` T
              ON {_build_merge_condition_from_keys(keys)}
            )"""


class BigQueryStore:
    """
    trending_videos / videos / keywords in one BigQuery dataset.

    Upserts load rows into a throwaway staging table with the target's schema,
    then issue a single MERGE. Every write is keyed, so re-running a
    collection with the same data leaves the tables unchanged.
    """

    def __init__(
        self,
        project: str,
        dataset: str,
        location: str,
        client: Optional[bigquery.Client] = None,
    ):
        self.project = project
        self.dataset = dataset
        self.location = location
        self.client = client or bigquery.Client(project=project, location=location)

    def _table(self, name: str) -> str:
        return f"{self.project}.{self.dataset}.{name}"

    def ensure_tables(self) -> None:
        """Create the dataset and the three tables if missing."""
        dataset_id = f"{self.project}.{self.dataset}"
        try:
            self.client.get_dataset(dataset_id)
        except NotFound:
            ds = bigquery.Dataset(dataset_id)
            ds.location = self.location
            self.client.create_dataset(ds)
            log.info("created dataset %s", dataset_id)

        for name, schema in SCHEMAS.items():
            table_id = self._table(name)
            try:
                self.client.get_table(table_id)
            except NotFound:
                self.client.create_table(bigquery.Table(table_id, schema=schema))
                log.info("created table %s", table_id)

    def _load_staging(self, table: str, rows: List[Dict[str, Any]]) -> str:
        """Load rows into a fresh `_stg_*` table using the target's schema."""
        stg = self._table(f"_stg_{table}_{uuid.uuid4().hex[:8]}")
        job_config = bigquery.LoadJobConfig(
            write_disposition="WRITE_TRUNCATE",
            schema=SCHEMAS[table],
        )
        self.client.load_table_from_json(rows, stg, job_config=job_config).result()
        return stg

    def _merge(self, table: str, rows: List[Dict[str, Any]], keys: Sequence[str],
               computed: Optional[Dict[str, str]] = None) -> int:
        if not rows:
            return 0
        cols = _columns(table)
        update_cols = [c for c in cols if c not in keys]
        stg = None
        try:
            stg = self._load_staging(table, rows)
            query = f"""
            MERGE `{self._table(table)}` T
            USING {_build_source(stg, self._table(table), cols, keys, computed)} S
            ON {_build_merge_condition_from_keys(keys)}
            WHEN MATCHED THEN UPDATE SET
              {_build_update_set(update_cols)}
            WHEN NOT MATCHED THEN INSERT ({", ".join(cols)})
              VALUES ({", ".join("S." + c for c in cols)})
            """
            self.client.query(query).result()
        except STORE_ERRORS as e:
            raise PersistenceWriteFailed(f"{table}: {e}") from e
        finally:
            if stg:
                try:
                    self.client.delete_table(stg, not_found_ok=True)
                except STORE_ERRORS as e:
                    log.warning("could not drop staging table %s: %s", stg, e)
        log.info("%s: upserted %d rows", table, len(rows))
        return len(rows)

    def upsert_trending(self, records: List[TrendingRecord]) -> int:
        """Last write wins per (id, crawled_date)."""
        return self._merge(TRENDING_TABLE, [r.to_row() for r in records], keys=["id", "crawled_date"])

    def upsert_videos(self, records: List[KeywordVideoRecord]) -> int:
        """Overwrite the snapshot fields per id; keywords become the union."""
        keywords_union = (
            "ARRAY(SELECT DISTINCT k FROM UNNEST("
            "ARRAY_CONCAT(IFNULL(T.keywords, CAST([] AS ARRAY<STRING>)), "
            "IFNULL(S.keywords, CAST([] AS ARRAY<STRING>)))) AS k ORDER BY k)"
        )
        return self._merge(
            VIDEOS_TABLE,
            [r.to_row() for r in records],
            keys=["id"],
            computed={"keywords": keywords_union},
        )

    def load_keywords(self) -> List[Keyword]:
        sql = (
            "SELECT id, keyword, last_collected_at, collected_video_count "
            f"FROM `{self._table(KEYWORDS_TABLE)}`"
            " ORDER BY id"
        )
        try:
            rows = list(self.client.query(sql).result())
        except STORE_ERRORS as e:
            raise PersistenceWriteFailed(f"{KEYWORDS_TABLE}: read failed: {e}") from e
        return [
            Keyword(
                id=r["id"],
                keyword=r["keyword"],
                last_collected_at=r["last_collected_at"],
                collected_video_count=int(r["collected_video_count"] or 0),
            )
            for r in rows
        ]

    def advance_keyword(self, keyword_id: str, collected_at, video_count: int) -> None:
        sql = f"""
        UPDATE `{self._table(KEYWORDS_TABLE)}`
        SET last_collected_at = @collected_at, collected_video_count = @video_count
        WHERE id = @keyword_id
        """
        job_config = bigquery.QueryJobConfig(
            query_parameters=[
                bigquery.ScalarQueryParameter("collected_at", "TIMESTAMP", collected_at),
                bigquery.ScalarQueryParameter("video_count", "INT64", video_count),
                bigquery.ScalarQueryParameter("keyword_id", "STRING", keyword_id),
            ]
        )
        try:
            self.client.query(sql, job_config=job_config).result()
        except STORE_ERRORS as e:
            raise PersistenceWriteFailed(f"{KEYWORDS_TABLE}: {e}") from e

    def register_keyword(self, text: str) -> bool:
        """Add `text` to the registry unless already present. True if inserted."""
        text = (text or "").strip()
        if not text:
            raise ValueError("keyword must not be empty")
        sql = f"""
        MERGE `{self._table(KEYWORDS_TABLE)}` T
        USING (SELECT @keyword AS keyword) S
        ON T.keyword = S.keyword
        WHEN NOT MATCHED THEN
          INSERT (id, keyword, last_collected_at, collected_video_count)
          VALUES (GENERATE_UUID(), S.keyword, NULL, 0)
        """
        job_config = bigquery.QueryJobConfig(
            query_parameters=[bigquery.ScalarQueryParameter("keyword", "STRING", text)]
        )
        try:
            job = self.client.query(sql, job_config=job_config)
            job.result()
        except STORE_ERRORS as e:
            raise PersistenceWriteFailed(f"{KEYWORDS_TABLE}: {e}") from e
        return bool(job.num_dml_affected_rows)
