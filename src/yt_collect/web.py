"""
HTTP triggers for the collectors.

- POST /crawl-trending : one trending snapshot run
- POST /crawl-videos   : one keyword rotation run
- GET  /healthz        : liveness probe

Both POST routes take no input and answer {collected, date?, keyword?, error?}
with 200 on completed runs (zero results included) and 500 on failure.

Run locally:
  uvicorn yt_collect.web:app --port 8080
"""
from __future__ import annotations
import logging
import threading
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from yt_collect.collectors import CollectResult, collect_keyword_videos, collect_trending
from yt_collect.config import CollectorContext

log = logging.getLogger(__name__)


def create_app(context_factory: Optional[Callable[[], CollectorContext]] = None) -> FastAPI:
    factory = context_factory or CollectorContext.from_env
    app = FastAPI(title="YouTube trend collector")
    app.state.context = None
    # sync handlers run in the threadpool; one context per app
    lock = threading.Lock()

    def _context(request: Request) -> CollectorContext:
        with lock:
            if request.app.state.context is None:
                request.app.state.context = factory()
            return request.app.state.context

    def _run(request: Request, collector: Callable[[CollectorContext], CollectResult], name: str):
        try:
            result = collector(_context(request))
        except Exception as e:
            log.exception("[%s] unexpected failure", name)
            return JSONResponse({"collected": 0, "error": f"{type(e).__name__}: {e}"}, status_code=500)
        return JSONResponse(result.to_payload(), status_code=result.status_code)

    @app.get("/healthz")
    def healthz():
        return {"status": "ok"}

    @app.post("/crawl-trending")
    def crawl_trending(request: Request):
        return _run(request, collect_trending, "crawl-trending")

    @app.post("/crawl-videos")
    def crawl_videos(request: Request):
        return _run(request, collect_keyword_videos, "crawl-videos")

    return app


app = create_app()
