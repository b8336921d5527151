"""Read-only HTTP API over the stored posts."""

import csv
import io
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Optional

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlalchemy.exc import SQLAlchemyError

from .. import __version__
from ..config import config
from ..logging_config import setup_logging
from ..storage.database import init_db
from ..storage.store import PostStore

logger = structlog.get_logger()

DEFAULT_PAGE_SIZE = 20
DEFAULT_GROUP_LIMIT = 50
MAX_GROUP_LIMIT = 100

CSV_COLUMNS = ("Group Name", "Author", "Content", "Likes", "Comments", "Shares", "Post Type", "Timestamp", "URL")


def envelope(data: Any = None, count: Optional[int] = None) -> dict[str, Any]:
    return {"success": True, "data": data, "error": None, "count": count}


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "data": None, "error": message, "count": None},
    )


def _min_likes(value: Optional[int]) -> int:
    if value is None or value < 1:
        return config.api_default_min_likes
    return value


def _format_timestamp(value: Optional[str]) -> str:
    if not value:
        return ""
    return datetime.fromisoformat(value).strftime("%Y-%m-%d %H:%M:%S")


def posts_to_csv(posts: list[dict[str, Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(CSV_COLUMNS)
    for post in posts:
        writer.writerow([
            post.get("group_name") or "",
            post.get("author_name") or "",
            post.get("content") or "",
            post.get("likes", 0),
            post.get("comments", 0),
            post.get("shares", 0),
            post.get("post_type") or "",
            _format_timestamp(post.get("posted_at")),
            post.get("url") or "",
        ])
    return buffer.getvalue()


def create_app(store: Optional[PostStore] = None) -> FastAPI:
    """Build the API. Without a store, the configured database is opened on startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        if app.state.store is None:
            init_db()
            app.state.store = PostStore()
            logger.info("Database initialized")
        logger.info("API started", version=__version__)
        yield
        logger.info("API stopped")

    app = FastAPI(
        title="Facebook Group Scraper API",
        description="High-engagement posts collected from Facebook groups",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.error("Database query failed", path=request.url.path, error=str(exc))
        return error_response(f"Database query failed: {exc.__class__.__name__}", 500)

    def get_store(request: Request) -> PostStore:
        return request.app.state.store

    @app.get("/")
    async def root():
        return envelope({
            "message": "Facebook Group Scraper API",
            "version": __version__,
            "endpoints": [
                "/api/posts",
                "/api/posts/group/{group_id}",
                "/api/stats",
                "/api/authors",
                "/api/trends",
                "/api/export/csv",
                "/api/runs",
                "/api/health",
            ],
        })

    @app.get("/api/posts")
    def list_posts(
        request: Request,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
        min_likes: Optional[int] = None,
        days: int = 5,
    ):
        """High-engagement posts, most liked first."""
        page = max(page, 1)
        if page_size < 1 or page_size > config.api_max_page_size:
            page_size = DEFAULT_PAGE_SIZE
        min_likes = _min_likes(min_likes)

        store = get_store(request)
        posts = store.get_posts(page=page, page_size=page_size, min_likes=min_likes, days=days)
        total = store.count_posts(min_likes=min_likes, days=days)
        return envelope(
            {"posts": posts, "total_count": total, "page": page, "page_size": page_size},
            count=len(posts),
        )

    @app.get("/api/posts/group/{group_id}")
    def posts_by_group(request: Request, group_id: str, limit: int = DEFAULT_GROUP_LIMIT):
        if limit < 1 or limit > MAX_GROUP_LIMIT:
            limit = DEFAULT_GROUP_LIMIT
        posts = get_store(request).get_posts_by_group(group_id, limit=limit)
        return envelope(posts, count=len(posts))

    @app.get("/api/stats")
    def stats(request: Request):
        return envelope(get_store(request).get_stats(high_engagement_likes=config.high_engagement_likes))

    @app.get("/api/authors")
    def top_authors(request: Request, limit: int = 10):
        authors = get_store(request).get_top_authors(limit=max(1, min(limit, MAX_GROUP_LIMIT)))
        return envelope(authors, count=len(authors))

    @app.get("/api/trends")
    def engagement_trends(request: Request, days: int = 30):
        trends = get_store(request).get_engagement_trends(days=max(1, days))
        return envelope(trends, count=len(trends))

    @app.get("/api/export/csv")
    def export_csv(request: Request, min_likes: Optional[int] = None, days: int = 5):
        posts = get_store(request).get_posts_for_export(min_likes=_min_likes(min_likes), days=days)
        filename = f"facebook_posts_{datetime.now(timezone.utc):%Y-%m-%d}.csv"
        return Response(
            content=posts_to_csv(posts),
            media_type="text/csv",
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )

    @app.get("/api/runs")
    def scrape_runs(request: Request, limit: int = 20):
        runs = get_store(request).recent_runs(limit=max(1, min(limit, MAX_GROUP_LIMIT)))
        return envelope(runs, count=len(runs))

    @app.get("/api/health")
    def health(request: Request):
        try:
            get_store(request).ping()
        except SQLAlchemyError as e:
            logger.error("Health check failed", error=str(e))
            return error_response("Database connection failed", 503)
        return envelope({
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "database": "connected",
        })

    return app


def run():
    """Serve the API with uvicorn."""
    setup_logging(config.log_level)
    uvicorn.run(create_app(), host=config.api_host, port=config.api_port, log_level="info")


if __name__ == "__main__":
    run()
