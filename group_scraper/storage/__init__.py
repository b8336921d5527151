from .database import init_db, get_session, session_scope
from .dedup import merge_posts
from .models import PostRecord, Group, ScrapeRun
from .store import PostStore

__all__ = [
    "init_db",
    "get_session",
    "session_scope",
    "merge_posts",
    "PostRecord",
    "Group",
    "ScrapeRun",
    "PostStore",
]
