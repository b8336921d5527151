#!/usr/bin/env python3
"""Run the extraction pipeline over a saved group page.

Handy for checking selectors against a page saved from the browser,
without logging in or touching the database.

Usage:
    python scripts/extract_html.py page.html --group-id 123456789
    python scripts/extract_html.py page.html --group-id 123456789 --json
"""

import argparse
import json
from pathlib import Path

from group_scraper.filters.criteria import FilterCriteria, apply_filters
from group_scraper.parser import run_extraction
from group_scraper.storage.dedup import merge_posts


def main():
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("files", nargs="+", type=Path, help="saved HTML files")
    parser.add_argument("--group-id", required=True)
    parser.add_argument("--min-likes", type=int, default=0)
    parser.add_argument("--json", action="store_true", help="print posts as JSON")
    args = parser.parse_args()

    post_lists = []
    for path in args.files:
        result = run_extraction(path.read_bytes(), args.group_id)
        print(
            f"{path.name}: strategy={result.strategy} candidates={result.candidates} "
            f"posts={len(result.posts)} rejected={result.rejected}"
        )
        post_lists.append(result.posts)

    posts = merge_posts(*post_lists)
    kept, stats = apply_filters(posts, FilterCriteria(min_likes=args.min_likes))
    print(f"Merged: {len(posts)} posts, filters: {stats}")
    print()

    if args.json:
        print(json.dumps([post.to_dict() for post in kept], indent=2, ensure_ascii=False))
        return

    for post in kept:
        print(f"[{post.post_id}] ({post.id_source}) {post.author_name or '?'}")
        print(f"  likes={post.likes} comments={post.comments} shares={post.shares} type={post.post_type}")
        print(f"  posted={post.posted_at.isoformat()} found={post.timestamp_found}")
        print(f"  {post.content[:120]!r}")
        print(f"  {post.url}")
        print()


if __name__ == "__main__":
    main()
