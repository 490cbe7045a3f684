from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class Post(BaseModel):
    title: str
    author: str
    score: int

    model_config = ConfigDict(frozen=True, extra="ignore")


def _coerce_score(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def parse_post(data: dict[str, Any]) -> Post:
    """Build a Post from one listing child's ``data`` payload.

    Missing fields fall back to ``""`` for title/author and ``0`` for score,
    so a post without an author is tallied under the empty-string key.
    """
    return Post(
        title=str(data.get("title") or ""),
        author=str(data.get("author") or ""),
        score=_coerce_score(data.get("score")),
    )


def parse_listing(payload: dict[str, Any] | None) -> list[Post]:
    if not payload:
        return []
    children = (payload.get("data") or {}).get("children") or []

    posts: list[Post] = []
    for child in children:
        if not isinstance(child, dict):
            continue
        data = child.get("data")
        if not isinstance(data, dict):
            continue
        posts.append(parse_post(data))
    return posts
