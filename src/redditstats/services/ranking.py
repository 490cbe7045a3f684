from __future__ import annotations

from redditstats.schemas.post import Post

DEFAULT_TOP_N = 10


def rank_posts(posts: list[Post], limit: int = DEFAULT_TOP_N) -> list[Post]:
    # list.sort is stable, so equal scores keep their arrival order.
    ranked = sorted(posts, key=lambda post: post.score, reverse=True)
    return ranked[:limit]


def add_to_ranking(ranking: list[Post], post: Post, limit: int = DEFAULT_TOP_N) -> list[Post]:
    """Append ``post`` and return the re-sorted ranking truncated to ``limit``."""
    return rank_posts([*ranking, post], limit=limit)


def tally_author(tally: dict[str, int], author: str) -> int:
    tally[author] = tally.get(author, 0) + 1
    return tally[author]


def ordered_tally(tally: dict[str, int]) -> list[tuple[str, int]]:
    return sorted(tally.items(), key=lambda item: (-item[1], item[0]))
