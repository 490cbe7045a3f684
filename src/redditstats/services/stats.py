from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Mapping

from redditstats.config import Settings
from redditstats.schemas.post import Post
from redditstats.services.ranking import DEFAULT_TOP_N, add_to_ranking, ordered_tally, tally_author
from redditstats.services.reddit_client import PostFetcher

logger = logging.getLogger(__name__)

# Queued behind any pending posts so the consumer drains them before exiting.
_CLOSED = object()


@dataclass(frozen=True)
class StatsSnapshot:
    top_posts: tuple[Post, ...] = ()
    user_posts: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))
    limit: int = DEFAULT_TOP_N

    def __hash__(self) -> int:
        return hash((self.top_posts, frozenset(self.user_posts.items()), self.limit))


Reporter = Callable[[StatsSnapshot], None]


def log_stats(snapshot: StatsSnapshot) -> None:
    logger.info("Top %s Posts by Upvotes:", snapshot.limit)
    for post in snapshot.top_posts:
        logger.info("%s - Upvotes: %s", post.title, post.score)

    logger.info("Top Users by Post Count:")
    for author, count in ordered_tally(snapshot.user_posts):
        logger.info("%s - Posts: %s", author, count)


class SubredditStats:
    """Polls one subreddit and keeps a top-N ranking plus per-author counts.

    A producer task fetches a batch every ``poll_interval_seconds`` and hands
    each post to a single consumer task through a bounded queue, so a slow
    consumer holds the producer back. The consumer updates the ranking and
    tally and runs the reporter under one lock, which is the same lock
    ``snapshot()`` reads under.
    """

    def __init__(
        self,
        fetcher: PostFetcher,
        subreddit: str,
        *,
        top_n: int = DEFAULT_TOP_N,
        poll_interval_seconds: float = 10.0,
        queue_size: int = 1,
        reporter: Reporter | None = None,
    ) -> None:
        if not subreddit.strip():
            raise ValueError("subreddit must be a non-empty name")
        if top_n < 1:
            raise ValueError("top_n must be at least 1")
        if poll_interval_seconds <= 0:
            raise ValueError("poll_interval_seconds must be positive")

        self.fetcher = fetcher
        self.subreddit = subreddit
        self.top_n = top_n
        self.poll_interval_seconds = poll_interval_seconds
        self.reporter: Reporter = reporter or log_stats

        self._top_posts: list[Post] = []
        self._user_posts: dict[str, int] = {}
        self._lock = asyncio.Lock()
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=queue_size)
        self._stop_event = asyncio.Event()
        self._producer_task: asyncio.Task[None] | None = None
        self._consumer_task: asyncio.Task[None] | None = None
        self._shutdown_task: asyncio.Task[None] | None = None

    @classmethod
    def from_settings(
        cls,
        fetcher: PostFetcher,
        settings: Settings,
        reporter: Reporter | None = None,
    ) -> SubredditStats:
        return cls(
            fetcher,
            settings.subreddit,
            top_n=settings.top_n,
            poll_interval_seconds=settings.poll_interval_seconds,
            queue_size=settings.queue_size,
            reporter=reporter,
        )

    @property
    def is_running(self) -> bool:
        return self._producer_task is not None and self._shutdown_task is None

    def start(self) -> None:
        if self._shutdown_task is not None:
            raise RuntimeError("SubredditStats has already been stopped")
        if self._producer_task is not None:
            raise RuntimeError("SubredditStats is already running")
        self._producer_task = asyncio.create_task(self._fetch_loop(), name="redditstats-producer")
        self._consumer_task = asyncio.create_task(self._update_loop(), name="redditstats-consumer")
        logger.info("Tracking r/%s every %ss", self.subreddit, self.poll_interval_seconds)

    async def stop(self) -> None:
        """Stop both loops; safe to call again, including after a cancelled call."""
        if self._producer_task is None:
            return
        if self._shutdown_task is None:
            self._shutdown_task = asyncio.create_task(self._shutdown(), name="redditstats-shutdown")
        # Cancelling the caller must not abandon the teardown half way.
        await asyncio.shield(self._shutdown_task)

    async def snapshot(self) -> StatsSnapshot:
        async with self._lock:
            return self._snapshot_locked()

    async def process(self, post: Post) -> None:
        async with self._lock:
            tally_author(self._user_posts, post.author)
            self._top_posts = add_to_ranking(self._top_posts, post, limit=self.top_n)
            try:
                self.reporter(self._snapshot_locked())
            except Exception:
                logger.exception("Stats reporter failed")

    def _snapshot_locked(self) -> StatsSnapshot:
        return StatsSnapshot(
            top_posts=tuple(self._top_posts),
            user_posts=MappingProxyType(dict(self._user_posts)),
            limit=self.top_n,
        )

    async def _shutdown(self) -> None:
        self._stop_event.set()
        try:
            if self._producer_task is not None:
                await self._producer_task
        finally:
            if self._consumer_task is not None:
                await self._queue.put(_CLOSED)
                await self._consumer_task
        logger.info("Stopped tracking r/%s", self.subreddit)

    async def _fetch_loop(self) -> None:
        loop = asyncio.get_running_loop()
        interval = self.poll_interval_seconds
        next_tick = loop.time() + interval
        while not await self._wait_for_stop(max(0.0, next_tick - loop.time())):
            next_tick += interval
            try:
                posts = await self.fetcher.fetch_posts(self.subreddit)
            except Exception as exc:
                logger.error("Error fetching posts: %s", exc)
                posts = []

            for post in posts:
                if not await self._handoff(post):
                    return

            # Ticks that passed during a slow fetch or handoff are dropped.
            now = loop.time()
            while next_tick <= now:
                next_tick += interval

    async def _update_loop(self) -> None:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            await self.process(item)  # type: ignore[arg-type]

    async def _wait_for_stop(self, timeout: float) -> bool:
        if self._stop_event.is_set():
            return True
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def _handoff(self, post: Post) -> bool:
        """Queue ``post`` for the consumer, giving up if stop is signaled first."""
        if self._stop_event.is_set():
            return False
        if not self._queue.full():
            self._queue.put_nowait(post)
            return True

        put_task = asyncio.ensure_future(self._queue.put(post))
        stop_task = asyncio.ensure_future(self._stop_event.wait())
        done, _ = await asyncio.wait({put_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        if put_task in done:
            stop_task.cancel()
            return True
        put_task.cancel()
        return False
