from __future__ import annotations

import argparse
import asyncio
import logging

from pydantic import ValidationError

from redditstats.config import Settings, get_settings
from redditstats.logging import setup_logging
from redditstats.services.reddit_client import RedditClient
from redditstats.services.stats import SubredditStats

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Subreddit stats tracker")
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Track a subreddit for a fixed duration")
    run_parser.add_argument("--subreddit", default=None, help="Subreddit to track (without r/)")
    run_parser.add_argument("--duration", type=float, default=None, help="Seconds to run before stopping")
    run_parser.add_argument("--interval", type=float, default=None, help="Seconds between fetches")
    run_parser.add_argument("--verbose", action="store_true", help="Enable debug logs")

    return parser


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    overrides = {
        "subreddit": args.subreddit,
        "run_duration_seconds": args.duration,
        "poll_interval_seconds": args.interval,
    }
    updates = {key: value for key, value in overrides.items() if value is not None}
    if not updates:
        return settings
    return Settings.model_validate({**settings.model_dump(), **updates})


async def run_tracker(settings: Settings) -> int:
    missing_fields = settings.missing_required_runtime_fields()
    if missing_fields:
        joined = ", ".join(missing_fields)
        logger.error("Configuration error: missing required .env values: %s", joined)
        print(f"Configuration error: missing required .env values: {joined}")
        return 2

    async with RedditClient(settings) as client:
        stats = SubredditStats.from_settings(client, settings)
        stats.start()
        logger.info("Tracking stats for %s seconds...", settings.run_duration_seconds)
        try:
            await asyncio.sleep(settings.run_duration_seconds)
        finally:
            await stats.stop()

        final = await stats.snapshot()

    print(
        f"Run complete. subreddit=r/{settings.subreddit} ranked={len(final.top_posts)} "
        f"authors={len(final.user_posts)}"
    )
    return 0


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()

    if args.command != "run":
        parser.print_help()
        return

    setup_logging(verbose=bool(args.verbose))
    try:
        settings = apply_overrides(get_settings(), args)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
        )
        logger.error("Configuration error: %s", problems)
        print(f"Configuration error: {problems}")
        raise SystemExit(2) from None

    exit_code = asyncio.run(run_tracker(settings))
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
