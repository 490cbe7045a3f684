from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    reddit_client_id: str | None = None
    reddit_client_secret: str | None = None
    reddit_username: str | None = None
    reddit_password: str | None = None
    reddit_auth_url: str = "https://www.reddit.com/api/v1/access_token"
    reddit_api_base_url: str = "https://oauth.reddit.com"

    subreddit: str = "golang"
    poll_interval_seconds: float = Field(default=10.0, gt=0)
    run_duration_seconds: float = Field(default=60.0, gt=0)
    top_n: int = Field(default=10, ge=1)
    fetch_limit: int = Field(default=100, ge=1, le=100)
    queue_size: int = Field(default=1, ge=1)

    request_timeout_seconds: int = 20
    user_agent: str = "RedditStats/0.1"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def missing_required_runtime_fields(self) -> list[str]:
        required = {
            "REDDIT_CLIENT_ID": self.reddit_client_id,
            "REDDIT_CLIENT_SECRET": self.reddit_client_secret,
            "REDDIT_USERNAME": self.reddit_username,
            "REDDIT_PASSWORD": self.reddit_password,
        }
        return [name for name, value in required.items() if not (value or "").strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
