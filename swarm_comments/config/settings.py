"""
swarm-comments -- Centralised configuration via pydantic-settings.

Environment variables override defaults using the ``SWARM_COMMENT_`` prefix
(e.g. ``SWARM_COMMENT_TOPIC=my-article``).  Nested preload checkpoint values
use a double underscore (``SWARM_COMMENT_PRELOAD__LATEST_INDEX=41``).

Usage:
    from swarm_comments.config.settings import get_settings
    settings = get_settings()          # cached singleton
    print(settings.bee_url)
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from swarm_comments.bee.client import PLACEHOLDER_STAMP
from swarm_comments.constants import (
    COMMENTS_TO_READ,
    DEFAULT_POLL_INTERVAL,
    MAX_CONCURRENT_READS,
    MINIMUM_POLL_INTERVAL,
)


class PreloadCheckpoint(BaseModel):
    """Indexes a caller already knows, used to skip tip discovery."""

    first_index: Optional[int] = Field(default=None, ge=0)
    latest_index: Optional[int] = Field(default=None, ge=-1)
    reaction_index: Optional[int] = Field(default=None, ge=-1)


class CommentSettings(BaseSettings):
    """Top-level configuration for a comment session."""

    # ------------------------------------------------------------------
    # User
    # ------------------------------------------------------------------
    private_key: str = ""
    nickname: str = "anonymous"

    # ------------------------------------------------------------------
    # Bee node
    # ------------------------------------------------------------------
    bee_url: str = "http://localhost:1633"
    stamp: str = PLACEHOLDER_STAMP  # placeholder works behind a gateway
    request_timeout_seconds: float = 15.0
    max_concurrent_reads: int = Field(default=MAX_CONCURRENT_READS, ge=1)

    # ------------------------------------------------------------------
    # Stream
    # ------------------------------------------------------------------
    topic: str = ""
    poll_interval: float = DEFAULT_POLL_INTERVAL  # seconds, floor 0.5
    history_page_size: int = Field(default=COMMENTS_TO_READ, ge=1)
    preload: Optional[PreloadCheckpoint] = None

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------
    log_level: str = "INFO"
    log_format: str = "json"  # json | text
    metrics_port: int = 0  # 0 disables the exporter

    # ------------------------------------------------------------------
    # Pydantic-settings config
    # ------------------------------------------------------------------
    model_config = SettingsConfigDict(
        env_prefix="SWARM_COMMENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    @field_validator("poll_interval")
    @classmethod
    def _clamp_poll_interval(cls, value: float) -> float:
        return max(value, MINIMUM_POLL_INTERVAL)


@lru_cache(maxsize=1)
def get_settings() -> CommentSettings:
    """Return a cached singleton of the application settings.

    Call ``get_settings.cache_clear()`` in tests to reset.
    """
    return CommentSettings()
