from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ServerSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=0, le=65535)


class CacheSettings(BaseModel):
    """
    Snapshot cache settings.

    `recovered_age` decides how snapshots found on disk at startup are aged:
    "startup" treats them as created at process start, "mtime" uses the
    directory modification time.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    root_dir: str = "data/snapshots"
    ttl_ms: int = Field(default=3_600_000, ge=0)
    sweep_interval_seconds: float = Field(default=5.0, gt=0)
    dedupe_inflight_fetches: bool = False
    recovered_age: Literal["startup", "mtime"] = "startup"


class UpstreamSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    base_url: str = "https://github.com"
    request_timeout_seconds: float = Field(default=60.0, gt=0)
    clone_timeout_seconds: float = Field(default=60.0, gt=0)
    user_agent: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_5) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/83.0.4103.116 Safari/537.36"
    )
    git_binary: str = "git"
    clone_depth: int = Field(default=1, ge=1)


class FileRotationSettings(BaseModel):
    """
    Date-based rotation settings (daily).

    This maps cleanly to Python's standard library TimedRotatingFileHandler behavior.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    backup_count: int = 7


class FileLoggingSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str = ""
    rotation: FileRotationSettings = FileRotationSettings()


class LoggingSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    level: str = "INFO"
    access_log: bool = False
    file: FileLoggingSettings = FileLoggingSettings()


class AppConfig(BaseModel):
    """Effective runtime configuration after applying all precedence rules."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    server: ServerSettings = ServerSettings()
    cache: CacheSettings = CacheSettings()
    upstream: UpstreamSettings = UpstreamSettings()
    logging: LoggingSettings = LoggingSettings()


@dataclass(frozen=True, slots=True)
class ConfigLoadRequest:
    """
    Optional inputs for a configuration loader.

    A missing YAML file is not an error; defaults apply.
    """

    yaml_path: str = "data/config/config.yaml"
    env_prefix: str = "APP__"
    dotenv_path: Optional[str] = "data/.env"
