"""Configuration models."""

from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RetryConfig(BaseModel):
    """Exponential backoff settings for transient failures."""
    max_attempts: int = Field(default=3, ge=1)
    initial_interval: float = Field(default=1.0, ge=0)
    multiplier: float = Field(default=2.0, ge=1)
    max_interval: float = Field(default=30.0, ge=0)
    max_elapsed_time: float = Field(default=300.0, ge=0)


class RuntimeConfig(BaseModel):
    """LXC command names and log follow settings."""
    start_command: str = Field(default="lxc-start")
    stop_command: str = Field(default="lxc-stop")
    freeze_command: str = Field(default="lxc-freeze")
    unfreeze_command: str = Field(default="lxc-unfreeze")
    info_command: str = Field(default="lxc-info")
    follow_command: List[str] = Field(
        default_factory=lambda: ["tail", "-c", "+{offset}", "-F", "{path}"],
        description=(
            "Argument list; {path}, {name} and {offset} (1-based byte position "
            "just past the replayed snapshot) are substituted"
        ),
    )
    follow_grace_period: float = Field(default=5.0, ge=0)
    net_dev_path: str = Field(
        default="/proc/{pid}/net/dev",
        description="Per-process network counters; {pid} and {name} are substituted",
    )

    @field_validator("follow_command")
    @classmethod
    def validate_follow_command(cls, v):
        """Follow command must not be empty."""
        if not v:
            raise ValueError("follow_command cannot be empty")
        return v


class Settings(BaseModel):
    """Main configuration model."""
    root_dir: str = Field(default="/var/lib/lxcompose")
    log_level: str = Field(default="INFO")
    retry: RetryConfig = Field(default_factory=RetryConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)

    model_config = ConfigDict(extra="ignore")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()
