from typing import List, Optional
from pydantic import BaseModel, Field, field_validator

DEFAULT_VIEWER_ENV_VAR = "BWAPI_CONFIG_AUTO_MENU__MAP"


class WatchConfig(BaseModel):
    """Watch directory and queue sizing."""
    directory: str = "replay_queue"
    capacity: int = Field(default=5, ge=1)
    recording_extension: str = ".rep"
    canonical_name: str = "current.rep"

    @field_validator("recording_extension")
    @classmethod
    def normalize_extension(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("recording_extension must not be empty")
        return (v if v.startswith(".") else f".{v}").lower()

    @field_validator("canonical_name")
    @classmethod
    def validate_canonical_name(cls, v: str) -> str:
        if not v or "/" in v or "\\" in v:
            raise ValueError(f"canonical_name must be a bare filename, got {v!r}")
        return v


class ExtractorConfig(BaseModel):
    command: List[str] = Field(default_factory=lambda: ["screp"])
    timeout_s: float = Field(default=60.0, gt=0)

    @field_validator("command")
    @classmethod
    def validate_command(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("extractor command must not be empty")
        return v


class ViewerConfig(BaseModel):
    command: List[str] = Field(default_factory=lambda: ["./ReplayViewer"])
    env_var: str = DEFAULT_VIEWER_ENV_VAR
    timeout_s: float = Field(default=35 * 60.0, gt=0)  # 35 min
    grace_s: float = Field(default=10.0, gt=0)

    @field_validator("command")
    @classmethod
    def validate_command(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("viewer command must not be empty")
        return v


class LoopConfig(BaseModel):
    idle_backoff_s: float = Field(default=5.0, ge=0)
    error_backoff_s: float = Field(default=15.0, ge=0)
    max_item_failures: int = Field(default=3, ge=1)
    seed: Optional[int] = None


class RelayConfig(BaseModel):
    """Browser UI relay (Server-Sent Events)."""
    enabled: bool = True
    host: str = "127.0.0.1"
    port: int = Field(default=9001, ge=0, le=65535)
    buffer_size: int = Field(default=64, ge=1)


class ChatConfig(BaseModel):
    """Chat relay credentials. Without a webhook_url the relay stays off."""
    webhook_url: Optional[str] = None
    token: Optional[str] = None
    timeout_s: float = Field(default=10.0, gt=0)
    buffer_size: int = Field(default=16, ge=1)

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)


class AppConfig(BaseModel):
    base_url: str = ""
    watch: WatchConfig = Field(default_factory=WatchConfig)
    extractor: ExtractorConfig = Field(default_factory=ExtractorConfig)
    viewer: ViewerConfig = Field(default_factory=ViewerConfig)
    loop: LoopConfig = Field(default_factory=LoopConfig)
    relay: RelayConfig = Field(default_factory=RelayConfig)
    chat: ChatConfig = Field(default_factory=ChatConfig)
    debug: bool = False
    log_path: Optional[str] = None
