from __future__ import annotations
from dataclasses import dataclass
from typing import Optional
import os

from pydantic_settings import BaseSettings, SettingsConfigDict

from mergesub.services.endpoint_rewriter import RelayTarget

DEFAULT_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=os.getenv("ENV_FILE", ".env"), extra="ignore")

    APP_NAME: str = "merge-sub"
    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    # Both empty disables admin authentication entirely.
    ADMIN_USERNAME: str = ""
    ADMIN_PASSWORD: str = ""
    API_REQUIRE_AUTH: bool = False

    SUB_TOKEN: str = ""
    API_URL: str = "https://sublink.eooce.com"

    CFIP: str = ""
    CFPORT: str = ""

    REDIS_URL: str = ""  # empty -> in-memory store
    REDIS_DATA_KEY: str = "data"

    HTTP_TIMEOUT_SECONDS: float = 10
    USER_AGENT: str = DEFAULT_USER_AGENT

    @property
    def auth_enabled(self) -> bool:
        return bool(self.ADMIN_USERNAME and self.ADMIN_PASSWORD)


@dataclass(frozen=True)
class MergeConfig:
    """Relay and timeout parameters for one merge request."""

    relay_address: Optional[str] = None
    relay_port: Optional[str] = None
    request_timeout_ms: int = 10_000

    @classmethod
    def resolve(cls, settings: Settings, cfip: Optional[str] = None, cfport: Optional[str] = None) -> "MergeConfig":
        # query parameters win over process configuration
        return cls(
            relay_address=(cfip or settings.CFIP or None),
            relay_port=(cfport or settings.CFPORT or None),
            request_timeout_ms=int(float(settings.HTTP_TIMEOUT_SECONDS) * 1000),
        )

    @property
    def relay_target(self) -> Optional[RelayTarget]:
        return RelayTarget.build(self.relay_address, self.relay_port)

    @property
    def timeout_seconds(self) -> float:
        return self.request_timeout_ms / 1000


settings = Settings()
