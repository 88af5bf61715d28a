"""Runtime configuration: env-driven via pydantic-settings.

Reads from a ``.env`` file and ``MIMIKRY_*`` environment variables. Registry
credentials keep the un-prefixed ``DOCKER_USERNAME`` / ``DOCKER_PASSWORD``
names so existing CI secrets keep working.

Examples
--------
Override via environment::

    export MIMIKRY_BUILD_DIR=/tmp/mimikry
    export MIMIKRY_TAG_CACHE_MAX_AGE_HOURS=24
    export DOCKER_USERNAME=johndoe
    export DOCKER_PASSWORD=...
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from mimikry.core.tag_source import DEFAULT_TAGS_URL
from mimikry.models.config import RendererOptions, SelectorOptions

DEFAULT_TAG_PATTERN = r"^\d+(\.\d+)?(\.\d+)?$"


class MimikrySettings(BaseSettings):
    """Process-wide settings with environment variable overrides."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="MIMIKRY_",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    debug: bool = False
    log_level: str = "INFO"

    # Tag source
    source_repository: str = "postgres"
    registry_tags_url: str = DEFAULT_TAGS_URL
    registry_page_size: int = 100
    request_timeout: float = 30.0
    tag_cache_dir: Path = Path(".cache/mimikry")
    tag_cache_max_age_hours: float | None = None

    # Build policy
    build_dir: Path = Path("./mimikry")
    maintainer: str = "Unknown"
    tools: str = "vim"
    install_tools_cutoff: str = "10.0.0"
    tag_pattern: str = DEFAULT_TAG_PATTERN

    # Registry credentials
    docker_username: str = Field(default="", validation_alias="DOCKER_USERNAME")
    docker_password: SecretStr = Field(
        default=SecretStr(""), validation_alias="DOCKER_PASSWORD"
    )
    registry: str | None = None

    def tag_cache_path(self, repository: str) -> Path:
        """Return the cache file used for ``repository``'s tag list."""
        return self.tag_cache_dir / f"{repository.replace('/', '_')}.json"

    def selector_options(self) -> SelectorOptions:
        return SelectorOptions(tag_pattern=self.tag_pattern)

    def renderer_options(self) -> RendererOptions:
        return RendererOptions(
            install_tools_cutoff=self.install_tools_cutoff,
            tools=self.tools,
        )
