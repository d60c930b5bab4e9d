"""Configuration management for the relay admin service."""

from functools import lru_cache
from pathlib import Path
from typing import Annotated

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from relay_admin import constants


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    environment: str = Field(default="production", description="Environment name")
    log_level: str = Field(default="INFO", description="Logging level")

    # HTTP server
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=3000, description="Bind port")
    admin_secret: SecretStr | None = Field(
        default=None, description="Shared secret required on /admin routes (X-Admin-Secret)"
    )

    # Deployment layout
    project_dir: str = Field(default=".", description="Root of the deployed service")
    version_file: str = Field(default="VERSION", description="Version label file")
    default_version: str = Field(default=constants.DEFAULT_VERSION)
    container_marker_path: str = Field(default=constants.CONTAINER_MARKER_PATH)
    applied_revision_path: str = Field(
        default="data/.applied-revision",
        description="Marker recording the last applied revision (archive installs)",
    )

    # Upstream
    github_repo: str = Field(default="relay-service/relay-service", description="owner/repo")
    github_token: SecretStr | None = Field(default=None, description="Optional GitHub token")
    github_api_url: str = Field(default=constants.GITHUB_API_URL)
    update_remote: str = Field(default="origin")
    update_branch: str = Field(default="main")

    # Timeouts (seconds)
    probe_timeout: float = Field(default=constants.PROBE_TIMEOUT_SECONDS)
    git_timeout: float = Field(default=constants.GIT_TIMEOUT_SECONDS)
    github_timeout: float = Field(default=constants.GITHUB_TIMEOUT_SECONDS)
    fetch_timeout: float = Field(default=constants.FETCH_TIMEOUT_SECONDS)
    install_timeout: float = Field(default=constants.INSTALL_TIMEOUT_SECONDS)
    build_timeout: float = Field(default=constants.BUILD_TIMEOUT_SECONDS)

    # Post-update tooling
    install_command: Annotated[
        list[str],
        Field(default_factory=lambda: ["pip", "install", "-e", "."]),
    ]
    build_command: Annotated[
        list[str],
        Field(default_factory=lambda: ["npm", "run", "build:web"]),
    ]
    dependency_manifests: Annotated[
        list[str],
        Field(
            default_factory=lambda: [
                "pyproject.toml",
                "requirements.txt",
                "package.json",
                "package-lock.json",
            ]
        ),
    ]
    asset_paths: Annotated[
        list[str],
        Field(default_factory=lambda: ["web/"]),
    ]

    # Update check cache
    check_cache_ttl: int = Field(default=constants.CHECK_CACHE_TTL_SECONDS)
    check_cache_retention: int = Field(default=constants.CHECK_CACHE_RETENTION_SECONDS)
    recent_changes_limit: int = Field(default=constants.RECENT_CHANGES_LIMIT)

    restart_delay: float = Field(default=constants.RESTART_DELAY_SECONDS)

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment.lower() == "development"

    @property
    def project_path(self) -> Path:
        return Path(self.project_dir).resolve()

    @property
    def version_path(self) -> Path:
        """Get the VERSION file path, resolved against the project dir."""
        return self.project_path / self.version_file

    @property
    def applied_revision_file(self) -> Path:
        return self.project_path / self.applied_revision_path


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
