"""Application configuration with validation."""

from pathlib import Path
from typing import List

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings

from ..schemas.job import Author


class ConfigurationError(Exception):
    """Raised when the configuration cannot support a running service."""
    pass


class Settings(BaseSettings):
    """
    Service settings, read from environment variables or ``.env``.

    Secrets (git token, webhook secret, admin password) are only ever handed
    to the components that need them as explicit arguments.
    """

    # Presentation / default job author
    title: str = Field(
        default="reporunner",
        description="Service name, shown on the status badge and used as default job author"
    )
    description: str = Field(
        default="Runs a job for every push to the tracked repository.",
        description="Human-readable description of the service"
    )
    email: str = Field(
        default="reporunner@example.org",
        description="Default job author email"
    )

    # Source repository
    # source_repository is the "owner/name" webhooks are matched against;
    # source_repository_uri is what gets cloned into <work_dir>/repository.
    source_repository: str = Field(
        default="",
        description="Repository full name expected in webhook payloads, e.g. 'org/repo'"
    )
    source_repository_uri: str = Field(
        default="",
        description="Clone uri, e.g. 'https://github.com/org/repo.git'"
    )
    source_branch: str = Field(default="main", description="Branch to check out")

    # Where jobs, logs, the clone and the badge live
    work_dir: Path = Field(default=Path("./workdir"), description="Data directory")

    # Secrets
    git_token: str = Field(
        default="",
        validation_alias=AliasChoices("git_token", "ghtoken"),
        description="Access token for https clone/push (GIT_TOKEN or GHTOKEN)"
    )
    webhook_secret: str = Field(
        default="",
        description="HMAC secret for webhook signatures (empty = no verification, dev only)"
    )
    admin_password: str = Field(
        default="",
        description="Basic-auth password for /update and /full_update (empty = open)"
    )

    # Job execution
    job_handler: str = Field(
        default="reporunner.handlers:log_job",
        description="Handler called for every job, as 'package.module:function'"
    )
    batch_size: int = Field(default=3000, ge=1, description="Files per full-update batch job")
    poll_interval: float = Field(
        default=10.0,
        gt=0,
        description="Seconds between drains when no trigger arrives"
    )

    # HTTP server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=4505)

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_format: str = Field(
        default="json",
        description="Log output format: 'json' for structured, 'text' for human-readable"
    )

    @property
    def repository_dir(self) -> Path:
        return self.work_dir / "repository"

    @property
    def jobs_dir(self) -> Path:
        return self.work_dir / "jobs"

    def default_author(self) -> Author:
        return Author(name=self.title, email=self.email)

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard Python logging levels."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v_upper

    def prepare_directories(self) -> None:
        """Create the work, jobs and repository directories.

        Raises:
            ConfigurationError: if any of them cannot be created.
        """
        for directory in (self.work_dir, self.jobs_dir, self.repository_dir):
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise ConfigurationError(f"Cannot create directory {directory}: {e}") from e

    def validate_startup(self) -> List[str]:
        """Check the configuration before anything is started.

        Returns:
            Warnings worth logging.

        Raises:
            ConfigurationError: if the service cannot run at all.
        """
        if not self.source_repository_uri:
            raise ConfigurationError(
                "SOURCE_REPOSITORY_URI is not set. "
                "Set it to the clone uri of the repository to track."
            )

        warnings: list[str] = []
        if not self.source_repository:
            warnings.append("SOURCE_REPOSITORY is empty: every webhook will be rejected.")
        elif self.source_repository not in self.source_repository_uri:
            warnings.append(
                f"SOURCE_REPOSITORY_URI ({self.source_repository_uri}) might not point to "
                f"the same repository as SOURCE_REPOSITORY ({self.source_repository})"
            )
        if not self.webhook_secret:
            warnings.append("WEBHOOK_SECRET is empty. Webhook signature verification is disabled.")
        if not self.admin_password:
            warnings.append("ADMIN_PASSWORD is empty. /update and /full_update are unprotected.")
        if not self.git_token:
            warnings.append("GIT_TOKEN is empty. Only public repositories can be cloned; pushes will fail.")
        return warnings

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        # Allow reading from environment variables with different case
        case_sensitive = False


# Global settings instance
settings = Settings()
