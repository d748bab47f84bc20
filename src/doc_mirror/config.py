"""Runtime configuration loaded from environment variables.

Every option can be set as ``DOC_MIRROR_<NAME>`` in the environment or in a
``.env`` file. The GitHub-specific values also fall back to the standard
variables a GitHub Actions runner exports (``GITHUB_TOKEN``,
``ACTIONS_RUNTIME_TOKEN``, ...), so the artifact store works inside a
workflow without extra wiring.
"""

from pathlib import Path
from typing import Any

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env(name: str) -> AliasChoices:
    """Accept both the prefixed and the plain runner variable name."""
    return AliasChoices(f"DOC_MIRROR_{name}", name)


class Settings(BaseSettings):
    """All options needed for a single mirror run."""

    # Full Discord webhook URL, including the token path segment.
    webhook_url: str

    # Document mirrored onto the channel.
    document_path: Path

    # Newly published identifiers are always written here on success.
    output_path: Path = Path("messageIDs.txt")

    # One of: none, git, message, artifact.
    storage_method: str = "none"

    # -- git storage --------------------------------------------------------
    tracked_file: Path = Path("messageIDs.txt")
    git_user_name: str = "Actions"
    git_user_email: str = "noreply@users.noreply.github.com"
    git_commit_message: str = "Update stored messageIDs"

    # -- message storage ----------------------------------------------------
    # ID of the channel message holding the comma-separated identifier list.
    tracking_message_id: str = ""

    # -- artifact storage ---------------------------------------------------
    artifact_name: str = "message-ids"
    artifact_file_name: str = "messageIDs.txt"
    artifact_retention_days: int = Field(default=90, ge=1, le=90)

    github_token: str = Field(default="", validation_alias=_env("GITHUB_TOKEN"))
    github_repository: str = Field(
        default="", validation_alias=_env("GITHUB_REPOSITORY")
    )
    github_api_url: str = Field(
        default="https://api.github.com", validation_alias=_env("GITHUB_API_URL")
    )
    actions_runtime_token: str = Field(
        default="", validation_alias=_env("ACTIONS_RUNTIME_TOKEN")
    )
    actions_results_url: str = Field(
        default="", validation_alias=_env("ACTIONS_RESULTS_URL")
    )

    # Upper bound on concurrent fetch/delete calls against the webhook.
    max_concurrency: int = Field(default=5, ge=1)

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="DOC_MIRROR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


def load_settings(**overrides: Any) -> Settings:
    """Build settings from the environment, letting explicit values win.

    ``None`` overrides are dropped so unset command-line flags fall through
    to the environment.
    """
    values = {key: value for key, value in overrides.items() if value is not None}
    return Settings(**values)
