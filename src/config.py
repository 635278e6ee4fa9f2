import logging
import os
from pathlib import Path
from typing import Any, Mapping, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator

from src.infrastructure.github_client import GITHUB_API_URL
from src.infrastructure.nuget_operation import DOTNET_OUTDATED_TIMEOUT

# Environment variable -> AppSettings field
ENVIRONMENT_FIELDS = {
    "GITHUB_TOKEN": "github_token",
    "GITHUB_API_URL": "github_api_url",
    "GIT_COMMITTER_NAME": "committer_name",
    "GIT_COMMITTER_EMAIL": "committer_email",
    "DATALAKE_NAME": "datalake_name",
    "DATALAKE_FILESYSTEM": "datalake_filesystem",
    "DATALAKE_DIRECTORY": "datalake_directory",
    "DATALAKE_SASTOKEN": "datalake_sas_token",
    "DATABASE_URL": "database_url",
    "REPORT_OUTPUT_DIR": "report_output_dir",
    "DOTNET_OUTDATED_TIMEOUT": "dotnet_outdated_timeout",
    "LOG_LEVEL": "log_level",
    "DRYRUN_MODE": "dry_run",
}


class AppSettings(BaseModel):
    """
    Process-wide settings read from the environment.
    Storage credentials are opaque passthrough values and may be absent.
    """
    model_config = ConfigDict(frozen=True)

    github_token: Optional[str] = Field(None, repr=False)
    github_api_url: str = GITHUB_API_URL
    committer_name: str = "dependency-bot"
    committer_email: str = "dependency-bot@users.noreply.github.com"
    datalake_name: Optional[str] = None
    datalake_filesystem: Optional[str] = None
    datalake_directory: Optional[str] = None
    datalake_sas_token: Optional[str] = Field(None, repr=False)
    database_url: Optional[str] = Field(None, repr=False)
    report_output_dir: Path = Path(".")
    dotnet_outdated_timeout: float = Field(DOTNET_OUTDATED_TIMEOUT, gt=0)
    log_level: str = "INFO"
    dry_run: bool = False

    @field_validator("dry_run", mode="before")
    @classmethod
    def _lenient_bool(cls, value: Any) -> Any:
        # Scheduled triggers pass free text; anything unrecognised means "not a dry run".
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes", "on"}
        return value

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        value = value.upper()
        if not isinstance(logging.getLevelName(value), int):
            raise ValueError(f"unknown log level '{value}'")
        return value

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AppSettings":
        env = os.environ if environ is None else environ
        values = {
            field: env[name]
            for name, field in ENVIRONMENT_FIELDS.items()
            if env.get(name, "").strip()
        }
        return cls(**values)
