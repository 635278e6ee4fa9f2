from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union
from pydantic import BaseModel, Field, ConfigDict, field_validator

NUGET_FEATURE = "nugetDependencyUpdates"
DRY_RUN_SCHEME = "dry-run://"


class VersionLock(str, Enum):
    """How far an automatic version bump is allowed to move."""
    MAJOR = "Major"
    MINOR = "Minor"
    NONE = "None"


class NugetUpdateSettings(BaseModel):
    """
    Settings for the NuGet dependency update feature of a roster entry.
    Absent keys fall back to the defaults declared here.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    enabled: bool = Field(False, description="Feature gate; the entry is skipped unless true")
    solutions_dir: str = Field(".", alias="solutionsDir", description="Directory scanned for solutions")
    check_only: bool = Field(False, alias="checkOnly", description="Report outdated packages without rewriting manifests")
    version_lock: VersionLock = Field(VersionLock.MINOR, alias="versionLock")
    exclusions: List[str] = Field(default_factory=list, description="Package name filters to leave untouched")
    inclusions: List[str] = Field(default_factory=list, description="Package name filters to restrict updates to")

    @field_validator("exclusions", "inclusions", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value


class RepoConfigEntry(BaseModel):
    """
    One record of the roster: an organisation, the repositories sharing this
    configuration, and the per-feature settings.
    """
    model_config = ConfigDict(frozen=True)

    org: str = Field(..., min_length=1)
    name: List[str] = Field(..., min_length=1, description="Repositories sharing this configuration, in order")
    description: str = ""
    nuget_dependency_updates: Optional[NugetUpdateSettings] = None

    def is_enabled(self) -> bool:
        return self.nuget_dependency_updates is not None and self.nuget_dependency_updates.enabled


class OrgSession(BaseModel):
    """Authenticated source-control session scoped to a single organisation."""
    model_config = ConfigDict(frozen=True)

    org: str
    token: str = Field(..., repr=False)


class RunMetadata(BaseModel):
    """Run-level counters, stamped with end_time when the run is sealed."""
    model_config = ConfigDict(frozen=True)

    start_time: datetime
    end_time: Optional[datetime] = None
    is_dry_run: bool = False
    success: bool = True
    repos_analysed: int = Field(0, ge=0)
    repos_updated: int = Field(0, ge=0)


class ReportEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    description: str
    report: Any


class UpdatedOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    reports: Tuple[ReportEntry, ...] = ()
    pull_request: Optional[str] = None


class ErroredOutcome(BaseModel):
    """
    A repository that failed at least once during the run. A pull request
    raised by another pass for the same repository is kept alongside the error.
    """
    model_config = ConfigDict(frozen=True)

    error: str
    pull_request: Optional[str] = None
    consistency_fault: bool = False


RepoOutcome = Union[UpdatedOutcome, ErroredOutcome]


class RunReport(BaseModel):
    """Top-level artifact of a run, handed to the report sink once sealed."""
    model_config = ConfigDict(frozen=True)

    metadata: RunMetadata
    repos: Dict[str, RepoOutcome] = Field(default_factory=dict)


class RepoUpdateSucceeded(BaseModel):
    """The change operation completed; report and pull_request may both be absent (no-op)."""
    model_config = ConfigDict(frozen=True)

    report: Optional[Any] = None
    pull_request: Optional[str] = None


class RepoUpdateFailed(BaseModel):
    model_config = ConfigDict(frozen=True)

    error: str
    consistency_fault: bool = False


RepoUpdateResult = Union[RepoUpdateSucceeded, RepoUpdateFailed]


def dry_run_reference(org: str, repo_name: str, branch_name: str) -> str:
    """Reported instead of a pull request URL when nothing is pushed."""
    return f"{DRY_RUN_SCHEME}{org}/{repo_name}/{branch_name}"


def is_dry_run_reference(reference: Optional[str]) -> bool:
    return bool(reference) and reference.startswith(DRY_RUN_SCHEME)
