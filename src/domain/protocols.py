from pathlib import Path
from typing import Optional, Protocol, Sequence

from src.domain.models import OrgSession, RunReport


class RepoChangeOperation(Protocol):
    """A unit of work that inspects a working copy and applies any needed change."""

    async def execute(self, working_dir: Path) -> bool:
        """Returns True when the working copy was modified."""
        ...


class RepoUpdater(Protocol):
    async def open_org_session(self, org: str) -> OrgSession:
        ...

    async def update(
        self,
        session: OrgSession,
        repo_name: str,
        branch_name: str,
        change_operation: RepoChangeOperation,
        commit_message: str,
        pr_title: str,
        pr_body: str,
        labels: Sequence[str],
        dry_run: bool,
    ) -> Optional[str]:
        """Returns the pull request reference, or None when nothing changed."""
        ...


class ReportSink(Protocol):
    async def publish(self, report: RunReport, dry_run: bool) -> None:
        ...
