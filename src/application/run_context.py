import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from src.domain.models import (
    ErroredOutcome,
    ReportEntry,
    RepoOutcome,
    RepoUpdateFailed,
    RepoUpdateResult,
    RunMetadata,
    RunReport,
    UpdatedOutcome,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RunContext:
    """
    Aggregation state for a single run: the metadata counters and the
    per-repository outcome map. Only the orchestration loop writes to it.
    Outcomes are immutable and replaced on every write, so the RunReport
    handed out by seal() cannot be changed afterwards.
    """

    def __init__(self, dry_run: bool, clock: Callable[[], datetime] = _utcnow):
        self._clock = clock
        self.start_time = clock()
        self.is_dry_run = dry_run
        self.success = True
        self.repos_analysed = 0
        self.repos_updated = 0
        self.repos: Dict[str, RepoOutcome] = {}
        self._report: Optional[RunReport] = None

    @staticmethod
    def key_for(org: str, repo_name: str) -> str:
        return f"{org}/{repo_name}"

    @property
    def sealed(self) -> bool:
        return self._report is not None

    def _ensure_open(self) -> None:
        if self.sealed:
            raise RuntimeError("Run context has already been sealed.")

    def mark_unsuccessful(self) -> None:
        self._ensure_open()
        self.success = False

    def record(self, org: str, repo_name: str, description: str, result: RepoUpdateResult) -> None:
        """Folds one repository's result into the aggregate."""
        self._ensure_open()
        key = self.key_for(org, repo_name)
        existing = self.repos.get(key)

        if isinstance(result, RepoUpdateFailed):
            # Errors replace earlier reports for the key; a pull request already raised stays visible.
            self.repos[key] = ErroredOutcome(
                error=result.error,
                pull_request=existing.pull_request if existing else None,
                consistency_fault=result.consistency_fault,
            )
            self.success = False
            return

        self.repos_analysed += 1

        if result.report is None and result.pull_request is None:
            return

        if isinstance(existing, ErroredOutcome):
            if result.report is not None:
                logger.warning(f"{key} already failed earlier in this run; discarding report for '{description}'.")
            if result.pull_request:
                self.repos[key] = existing.model_copy(update={"pull_request": result.pull_request})
        else:
            reports = existing.reports if existing else ()
            self.repos[key] = UpdatedOutcome(
                reports=reports + (ReportEntry(description=description, report=result.report),),
                # Last write wins when several passes raise a pull request.
                pull_request=result.pull_request or (existing.pull_request if existing else None),
            )

        if result.pull_request:
            self.repos_updated += 1

    def seal(self) -> RunReport:
        if self._report is None:
            metadata = RunMetadata(
                start_time=self.start_time,
                end_time=self._clock(),
                is_dry_run=self.is_dry_run,
                success=self.success,
                repos_analysed=self.repos_analysed,
                repos_updated=self.repos_updated,
            )
            self._report = RunReport(metadata=metadata, repos=dict(self.repos))
        return self._report
