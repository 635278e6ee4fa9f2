import json
import logging
import tempfile
from pathlib import Path
from typing import Any, Callable, Optional, Sequence, Tuple

from src.application.run_context import RunContext
from src.domain.exceptions import ChangeOperationException, ConsistencyException
from src.domain.models import (
    NugetUpdateSettings,
    OrgSession,
    RepoConfigEntry,
    RepoUpdateFailed,
    RepoUpdateResult,
    RepoUpdateSucceeded,
    RunReport,
    is_dry_run_reference,
)
from src.domain.protocols import RepoChangeOperation, RepoUpdater, ReportSink

logger = logging.getLogger(__name__)

COMMIT_MESSAGE = "Updating NuGet dependencies"
PR_BODY_TEMPLATE = (
    "Automated NuGet dependency updates for the solutions under `{solutions_dir}`.\n\n"
    "This pull request is kept up to date by the dependency update job; further "
    "upgrades found while it is open are pushed to the same branch."
)
REPORT_FILE_NAME = "outdated.json"

OperationFactory = Callable[[NugetUpdateSettings, Path], RepoChangeOperation]


def _interpolate(template: str, settings: NugetUpdateSettings) -> str:
    return template.replace("{solutions_dir}", settings.solutions_dir)


class OrchestrationService:
    """
    Runs the NuGet update feature across every repository in the roster.

    Repositories are processed one at a time. A failure to open an
    organisation session skips that roster entry; a failure while updating a
    repository is recorded against that repository alone. Either way the run
    carries on with the next unit and is marked unsuccessful.
    """

    def __init__(
            self,
            update_client: RepoUpdater,
            report_sink: ReportSink,
            operation_factory: OperationFactory,
    ):
        self.update_client = update_client
        self.report_sink = report_sink
        self.operation_factory = operation_factory

    async def run(
        self,
        roster: Sequence[RepoConfigEntry],
        branch_name: str,
        pr_title_template: str,
        dry_run: bool = False,
    ) -> Tuple[RunReport, int]:
        """
        Processes the roster, publishes the sealed report and returns it with
        the process exit code (0 when every org and repository succeeded).
        """
        context = RunContext(dry_run=dry_run)
        mode = " (dry run)" if dry_run else ""
        logger.info(f"Starting dependency update run over {len(roster)} roster entries{mode}.")

        for entry in roster:
            await self._process_entry(context, entry, branch_name, pr_title_template, dry_run)

        report = context.seal()
        exit_code = 0 if report.metadata.success else 1

        logger.info(
            f"Run completed. Analysed: {report.metadata.repos_analysed}, "
            f"updated: {report.metadata.repos_updated}, success: {report.metadata.success}."
        )

        try:
            await self.report_sink.publish(report, dry_run)
        except Exception as e:
            logger.error(f"Failed to publish the run report: {e}", exc_info=True)
            exit_code = 1

        return report, exit_code

    async def _process_entry(
        self,
        context: RunContext,
        entry: RepoConfigEntry,
        branch_name: str,
        pr_title_template: str,
        dry_run: bool,
    ) -> None:
        try:
            session = await self.update_client.open_org_session(entry.org)
        except Exception as e:
            logger.error(f"Skipping '{entry.description}' for org '{entry.org}': {e}", exc_info=True)
            context.mark_unsuccessful()
            return

        if not entry.is_enabled():
            logger.debug(f"NuGet updates not enabled for '{entry.description}' ({entry.org}); skipping.")
            return

        settings = entry.nuget_dependency_updates
        logger.info(f"Processing '{entry.description}' in {entry.org}: {', '.join(entry.name)}")

        for repo_name in entry.name:
            result = await self._process_repository(
                session, repo_name, settings, branch_name, pr_title_template, dry_run
            )
            context.record(entry.org, repo_name, entry.description, result)

    async def _process_repository(
        self,
        session: OrgSession,
        repo_name: str,
        settings: NugetUpdateSettings,
        branch_name: str,
        pr_title_template: str,
        dry_run: bool,
    ) -> RepoUpdateResult:
        key = RunContext.key_for(session.org, repo_name)
        try:
            with tempfile.TemporaryDirectory(prefix="nuget-report-") as report_dir:
                report_path = Path(report_dir) / REPORT_FILE_NAME
                pull_request = await self.update_client.update(
                    session,
                    repo_name,
                    branch_name,
                    self.operation_factory(settings, report_path),
                    COMMIT_MESSAGE,
                    _interpolate(pr_title_template, settings),
                    _interpolate(PR_BODY_TEMPLATE, settings),
                    [],
                    dry_run,
                )
                report = self._read_report(report_path)
            result = self._classify(key, settings, report, pull_request)
        except ConsistencyException as e:
            logger.critical(f"Consistency fault for {key}: {e}")
            return RepoUpdateFailed(error=f"{e.__class__.__name__}: {e}", consistency_fault=True)
        except Exception as e:
            logger.error(f"Failed to update {key}: {e}", exc_info=True)
            return RepoUpdateFailed(error=f"{e.__class__.__name__}: {e}")

        if is_dry_run_reference(result.pull_request):
            logger.info(f"{key}: changes found, pull request skipped in dry-run ({result.pull_request})")
        elif result.pull_request:
            logger.info(f"{key}: pull request {result.pull_request}")
        elif result.report is not None:
            logger.info(f"{key}: outdated packages reported (check only).")
        else:
            logger.info(f"{key}: no updates required.")
        return result

    @staticmethod
    def _read_report(report_path: Path) -> Optional[Any]:
        if not report_path.exists() or report_path.stat().st_size == 0:
            return None
        try:
            return json.loads(report_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ChangeOperationException(f"Unreadable change report at {report_path}: {e}") from e

    @staticmethod
    def _classify(
        key: str,
        settings: NugetUpdateSettings,
        report: Optional[Any],
        pull_request: Optional[str],
    ) -> RepoUpdateSucceeded:
        has_report = report is not None
        has_pull_request = bool(pull_request)

        if has_report == has_pull_request:
            return RepoUpdateSucceeded(report=report, pull_request=pull_request or None)

        # Check-only passes never touch manifests, so no pull request is expected.
        if has_report and settings.check_only:
            return RepoUpdateSucceeded(report=report)

        if has_report:
            raise ConsistencyException(f"{key} produced a change report but no pull request.")
        raise ConsistencyException(f"{key} produced pull request {pull_request} without a change report.")
