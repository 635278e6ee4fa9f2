import json
import logging
from pathlib import Path
from typing import List, Sequence

from src.domain.exceptions import ChangeOperationException, CommandFailedException
from src.domain.models import NugetUpdateSettings
from src.infrastructure.acl import OutdatedReportTranslator
from src.infrastructure.process import run_command

logger = logging.getLogger(__name__)

DOTNET_OUTDATED_TIMEOUT = 1800  # Seconds; restores on large solutions are slow
DOTNET_OUTDATED = ("dotnet", "outdated")


class NugetDependencyUpdateOperation:
    """
    Runs the dotnet-outdated global tool over the solutions directory of a
    working copy, upgrading package references in place unless check-only.

    The JSON report is left at `report_path` only when it lists at least one
    outdated dependency.
    """

    def __init__(
        self,
        settings: NugetUpdateSettings,
        report_path: Path,
        timeout: float = DOTNET_OUTDATED_TIMEOUT,
        executable: Sequence[str] = DOTNET_OUTDATED,
    ):
        self.settings = settings
        self.report_path = report_path
        self.timeout = timeout
        self.executable = tuple(executable)

    def build_args(self, working_dir: Path) -> List[str]:
        args = [
            *self.executable,
            str(working_dir / self.settings.solutions_dir),
            "--version-lock", self.settings.version_lock.value,
            "--output", str(self.report_path),
            "--output-format", "json",
        ]
        if not self.settings.check_only:
            args.append("--upgrade")
        for name in self.settings.exclusions:
            args.extend(["--exclude", name])
        for name in self.settings.inclusions:
            args.extend(["--include", name])
        return args

    async def execute(self, working_dir: Path) -> bool:
        target = working_dir / self.settings.solutions_dir
        if not target.exists():
            raise ChangeOperationException(f"Solutions directory '{self.settings.solutions_dir}' does not exist.")

        try:
            await run_command(self.build_args(working_dir), cwd=working_dir, timeout=self.timeout)
        except CommandFailedException as e:
            raise ChangeOperationException(f"dotnet-outdated failed: {e}") from e

        if not self.report_path.exists():
            return False

        try:
            raw_report = json.loads(self.report_path.read_text(encoding="utf-8"))
            outdated = OutdatedReportTranslator.outdated_dependencies(raw_report)
        except (OSError, ValueError) as e:
            raise ChangeOperationException(f"Malformed dotnet-outdated report: {e}") from e

        if not outdated:
            self.report_path.unlink()
            return False

        verb = "found" if self.settings.check_only else "upgraded"
        logger.info(f"{len(outdated)} outdated package reference(s) {verb} under '{self.settings.solutions_dir}'.")
        return not self.settings.check_only
