import unittest
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

from src import main as entrypoint
from src.domain.exceptions import ConfigurationException


class TestParseArgs(unittest.TestCase):
    def test_defaults(self) -> None:
        args = entrypoint.parse_args([])

        self.assertEqual(args.config_directory, Path("repos") / "sample")
        self.assertEqual(args.branch_name, entrypoint.DEFAULT_BRANCH_NAME)
        self.assertEqual(args.pr_title, entrypoint.DEFAULT_PR_TITLE)
        self.assertIsNone(args.report_directory)
        self.assertFalse(args.dry_run)

    def test_overrides(self) -> None:
        args = entrypoint.parse_args([
            "--config-directory", "repos/live",
            "--branch-name", "bot/deps",
            "--pr-title", "Bump {solutions_dir}",
            "--dry-run",
        ])

        self.assertEqual(args.config_directory, Path("repos/live"))
        self.assertEqual(args.branch_name, "bot/deps")
        self.assertEqual(args.pr_title, "Bump {solutions_dir}")
        self.assertTrue(args.dry_run)


class TestMain(unittest.IsolatedAsyncioTestCase):
    async def test_roster_error_exits_without_running(self) -> None:
        loader = MagicMock()
        loader.return_value.load.side_effect = ConfigurationException("Could not find config directory: nowhere")

        with patch.object(entrypoint, "load_dotenv"), \
                patch.object(entrypoint, "RosterLoader", loader), \
                patch.object(entrypoint, "OrchestrationService") as service:
            exit_code = await entrypoint.main(["--config-directory", "nowhere"])

        self.assertEqual(exit_code, 1)
        service.assert_not_called()

    async def test_returns_orchestration_exit_code(self) -> None:
        loader = MagicMock()
        loader.return_value.load.return_value = []
        service = MagicMock()
        service.return_value.run = AsyncMock(return_value=(object(), 1))

        with patch.object(entrypoint, "load_dotenv"), \
                patch.dict("os.environ", {"DRYRUN_MODE": "false", "DATABASE_URL": "", "LOG_LEVEL": "INFO"}), \
                patch.object(entrypoint, "RosterLoader", loader), \
                patch.object(entrypoint, "OrchestrationService", service):
            exit_code = await entrypoint.main(["--dry-run", "--branch-name", "bot/deps"])

        self.assertEqual(exit_code, 1)
        kwargs = service.return_value.run.await_args.kwargs
        self.assertTrue(kwargs["dry_run"])
        self.assertEqual(kwargs["branch_name"], "bot/deps")
