import argparse
import asyncio
import functools
import sys
import logging
from pathlib import Path
from typing import List, Optional

import aiohttp
from dotenv import load_dotenv
from pydantic import ValidationError

from src.config import AppSettings
from src.domain.exceptions import ConfigurationException
from src.infrastructure.config_loader import RosterLoader
from src.infrastructure.database import PostgresReportArchive
from src.infrastructure.github_client import GitHubRestClient
from src.infrastructure.nuget_operation import NugetDependencyUpdateOperation
from src.infrastructure.repo_update_client import RepoUpdateClient
from src.infrastructure.report_store import DataLakeUploader, LocalReportWriter, ReportArchiver
from src.application.orchestration_service import OrchestrationService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s:%(funcName)s:%(lineno)d %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIRECTORY = Path("repos") / "sample"
DEFAULT_BRANCH_NAME = "dependency-bot/nuget-updates"
DEFAULT_PR_TITLE = "Update NuGet dependencies in {solutions_dir}"


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Raise NuGet dependency update pull requests across the repositories in a roster."
    )
    parser.add_argument("--config-directory", type=Path, default=DEFAULT_CONFIG_DIRECTORY,
                        help="Directory holding the YAML repository roster")
    parser.add_argument("--branch-name", default=DEFAULT_BRANCH_NAME,
                        help="Branch the updates are committed to")
    parser.add_argument("--pr-title", default=DEFAULT_PR_TITLE,
                        help="Pull request title; {solutions_dir} is substituted")
    parser.add_argument("--report-directory", type=Path, default=None,
                        help="Where the JSON run report is written (default: REPORT_OUTPUT_DIR or .)")
    parser.add_argument("--dry-run", action="store_true",
                        help="Analyse and report without pushing, opening pull requests or uploading")
    return parser.parse_args(argv)


async def main(argv: Optional[List[str]] = None) -> int:
    # Load environment variables from .env file
    load_dotenv()
    args = parse_args(argv)

    try:
        settings = AppSettings.from_env()
    except ValidationError as e:
        logger.error(f"Invalid environment configuration: {e}")
        return 1

    logging.getLogger().setLevel(settings.log_level)
    dry_run = args.dry_run or settings.dry_run

    try:
        roster = RosterLoader(args.config_directory).load()
    except ConfigurationException as e:
        logger.error(str(e))
        return 1

    if not settings.github_token:
        logger.warning("GITHUB_TOKEN is not set in the environment; no organisation can be processed.")

    async with aiohttp.ClientSession() as session:
        github_client = GitHubRestClient(token=settings.github_token, api_url=settings.github_api_url)
        update_client = RepoUpdateClient(
            github_client=github_client,
            session=session,
            committer_name=settings.committer_name,
            committer_email=settings.committer_email,
        )
        report_sink = ReportArchiver(
            writer=LocalReportWriter(args.report_directory or settings.report_output_dir),
            session=session,
            uploader=DataLakeUploader(
                account_name=settings.datalake_name,
                filesystem=settings.datalake_filesystem,
                directory=settings.datalake_directory,
                sas_token=settings.datalake_sas_token,
            ),
            archives=[PostgresReportArchive(settings.database_url)] if settings.database_url else [],
        )

        # Create the orchestration service and process the roster
        service = OrchestrationService(
            update_client=update_client,
            report_sink=report_sink,
            operation_factory=functools.partial(
                NugetDependencyUpdateOperation, timeout=settings.dotnet_outdated_timeout
            ),
        )
        _, exit_code = await service.run(
            roster,
            branch_name=args.branch_name,
            pr_title_template=args.pr_title,
            dry_run=dry_run,
        )

    return exit_code


def cli() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("Run interrupted by user. Exiting.")
        sys.exit(130)


if __name__ == "__main__":
    cli()
