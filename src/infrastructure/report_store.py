import asyncio
import aiohttp
import json
import logging
from pathlib import Path
from typing import Optional, Sequence

from src.domain.exceptions import PersistenceException
from src.domain.models import RunReport

logger = logging.getLogger(__name__)

REPORT_FILE_PREFIX = "nuget-dependency-updates"
UPLOAD_TIMEOUT = aiohttp.ClientTimeout(total=120, connect=10)


def report_file_name(report: RunReport) -> str:
    return f"{REPORT_FILE_PREFIX}-{report.metadata.start_time.strftime('%Y%m%dT%H%M%SZ')}.json"


class LocalReportWriter:
    """Writes the run report as JSON to a local directory."""

    def __init__(self, output_dir: Path):
        self.output_dir = Path(output_dir)

    def write(self, report: RunReport) -> Path:
        path = self.output_dir / report_file_name(report)
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            # Written to a sibling file first so a failed write never leaves a truncated report.
            tmp_path = path.with_suffix(".json.tmp")
            tmp_path.write_text(json.dumps(report.model_dump(mode="json"), indent=2), encoding="utf-8")
            tmp_path.replace(path)
        except OSError as e:
            raise PersistenceException(f"Could not write report to {path}: {e}") from e
        logger.info(f"Run report written to {path}")
        return path


class DataLakeUploader:
    """
    Uploads a report file to Azure Data Lake Storage Gen2 through its REST API,
    authenticating with a SAS token: create the file, append the content, flush.
    """

    def __init__(
        self,
        account_name: Optional[str],
        filesystem: Optional[str],
        directory: Optional[str],
        sas_token: Optional[str],
    ):
        self.account_name = account_name
        self.filesystem = filesystem
        self.directory = (directory or "").strip("/")
        self.sas_token = (sas_token or "").lstrip("?")

    @property
    def configured(self) -> bool:
        return bool(self.account_name and self.filesystem and self.sas_token)

    def file_url(self, file_name: str) -> str:
        path = f"{self.directory}/{file_name}" if self.directory else file_name
        return f"https://{self.account_name}.dfs.core.windows.net/{self.filesystem}/{path}"

    def _url(self, file_url: str, query: str) -> str:
        return f"{file_url}?{query}&{self.sas_token}"

    async def upload(self, session: aiohttp.ClientSession, path: Path) -> str:
        if not self.configured:
            raise PersistenceException(
                "Data lake upload is not configured (DATALAKE_NAME, DATALAKE_FILESYSTEM and DATALAKE_SASTOKEN are required)."
            )

        file_url = self.file_url(path.name)
        headers = {"x-ms-version": "2021-08-06"}
        try:
            content = path.read_bytes()
            steps = [
                ("PUT", "resource=file", None),
                ("PATCH", "action=append&position=0", content),
                ("PATCH", f"action=flush&position={len(content)}", None),
            ]
            for method, query, data in steps:
                async with session.request(
                    method, self._url(file_url, query), data=data, headers=headers, timeout=UPLOAD_TIMEOUT
                ) as response:
                    if response.status >= 400:
                        body = await response.text()
                        raise PersistenceException(f"Data lake {method} {query} failed ({response.status}): {body}")
        except asyncio.TimeoutError as e:
            raise PersistenceException(f"Data lake upload timed out after {UPLOAD_TIMEOUT.total}s") from e
        except (aiohttp.ClientError, OSError) as e:
            raise PersistenceException(f"Data lake upload failed: {e}") from e

        logger.info(f"Run report uploaded to {file_url}")
        return file_url


class ReportArchiver:
    """
    Persists a sealed run report: always to the local file first, then to each
    remote archive unless this is a dry run. A remote failure never touches
    the local file; all remote targets are attempted before failures are raised.
    """

    def __init__(
        self,
        writer: LocalReportWriter,
        session: aiohttp.ClientSession,
        uploader: Optional[DataLakeUploader] = None,
        archives: Sequence = (),
    ):
        self.writer = writer
        self.session = session
        self.uploader = uploader
        self.archives = list(archives)

    async def publish(self, report: RunReport, dry_run: bool) -> None:
        path = self.writer.write(report)

        if dry_run:
            logger.info("[DRY RUN] Skipping report upload and archive.")
            return

        failures = []
        if self.uploader is not None:
            try:
                await self.uploader.upload(self.session, path)
            except PersistenceException as e:
                logger.error(f"Report upload failed: {e}")
                failures.append(str(e))

        for archive in self.archives:
            try:
                await archive.archive(report)
            except PersistenceException as e:
                logger.error(f"Report archive failed: {e}")
                failures.append(str(e))

        if failures:
            raise PersistenceException("; ".join(failures))
