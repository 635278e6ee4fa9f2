from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.dialects.postgresql import insert, JSONB
from sqlalchemy import Table, Column, String, Integer, Boolean, DateTime, MetaData, text

from src.domain.exceptions import PersistenceException
from src.domain.models import RunReport
from src.infrastructure.report_store import report_file_name

# SQLAlchemy core Table definition
metadata = MetaData()
runs_table = Table(
    'dependency_update_runs', metadata,
    Column('report_name', String, primary_key=True),
    Column('start_time', DateTime(timezone=True), nullable=False),
    Column('end_time', DateTime(timezone=True), nullable=True),
    Column('success', Boolean, nullable=False),
    Column('repos_analysed', Integer, nullable=False),
    Column('repos_updated', Integer, nullable=False),
    Column('archived_at', DateTime(timezone=True), server_default=text('NOW()')),
    Column('report', JSONB, nullable=False),
)

class PostgresReportArchive:
    """
    Archives sealed run reports in PostgreSQL, one row per run with the full report as JSONB.
    """

    def __init__(self, db_url: str):
        self.engine = create_async_engine(db_url, echo=False)

    async def archive(self, report: RunReport) -> None:
        """
        Inserts the report, replacing any row previously archived for the same run.

        Args:
            report (RunReport): The sealed run report.
        """
        run = report.metadata
        values = {
            'report_name': report_file_name(report),
            'start_time': run.start_time,
            'end_time': run.end_time,
            'success': run.success,
            'repos_analysed': run.repos_analysed,
            'repos_updated': run.repos_updated,
            'report': report.model_dump(mode="json"),
        }

        stmt = insert(runs_table).values(values)
        upsert_stmt = stmt.on_conflict_do_update(
            index_elements=['report_name'],
            set_={
                'end_time': stmt.excluded.end_time,
                'success': stmt.excluded.success,
                'repos_analysed': stmt.excluded.repos_analysed,
                'repos_updated': stmt.excluded.repos_updated,
                'report': stmt.excluded.report,
                'archived_at': text('NOW()'),
            },
        )

        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(metadata.create_all)
                await conn.execute(upsert_stmt)
        except (SQLAlchemyError, OSError) as e:
            raise PersistenceException(f"Could not archive run report in the database: {e}") from e
