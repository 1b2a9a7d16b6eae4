"""Startup ingestion: reconcile the source directory with the store and index.

Each file is handled independently. A file that already has a report row is
skipped without re-indexing, so a row that was committed but never reached
the index (or the reverse) is not repaired here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from ..db import Database
from ..errors import ReportSearchError
from ..parsers import ParseError, parse_report_file
from ..repository import ReportRepository
from ..search import SearchIndex

logger = logging.getLogger(__name__)


class OutcomeStatus(str, Enum):
    """Per-file ingestion result."""
    CREATED = "created"
    SKIPPED = "skipped"
    FAILED = "failed"
    INDEX_FAILED = "index_failed"


@dataclass
class IngestionOutcome:
    """Result of reconciling a single file."""
    file_name: str
    status: OutcomeStatus
    report_id: int | None = None
    error: str | None = None


@dataclass
class IngestionSummary:
    """Aggregate of one directory scan."""
    directory: str
    outcomes: list[IngestionOutcome] = field(default_factory=list)
    error: str | None = None

    def count(self, status: OutcomeStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def created(self) -> int:
        return self.count(OutcomeStatus.CREATED)

    @property
    def skipped(self) -> int:
        return self.count(OutcomeStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return self.count(OutcomeStatus.FAILED) + self.count(OutcomeStatus.INDEX_FAILED)


class ReportReconciler:
    """Ensures every source document has a report row and an index entry."""

    def __init__(
        self,
        database: Database,
        search_index: SearchIndex,
        directory: Path | str,
        *,
        encoding: str = "utf-8",
    ):
        self.database = database
        self.search_index = search_index
        self.directory = Path(directory)
        self.encoding = encoding

    async def reconcile_all(self) -> IngestionSummary:
        """Reconcile every regular file in the directory, in name order."""
        summary = IngestionSummary(directory=str(self.directory))

        try:
            entries = sorted(self.directory.iterdir(), key=lambda p: p.name)
        except OSError as e:
            logger.error(f"Cannot list report directory {self.directory}: {e}")
            summary.error = str(e)
            return summary

        for entry in entries:
            if not entry.is_file():
                logger.info(f"Skipping non-file entry {entry.name}")
                continue
            summary.outcomes.append(await self.reconcile_one(entry.name))

        logger.info(
            f"Ingestion of {self.directory} finished: {summary.created} created, "
            f"{summary.skipped} skipped, {summary.failed} failed"
        )
        return summary

    async def reconcile_one(self, file_name: str) -> IngestionOutcome:
        """Create the report row and index entry for ``file_name`` if absent.

        Failures are logged and returned as an outcome, never raised.
        """
        logger.info(f"Adding report with fileName = {file_name} to database and search index")

        async with self.database.session() as session:
            repository = ReportRepository(session)
            try:
                existing = await repository.find_by_file_name(file_name)
                if existing is not None:
                    logger.info(f"Report {file_name} already exists as {existing.id}, skipping")
                    return IngestionOutcome(file_name, OutcomeStatus.SKIPPED, report_id=existing.id)

                parsed = parse_report_file(self.directory / file_name, encoding=self.encoding)
                report = await repository.insert_report(file_name, parsed)
                await session.commit()
            except (ParseError, ReportSearchError) as e:
                await session.rollback()
                logger.error(f"Ingestion of {file_name} failed: {e}")
                return IngestionOutcome(file_name, OutcomeStatus.FAILED, error=str(e))
            except Exception as e:
                await session.rollback()
                logger.error(f"Unexpected error ingesting {file_name}: {e}", exc_info=True)
                return IngestionOutcome(file_name, OutcomeStatus.FAILED, error=str(e))

        try:
            await self.search_index.index(report)
        except ReportSearchError as e:
            logger.error(f"Report {report.id} ({file_name}) stored but not indexed: {e}")
            return IngestionOutcome(
                file_name,
                OutcomeStatus.INDEX_FAILED,
                report_id=report.id,
                error=str(e),
            )

        logger.info(f"Successfully ingested report {report.id}: {file_name}")
        return IngestionOutcome(file_name, OutcomeStatus.CREATED, report_id=report.id)
