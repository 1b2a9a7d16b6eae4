"""Relational persistence for reports, tags and report-tag associations.

Lookups for a nonexistent report return ``None``/``[]``/``False`` instead of
raising. Association update/delete are no-ops when no row matches.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from sqlalchemy import delete, exists, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from . import models
from .db import translate_store_errors
from .parsers import ParsedReport

logger = logging.getLogger(__name__)


@dataclass
class ReportSummary:
    """Report projection without the full text."""
    id: int
    name: str
    author: str
    file_name: str
    synopsis: str


@dataclass
class AssignedTag:
    """Catalog tag joined with its association state for one report."""
    id: int
    name: str
    color: str | None
    active: bool


class ReportRepository:
    """Report/tag queries bound to one session.

    Writes are flushed but not committed; the caller owns the transaction.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    @translate_store_errors
    async def find_by_file_name(self, file_name: str) -> models.Report | None:
        result = await self.session.execute(
            select(models.Report).where(models.Report.file_name == file_name)
        )
        return result.scalar_one_or_none()

    @translate_store_errors
    async def find_by_id(self, report_id: int) -> models.Report | None:
        return await self.session.get(models.Report, report_id)

    @translate_store_errors
    async def list_all(self) -> list[ReportSummary]:
        """All reports ordered by name, without text."""
        result = await self.session.execute(
            select(
                models.Report.id,
                models.Report.name,
                models.Report.author,
                models.Report.file_name,
                models.Report.synopsis,
            ).order_by(models.Report.name.asc(), models.Report.id.asc())
        )
        return [
            ReportSummary(
                id=row.id,
                name=row.name,
                author=row.author,
                file_name=row.file_name,
                synopsis=row.synopsis,
            )
            for row in result
        ]

    @translate_store_errors
    async def exists(self, report_id: int) -> bool:
        result = await self.session.execute(
            select(exists().where(models.Report.id == report_id))
        )
        return bool(result.scalar())

    @translate_store_errors
    async def insert_report(self, file_name: str, parsed: ParsedReport) -> models.Report:
        """Insert a report row and flush so the generated id is populated."""
        report = models.Report(
            file_name=file_name,
            name=parsed.name,
            author=parsed.author,
            synopsis=parsed.synopsis,
            text=parsed.text,
        )
        self.session.add(report)
        await self.session.flush()
        logger.debug(f"Inserted report {report.id} for {file_name}")
        return report

    @translate_store_errors
    async def list_tags(self) -> list[models.Tag]:
        result = await self.session.execute(select(models.Tag).order_by(models.Tag.name.asc()))
        return list(result.scalars().all())

    @translate_store_errors
    async def existing_tag_ids(self, tag_ids: Iterable[int]) -> set[int]:
        tag_ids = set(tag_ids)
        if not tag_ids:
            return set()
        result = await self.session.execute(select(models.Tag.id).where(models.Tag.id.in_(tag_ids)))
        return set(result.scalars().all())

    @translate_store_errors
    async def list_tags_for_report(self, report_id: int) -> list[AssignedTag]:
        """Association rows for a report joined with the catalog, by tag name."""
        result = await self.session.execute(
            select(models.Tag.id, models.Tag.name, models.Tag.color, models.ReportTag.active)
            .join(models.ReportTag, models.ReportTag.tag_id == models.Tag.id)
            .where(models.ReportTag.report_id == report_id)
            .order_by(models.Tag.name.asc())
        )
        return [
            AssignedTag(id=row.id, name=row.name, color=row.color, active=row.active)
            for row in result
        ]

    @translate_store_errors
    async def list_unassigned_tags_for_report(self, report_id: int) -> list[models.Tag]:
        """Catalog tags with no association row for this report."""
        if not await self.exists(report_id):
            return []

        assigned = exists().where(
            models.ReportTag.report_id == report_id,
            models.ReportTag.tag_id == models.Tag.id,
        )
        result = await self.session.execute(
            select(models.Tag).where(~assigned).order_by(models.Tag.name.asc())
        )
        return list(result.scalars().all())

    @translate_store_errors
    async def insert_association(self, report_id: int, tag_id: int, active: bool) -> None:
        self.session.add(models.ReportTag(report_id=report_id, tag_id=tag_id, active=active))
        await self.session.flush()

    @translate_store_errors
    async def update_association(self, report_id: int, tag_id: int, active: bool) -> None:
        await self.session.execute(
            update(models.ReportTag)
            .where(models.ReportTag.report_id == report_id, models.ReportTag.tag_id == tag_id)
            .values(active=active)
        )

    @translate_store_errors
    async def delete_association(self, report_id: int, tag_id: int) -> None:
        await self.session.execute(
            delete(models.ReportTag)
            .where(models.ReportTag.report_id == report_id, models.ReportTag.tag_id == tag_id)
        )
