"""Tag synchronization: bring a report's tag associations in line with a client list.

The client's list is authoritative. Tags present on both sides are updated
when their ``active`` flag differs, tags only on the client are inserted and
tags only on the server are deleted. The three sets are disjoint on tag id.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import MalformedInput, NotFound
from ..repository import ReportRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TagAssignment:
    """A tag id with its active flag."""
    tag_id: int
    active: bool


@dataclass
class TagDiff:
    """Statements needed to turn the server state into the client state."""
    to_insert: list[TagAssignment] = field(default_factory=list)
    to_update: list[TagAssignment] = field(default_factory=list)
    to_delete: list[TagAssignment] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.to_insert or self.to_update or self.to_delete)


def diff_tag_assignments(
    client: Iterable[TagAssignment],
    server: Iterable[TagAssignment],
) -> TagDiff:
    """Compute insert/update/delete sets; the client's value wins on conflict.

    >>> diff = diff_tag_assignments(
    ...     [TagAssignment(1, False), TagAssignment(3, True)],
    ...     [TagAssignment(1, True), TagAssignment(2, False)],
    ... )
    >>> diff.to_update, diff.to_insert, diff.to_delete
    ([TagAssignment(tag_id=1, active=False)], [TagAssignment(tag_id=3, active=True)], [TagAssignment(tag_id=2, active=False)])
    """
    # Later duplicates of a tag id replace earlier ones
    client_map = {assignment.tag_id: assignment for assignment in client}
    server_map = {assignment.tag_id: assignment for assignment in server}

    diff = TagDiff()
    for tag_id in list(client_map):
        server_assignment = server_map.get(tag_id)
        if server_assignment is None:
            continue

        client_assignment = client_map[tag_id]
        if server_assignment.active != client_assignment.active:
            diff.to_update.append(client_assignment)

        del client_map[tag_id]
        del server_map[tag_id]

    diff.to_insert.extend(client_map.values())
    diff.to_delete.extend(server_map.values())
    return diff


async def sync_report_tags(
    session: AsyncSession,
    report_id: int,
    client: list[TagAssignment],
) -> TagDiff:
    """Apply the client's tag list to a report in a single transaction.

    Raises:
        NotFound: If the report does not exist
        MalformedInput: If the client names a tag that is not in the catalog
    """
    repository = ReportRepository(session)

    if not await repository.exists(report_id):
        raise NotFound(f"Report {report_id} does not exist")

    requested = {assignment.tag_id for assignment in client}
    unknown = requested - await repository.existing_tag_ids(requested)
    if unknown:
        raise MalformedInput(f"Unknown tag ids: {sorted(unknown)}")

    server = [
        TagAssignment(tag_id=tag.id, active=tag.active)
        for tag in await repository.list_tags_for_report(report_id)
    ]
    diff = diff_tag_assignments(client, server)

    try:
        for assignment in diff.to_insert:
            await repository.insert_association(report_id, assignment.tag_id, assignment.active)
        for assignment in diff.to_update:
            await repository.update_association(report_id, assignment.tag_id, assignment.active)
        for assignment in diff.to_delete:
            await repository.delete_association(report_id, assignment.tag_id)
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info(
        f"Updated tags for report {report_id}: {len(diff.to_insert)} inserted, "
        f"{len(diff.to_update)} updated, {len(diff.to_delete)} deleted"
    )
    return diff
