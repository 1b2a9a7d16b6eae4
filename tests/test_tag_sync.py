"""Tests for tag diffing and synchronization."""
from __future__ import annotations

import pytest

from reportsearch.errors import MalformedInput, NotFound
from reportsearch.pipelines.tag_sync import (
    TagAssignment,
    diff_tag_assignments,
    sync_report_tags,
)
from reportsearch.repository import ReportRepository


def test_diff_update_insert_delete():
    server = [TagAssignment(1, True), TagAssignment(2, False)]
    client = [TagAssignment(1, False), TagAssignment(3, True)]

    diff = diff_tag_assignments(client, server)

    assert diff.to_update == [TagAssignment(1, False)]
    assert diff.to_insert == [TagAssignment(3, True)]
    assert diff.to_delete == [TagAssignment(2, False)]


def test_diff_matching_state_is_empty():
    state = [TagAssignment(1, True), TagAssignment(2, False)]
    diff = diff_tag_assignments(state, list(state))
    assert diff.is_empty


def test_diff_empty_client_deletes_everything():
    server = [TagAssignment(1, True), TagAssignment(2, False)]
    diff = diff_tag_assignments([], server)
    assert diff.to_delete == server
    assert not diff.to_insert and not diff.to_update


def test_diff_empty_server_inserts_everything():
    client = [TagAssignment(4, True), TagAssignment(5, False)]
    diff = diff_tag_assignments(client, [])
    assert diff.to_insert == client


def test_diff_sets_are_disjoint():
    server = [TagAssignment(i, i % 2 == 0) for i in range(1, 8)]
    client = [TagAssignment(i, i % 3 == 0) for i in range(4, 12)]

    diff = diff_tag_assignments(client, server)

    inserted = {a.tag_id for a in diff.to_insert}
    updated = {a.tag_id for a in diff.to_update}
    deleted = {a.tag_id for a in diff.to_delete}
    assert not (inserted & updated or inserted & deleted or updated & deleted)
    assert deleted == {1, 2, 3}
    assert inserted == {8, 9, 10, 11}


def test_diff_duplicate_client_entries_last_wins():
    server = [TagAssignment(1, True)]
    client = [TagAssignment(1, True), TagAssignment(1, False)]
    diff = diff_tag_assignments(client, server)
    assert diff.to_update == [TagAssignment(1, False)]
    assert not diff.to_insert


async def _server_state(database, report_id):
    async with database.session() as session:
        tags = await ReportRepository(session).list_tags_for_report(report_id)
    return {tag.id: tag.active for tag in tags}


async def test_sync_applies_client_state(database, tags, make_report):
    report_id = await make_report("r.txt", "Report")
    urgent, cardio, normal = tags["Urgent"], tags["Cardiology"], tags["Normal"]

    async with database.session() as session:
        await sync_report_tags(session, report_id, [TagAssignment(urgent, True), TagAssignment(cardio, False)])
    assert await _server_state(database, report_id) == {urgent: True, cardio: False}

    async with database.session() as session:
        diff = await sync_report_tags(session, report_id, [TagAssignment(urgent, False), TagAssignment(normal, True)])
    assert diff.to_update == [TagAssignment(urgent, False)]
    assert diff.to_insert == [TagAssignment(normal, True)]
    assert diff.to_delete == [TagAssignment(cardio, False)]
    assert await _server_state(database, report_id) == {urgent: False, normal: True}


async def test_sync_reaches_fixed_point(database, tags, make_report):
    report_id = await make_report("r.txt", "Report")
    client = [TagAssignment(tags["Urgent"], True), TagAssignment(tags["Normal"], False)]

    async with database.session() as session:
        await sync_report_tags(session, report_id, client)
    async with database.session() as session:
        diff = await sync_report_tags(session, report_id, client)

    assert diff.is_empty


async def test_sync_unknown_report_raises_not_found(database, tags):
    async with database.session() as session:
        with pytest.raises(NotFound):
            await sync_report_tags(session, 999, [TagAssignment(tags["Urgent"], True)])


async def test_sync_unknown_tag_is_malformed(database, tags, make_report):
    report_id = await make_report("r.txt", "Report")
    async with database.session() as session:
        with pytest.raises(MalformedInput):
            await sync_report_tags(session, report_id, [TagAssignment(12345, True)])
    assert await _server_state(database, report_id) == {}
