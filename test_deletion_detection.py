"""Tests for detecting records that left the scope of their index."""

import pytest

from searchsync.worker import DeletionDetectionService, IndexDeletionRunner


@pytest.fixture
def detection(settings, indexer_factory, services, records):
    return DeletionDetectionService(settings, indexer_factory, services, records)


@pytest.mark.asyncio
async def test_detects_out_of_scope_records(detection, records):
    """Test that existing records outside the service scope are reported."""
    records.update_record("pages", 3, hidden=1)

    candidates = await detection.detect_records_for_deletion()

    assert [(entry.indexing_service.uid, entry.table, entry.record_uids) for entry in candidates] == [
        (1, "pages", [3, 10, 11])
    ]


@pytest.mark.asyncio
async def test_deleted_records_are_not_candidates(detection, records):
    """Test that records already marked deleted are left to the delete handling."""
    records.update_record("pages", 10, deleted=1)

    candidates = await detection.detect_records_for_deletion()

    assert candidates[0].record_uids == [11]


@pytest.mark.asyncio
async def test_files_outside_collections(detection, records):
    """Test that file metadata without an eligible file is reported."""
    records.add_record("sys_file_metadata", {"uid": 301, "pid": 0, "title": "Unlisted"})

    candidates = await detection.detect_records_for_deletion()

    assert ("sys_file_metadata", [301]) in [(entry.table, entry.record_uids) for entry in candidates]


@pytest.mark.asyncio
async def test_dry_run_changes_nothing(detection, record_handler, search_engine):
    """Test that a dry run only reports."""
    candidates = await IndexDeletionRunner(detection, record_handler).run(dry_run=True)

    assert candidates[0].record_uids == [10, 11]
    assert search_engine.calls == []


@pytest.mark.asyncio
async def test_run_removes_from_queue_and_index(detection, record_handler, queue_repository, search_engine):
    """Test that detected records are dequeued and deleted from the index."""
    await IndexDeletionRunner(detection, record_handler).run()

    deleted = [call[1] for call in search_engine.calls if call[0] == "document_delete"]
    assert deleted == ["svc:pages-10", "svc:pages-11"]
    assert await queue_repository.count() == 0
