"""Tests for the per-table indexers."""

import pytest

from conftest import make_service
from searchsync.exceptions import MissingIndexingServiceException
from searchsync.indexer import ContentIndexer, FileIndexer, PageIndexer
from searchsync.indexer.file_eligibility import is_file_eligible


@pytest.mark.asyncio
async def test_queue_operations_require_indexing_service(indexer_factory):
    """Test that an unbound indexer refuses queue operations."""
    indexer = indexer_factory.make_instance_by_type("pages")

    with pytest.raises(MissingIndexingServiceException, match="Missing indexing service instance."):
        await indexer.dequeue_one(1)
    with pytest.raises(MissingIndexingServiceException):
        await indexer.enqueue_one(1)
    with pytest.raises(MissingIndexingServiceException):
        await indexer.enqueue_all()


def test_with_methods_return_copies(indexer_factory):
    """Test that configuring an indexer leaves the shared instance untouched."""
    indexer = indexer_factory.make_instance_by_type("pages")
    bound = indexer.with_indexing_service(make_service(1, "pages"))
    excluding = bound.with_exclude_hidden_pages(True)

    assert indexer.indexing_service is None
    assert bound.indexing_service.uid == 1
    assert bound.exclude_hidden_pages is False
    assert excluding.exclude_hidden_pages is True
    assert indexer_factory.make_instance_by_type("pages") is indexer


def test_factory_types(indexer_factory):
    """Test the bundled indexer types."""
    assert isinstance(indexer_factory.make_instance_by_type("pages"), PageIndexer)
    assert isinstance(indexer_factory.make_instance_by_type("tt_content"), ContentIndexer)
    assert isinstance(indexer_factory.make_instance_by_type("sys_file_metadata"), FileIndexer)
    assert indexer_factory.make_instance_by_type("unknown") is None
    assert [registration.type for registration in indexer_factory.indexers()] == [
        "pages",
        "tt_content",
        "tx_news_domain_model_news",
        "sys_file_metadata",
    ]
    assert indexer_factory.make_instance_by_indexing_service(make_service(9, "unknown")) is None


@pytest.mark.asyncio
async def test_enqueue_then_dequeue_leaves_no_row(indexer_factory, queue_repository):
    """Test that dequeue removes exactly what enqueue added."""
    indexer = indexer_factory.make_instance_by_indexing_service(make_service(1, "pages", pages_recursive=[1]))

    assert await indexer.enqueue_one(2) == 1
    await indexer.enqueue_one(2)
    assert await queue_repository.count() == 1

    await indexer.dequeue_one(2)
    assert await queue_repository.count() == 0


@pytest.mark.asyncio
async def test_page_scope_and_flags(indexer_factory, records, queue_repository):
    """Test that only visible, searchable pages below the configured tree are queued."""
    records.update_record("pages", 3, hidden=1)
    records.update_record("pages", 4, no_search=1)
    indexer = indexer_factory.make_instance_by_indexing_service(make_service(1, "pages", pages_recursive=[1]))

    assert await indexer.enqueue_all() == 2
    assert await queue_repository.find_all_by_table_name("pages") == [1, 2]


@pytest.mark.asyncio
async def test_single_pages_and_doktype(indexer_factory, records, queue_repository):
    """Test single page selection combined with a doktype filter."""
    records.update_record("pages", 2, doktype=1)
    records.update_record("pages", 3, doktype=254)
    service = make_service(1, "pages", pages_single=[2, 3], pages_doktype=[1])
    indexer = indexer_factory.make_instance_by_indexing_service(service)

    await indexer.enqueue_all()

    assert await queue_repository.find_all_by_table_name("pages") == [2]


@pytest.mark.asyncio
async def test_hidden_subtree_excluded_when_requested(indexer_factory, records):
    """Test that hidden pages cut off their subtree with exclude_hidden_pages."""
    records.update_record("pages", 2, hidden=1)
    indexer = indexer_factory.make_instance_by_indexing_service(make_service(1, "pages", pages_recursive=[1]))

    assert await indexer.get_pages() == {1, 2, 3, 4}
    assert await indexer.with_exclude_hidden_pages(True).get_pages() == {1}


@pytest.mark.asyncio
async def test_queue_item_changed_uses_latest_timestamp(indexer_factory):
    """Test that a future start time wins over the modification time."""
    indexer = indexer_factory.make_instance_by_indexing_service(make_service(1, "pages"))

    item = indexer.create_queue_item({"uid": 2, "tstamp": 100, "starttime": 500})

    assert item.key == ("pages", 2, 1)
    assert item.changed == 500
    assert item.priority == 0


@pytest.mark.asyncio
async def test_content_type_filter(indexer_factory, queue_repository):
    """Test that content element types restrict the queued elements."""
    indexer = indexer_factory.make_instance_by_indexing_service(
        make_service(2, "tt_content", content_element_types=["text"])
    )

    await indexer.enqueue_all()

    assert await queue_repository.find_all_by_table_name("tt_content") == [100, 102, 110]


@pytest.mark.asyncio
async def test_file_indexer_queues_metadata_uid(indexer_factory, queue_repository):
    """Test that files from the service's collections are queued by metadata uid."""
    indexer = indexer_factory.make_instance_by_indexing_service(
        make_service(3, "sys_file_metadata", file_collections=[7])
    )

    assert await indexer.enqueue_all() == 1

    items = await queue_repository.find_all_limited(10)
    assert items[0].key == ("sys_file_metadata", 300, 3)
    assert items[0].changed == 50


@pytest.mark.parametrize(
    "file,expected",
    [
        ({"indexed": 1, "extension": "pdf", "metadata_uid": 1, "no_search": 0}, True),
        ({"indexed": 1, "extension": "PDF", "metadata_uid": 1}, True),
        ({"indexed": 0, "extension": "pdf", "metadata_uid": 1}, False),
        ({"indexed": 1, "extension": "exe", "metadata_uid": 1}, False),
        ({"indexed": 1, "extension": "", "metadata_uid": 1}, False),
        ({"indexed": 1, "extension": "pdf", "metadata_uid": None}, False),
        ({"indexed": 1, "extension": "pdf", "metadata_uid": 1, "no_search": 1}, False),
    ],
)
def test_file_eligibility(file, expected):
    """Test every condition of the file eligibility rule."""
    assert is_file_eligible(file, ["pdf", "docx"]) is expected


@pytest.mark.asyncio
async def test_index_record_without_engine(indexer_factory, search_engine):
    """Test that a service without search engine reports failure and sends nothing."""
    service = make_service(5, "pages", search_engine=None)
    indexer = indexer_factory.make_instance_by_indexing_service(service)

    assert await indexer.index_record(service, {"uid": 2, "pid": 1}) is False
    assert search_engine.calls == []


@pytest.mark.asyncio
async def test_index_page_record(indexer_factory, records, search_engine):
    """Test the page document and the engine call sequence."""
    service = make_service(1, "pages", include_content_elements=True)
    indexer = indexer_factory.make_instance_by_indexing_service(service)
    record = await records.find_record("pages", 2)

    assert await indexer.index_record(service, record) is True

    assert search_engine.call_names() == ["index_open", "document_update", "index_commit", "index_close"]
    fields = search_engine.documents["svc:pages-2"]
    assert fields["title"] == "About"
    assert fields["site"] == "www.example.com"
    assert fields["url"] == "https://www.example.com/about"
    assert fields["content"] == "Intro Hello Photo"


@pytest.mark.asyncio
async def test_index_content_record_url_anchor(indexer_factory, records, search_engine):
    """Test that content documents link to their element on the page."""
    service = make_service(2, "tt_content")
    indexer = indexer_factory.make_instance_by_indexing_service(service)

    await indexer.index_record(service, await records.find_record("tt_content", 100))

    fields = search_engine.documents["svc:tt_content-100"]
    assert fields["title"] == "Intro"
    assert fields["content"] == "Hello"
    assert fields["url"] == "https://www.example.com/about#c100"


@pytest.mark.asyncio
async def test_index_file_record(indexer_factory, records, search_engine):
    """Test that file documents carry the file properties."""
    service = make_service(3, "sys_file_metadata", file_collections=[7])
    indexer = indexer_factory.make_instance_by_indexing_service(service)

    await indexer.index_record(service, await records.find_record("sys_file_metadata", 300))

    fields = search_engine.documents["svc:sys_file_metadata-300"]
    assert fields["title"] == "Annual report"
    assert fields["extension"] == "pdf"
    assert fields["url"] == "fileadmin/report.pdf"
    assert fields["size"] == 1024


@pytest.mark.asyncio
async def test_index_record_closes_index_on_failure(indexer_factory, records, search_engine):
    """Test that the index is closed even when the update fails."""
    search_engine.fail_with = RuntimeError("boom")
    service = make_service(1, "pages")
    indexer = indexer_factory.make_instance_by_indexing_service(service)

    with pytest.raises(RuntimeError):
        await indexer.index_record(service, await records.find_record("pages", 2))

    assert search_engine.call_names() == ["index_open", "document_update", "index_close"]


@pytest.mark.asyncio
async def test_news_scoped_to_storage_pages(indexer_factory, records, queue_repository):
    """Test that news records are selected by their storage page."""
    records.add_record("tx_news_domain_model_news", {"uid": 1, "pid": 2, "title": "Launch", "tstamp": 5})
    records.add_record("tx_news_domain_model_news", {"uid": 2, "pid": 3, "title": "Elsewhere"})
    records.add_record("tx_news_domain_model_news", {"uid": 3, "pid": 2, "title": "Draft", "hidden": 1})
    indexer = indexer_factory.make_instance_by_indexing_service(
        make_service(6, "tx_news_domain_model_news", pages_single=[2])
    )

    assert await indexer.enqueue_all() == 1
    assert await queue_repository.find_all_by_table_name("tx_news_domain_model_news") == [1]
