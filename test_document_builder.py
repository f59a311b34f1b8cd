"""Tests for document assembly."""

from searchsync.indexer.document_builder import AfterDocumentAssembledEvent, DocumentBuilder
from searchsync.model.document import Document


class PagesIndexer:
    table = "pages"


def test_standard_fields(settings):
    """Test the fields every document carries."""
    document = DocumentBuilder(settings).build(PagesIndexer(), {"uid": 1, "pid": 2, "crdate": 100, "tstamp": 200})

    assert document.get_field("uid") == 1
    assert document.get_field("pid") == 2
    assert document.get_field("type") == "pages"
    assert document.get_field("created") == 100
    assert document.get_field("changed") == 200
    assert isinstance(document.get_field("indexed"), int)


def test_missing_pid_defaults_to_zero(settings):
    """Test that records without pid get pid 0."""
    document = DocumentBuilder(settings).build(PagesIndexer(), {"uid": 5})

    assert document.get_field("pid") == 0
    assert not document.has_field("created")
    assert not document.has_field("changed")


def test_mapped_fields_are_sanitized(settings):
    """Test that mapped columns are cleaned and renamed."""
    record = {"uid": 1, "pid": 0, "title": "<b>Hello</b>&nbsp;World"}
    document = DocumentBuilder(settings).build(PagesIndexer(), record)

    assert document.get_field("title") == "Hello World"


def test_empty_and_non_scalar_values_are_skipped(settings):
    """Test that empty strings, markup-only values and lists never reach the document."""
    record = {"uid": 1, "pid": 0, "title": "<br>", "abstract": ""}
    document = DocumentBuilder(settings).build(PagesIndexer(), record)
    assert not document.has_field("title")
    assert not document.has_field("abstract")

    record = {"uid": 1, "pid": 0, "title": ["a", "b"]}
    document = DocumentBuilder(settings).build(PagesIndexer(), record)
    assert not document.has_field("title")


def test_unmapped_columns_are_ignored(settings):
    """Test that only configured columns are copied."""
    document = DocumentBuilder(settings).build(PagesIndexer(), {"uid": 1, "pid": 0, "secret": "x"})

    assert not document.has_field("secret")


def test_extra_fields_override_mapped_fields(settings):
    """Test that type specific fields are applied last."""
    document = DocumentBuilder(settings).build(
        PagesIndexer(), {"uid": 1, "pid": 0, "title": "Mapped"}, extra_fields={"title": "Extra"}
    )

    assert document.get_field("title") == "Extra"


def test_listeners_run_once_after_assembly(settings):
    """Test that each listener sees the finished document exactly once."""
    events = []

    def listener(event: AfterDocumentAssembledEvent):
        events.append(event)
        event.document.set_field("boost", 2)

    builder = DocumentBuilder(settings, [listener])
    document = builder.build(PagesIndexer(), {"uid": 1, "pid": 2, "tstamp": 200})

    assert len(events) == 1
    assert events[0].document is document
    assert events[0].record["uid"] == 1
    assert events[0].document.get_field("changed") == 200
    assert document.get_field("boost") == 2


def test_assemble_without_indexer_is_noop(settings):
    """Test that nothing is built or announced while no indexer is bound."""
    events = []
    builder = DocumentBuilder(settings, [events.append]).set_record({"uid": 1})

    assert builder.assemble().document is None
    assert events == []


def test_document_none_removes_field():
    """Test that setting None deletes a field."""
    document = Document(PagesIndexer(), {})
    document.set_field("title", "A")
    document.set_field("title", None)

    assert not document.has_field("title")
    assert document.fields == {}
