"""
Document listeners adding site information to page and content documents.
"""

from urllib.parse import urlparse

from ..constants import CONTENT_TABLE, PAGES_TABLE
from ..repository.interfaces import SiteResolver
from .document_builder import AfterDocumentAssembledEvent, DocumentListener


def page_document_enricher(site_resolver: SiteResolver) -> DocumentListener:
    """Adds ``site``, ``url`` and the last content change of a page."""

    def _enrich(event: AfterDocumentAssembledEvent) -> None:
        if event.indexer.table != PAGES_TABLE:
            return

        document = event.document
        page_id = int(event.record["uid"])

        base_url = site_resolver.get_site_base_url(page_id)
        if base_url:
            document.set_field("site", urlparse(base_url).hostname)
            document.set_field("url", site_resolver.get_page_url(page_id))

        # SYS_LASTCHANGED includes changes of the page's content elements
        last_changed = int(event.record.get("SYS_LASTCHANGED") or 0)
        if last_changed:
            document.set_field("changed", last_changed)

    return _enrich


def content_document_enricher(site_resolver: SiteResolver) -> DocumentListener:
    """Adds ``site`` and an anchored ``url`` to content element documents."""

    def _enrich(event: AfterDocumentAssembledEvent) -> None:
        if event.indexer.table != CONTENT_TABLE:
            return

        document = event.document
        page_id = int(event.record.get("pid") or 0)

        base_url = site_resolver.get_site_base_url(page_id)
        if not base_url:
            return

        document.set_field("site", urlparse(base_url).hostname)
        page_url = site_resolver.get_page_url(page_id)
        if page_url:
            document.set_field("url", f"{page_url}#c{event.record['uid']}")

    return _enrich
