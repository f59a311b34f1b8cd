"""
Per-table indexers and document assembly.
"""

from .base import AbstractIndexer
from .content_extractor import clean_html
from .content_indexer import ContentIndexer
from .document_builder import AfterDocumentAssembledEvent, DocumentBuilder
from .file_eligibility import is_file_eligible
from .file_indexer import FileIndexer
from .news_indexer import NewsIndexer
from .page_indexer import PageIndexer
from .registry import IndexerFactory, IndexerRegistry, build_default_indexer_registry

__all__ = [
    "AbstractIndexer",
    "AfterDocumentAssembledEvent",
    "ContentIndexer",
    "DocumentBuilder",
    "FileIndexer",
    "IndexerFactory",
    "IndexerRegistry",
    "NewsIndexer",
    "PageIndexer",
    "build_default_indexer_registry",
    "clean_html",
    "is_file_eligible",
]
