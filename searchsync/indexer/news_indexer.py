"""
Indexer for news records.
"""

from ..constants import NEWS_TABLE
from .base import AbstractIndexer


class NewsIndexer(AbstractIndexer):
    table = NEWS_TABLE
    title = "News"
