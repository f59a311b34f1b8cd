"""
Shared constants for the search synchronization service.
"""

# Table identifiers of the built-in record types
PAGES_TABLE = "pages"
CONTENT_TABLE = "tt_content"
FILE_METADATA_TABLE = "sys_file_metadata"
NEWS_TABLE = "tx_news_domain_model_news"

# Recursion depth used when expanding page trees
MAX_PAGE_TREE_DEPTH = 99

# Rows per write statement when bulk inserting queue items
QUEUE_INSERT_CHUNK_SIZE = 1000

# DynamoDB limits
DYNAMODB_BATCH_WRITE_SIZE = 25
DYNAMODB_BATCH_GET_SIZE = 100

DEFAULT_DOCUMENT_ID_NAMESPACE = "searchsync"
DEFAULT_QUEUE_PRIORITY = 0
DEFAULT_DOCUMENTS_TO_INDEX = 100
