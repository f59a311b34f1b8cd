"""
Custom exceptions for the search synchronization service.
"""


from typing import Optional


class SearchSyncException(Exception):
    """Base exception for all synchronization errors."""

    pass


class RetryableException(SearchSyncException):
    """Exception that indicates the work item should be retried later."""

    def __init__(self, message: str, retry_delay: int = 0):
        super().__init__(message)
        self.retry_delay = retry_delay


class NonRetryableException(SearchSyncException):
    """Exception that indicates retrying will not help."""

    pass


class SearchEngineException(RetryableException):
    """Search engine request failed."""

    def __init__(self, message: str, status_code: Optional[int] = None, retry_delay: int = 5):
        super().__init__(message, retry_delay)
        self.status_code = status_code


class RateLimitException(SearchEngineException):
    """Search engine answered with HTTP 429."""

    def __init__(self, message: str, status_code: int = 429, retry_delay: int = 30):
        super().__init__(message, status_code, retry_delay)


class QueueStoreException(RetryableException):
    """Queue storage errors."""

    def __init__(self, message: str, original_error: Optional[Exception] = None, retry_delay: int = 3):
        super().__init__(message, retry_delay)
        self.original_error = original_error


class QueueThrottlingException(QueueStoreException):
    """Queue storage throughput exceeded."""

    pass


class QueueConnectionException(QueueStoreException):
    """Queue storage could not be reached."""

    pass


class MissingConfigurationException(NonRetryableException):
    """Required configuration (credentials, engine settings) is absent."""

    pass


class RecordNotFoundException(NonRetryableException):
    """Record or its root page could not be resolved."""

    def __init__(self, message: str, table: Optional[str] = None, uid: Optional[int] = None):
        super().__init__(message)
        self.table = table
        self.uid = uid


class MissingIndexingServiceException(RuntimeError):
    """Queue operation attempted on an indexer without a bound indexing service."""

    def __init__(self, message: str = "Missing indexing service instance."):
        super().__init__(message)
