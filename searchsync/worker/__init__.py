"""
Scheduled jobs: queue draining and deletion detection.
"""

from .deletion_detection import DeletionCandidates, DeletionDetectionService, IndexDeletionRunner
from .queue_worker import ItemFailure, ProcessingReport, QueueWorker

__all__ = [
    "DeletionCandidates",
    "DeletionDetectionService",
    "IndexDeletionRunner",
    "ItemFailure",
    "ProcessingReport",
    "QueueWorker",
]
