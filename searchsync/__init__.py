"""
searchsync - incremental synchronization of CMS records into search indexes.
"""

__version__ = "0.1.0"
