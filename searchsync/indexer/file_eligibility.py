"""
Eligibility rule for files.
"""

from typing import Any, Dict, Iterable


def is_file_eligible(file: Dict[str, Any], allowed_extensions: Iterable[str]) -> bool:
    """
    A file may be queued when it is indexed in its storage, its extension
    is allow-listed, it has a metadata record and is not flagged ``no_search``.
    """
    if not file.get("indexed"):
        return False

    extension = str(file.get("extension") or "").lower()
    if not extension or extension not in {ext.lower() for ext in allowed_extensions}:
        return False

    if not file.get("metadata_uid"):
        return False

    return int(file.get("no_search") or 0) == 0
