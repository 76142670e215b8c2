"""
Local/remote version comparison and OneDrive sync status checks.
"""

from worshipnote.sync.comparator import SyncDecision, SyncReason, compare_versions
from worshipnote.sync.status import SyncStatusReport, check_sheets_synced

__all__ = [
    "SyncDecision",
    "SyncReason",
    "compare_versions",
    "SyncStatusReport",
    "check_sheets_synced",
]
