"""
Reconciliation of sheet files with song records and worship lists.

Modules:
    reconciler  - rename on edit, fan-out, sheet attachment
    recovery    - matching unknown files to songs, audits and cleanup
"""

from worshipnote.reconcile.reconciler import (
    RenameOutcome,
    RenameStatus,
    Reconciler,
    SongEdit,
    fan_out,
    fan_out_all,
)
from worshipnote.reconcile.recovery import (
    MatchResult,
    MatchStatus,
    RecoveryReport,
    apply_recovery,
    find_non_canonical,
    find_unused_files,
    match_file_to_song,
    recover_library,
    relink_worship_list_entries,
)

__all__ = [
    "Reconciler",
    "RenameOutcome",
    "RenameStatus",
    "SongEdit",
    "fan_out",
    "fan_out_all",
    "MatchResult",
    "MatchStatus",
    "RecoveryReport",
    "match_file_to_song",
    "recover_library",
    "apply_recovery",
    "find_non_canonical",
    "find_unused_files",
    "relink_worship_list_entries",
]
