"""
Sync state comparison between the local cache and the remote store.

songs.json and worship_lists.json are separate files on OneDrive, so each
collection is judged on its own:

    pull = remote timestamp present and
           (local timestamp absent or remote > local)

Timestamps are compared as ISO-8601 strings. No clock-skew tolerance is
applied; whoever saved last wins at file granularity.

Usage:
    decision = compare_versions(local_songs, local_lists, remote_songs, remote_lists)
    if decision.songs_need_sync:
        ...adopt remote songs...
"""

from dataclasses import dataclass
from enum import Enum


class SyncReason(Enum):
    """Why a SyncDecision came out the way it did."""
    BOTH_EMPTY = "both_empty"
    LOCAL_EMPTY = "local_empty"
    REMOTE_EMPTY = "remote_empty"
    REMOTE_SONGS_NEWER = "remote_songs_newer"
    REMOTE_LISTS_NEWER = "remote_lists_newer"
    REMOTE_NEWER = "remote_newer"
    NO_SYNC_NEEDED = "no_sync_needed"


@dataclass(frozen=True)
class SyncDecision:
    """
    Per-collection pull decision.

    Attributes:
        songs_need_sync: Remote songs should replace the local copy.
        lists_need_sync: Remote worship lists should replace the local copy.
        reason: Classification for display.

    Callers must act on each flag separately: a collection whose local
    copy is equal or newer is never overwritten.
    """
    songs_need_sync: bool
    lists_need_sync: bool
    reason: SyncReason

    @property
    def needs_sync(self) -> bool:
        return self.songs_need_sync or self.lists_need_sync


def _present(timestamp: str | None) -> bool:
    return bool(timestamp)


def _remote_is_newer(local: str | None, remote: str | None) -> bool:
    if not _present(remote):
        return False
    if not _present(local):
        return True
    return remote > local


def compare_versions(
    local_songs_time: str | None,
    local_lists_time: str | None,
    remote_songs_time: str | None,
    remote_lists_time: str | None
) -> SyncDecision:
    """
    Decide which collections should be pulled from the remote store.

    Args:
        local_songs_time: When the cached songs were last saved/adopted.
        local_lists_time: Same, for worship lists.
        remote_songs_time: lastUpdated of songs.json.
        remote_lists_time: lastUpdated of worship_lists.json.
        None or "" means absent.

    Returns:
        SyncDecision with independent flags and a reason.
    """
    songs_pull = _remote_is_newer(local_songs_time, remote_songs_time)
    lists_pull = _remote_is_newer(local_lists_time, remote_lists_time)

    local_any = _present(local_songs_time) or _present(local_lists_time)
    remote_any = _present(remote_songs_time) or _present(remote_lists_time)

    if not local_any and not remote_any:
        reason = SyncReason.BOTH_EMPTY
    elif not local_any:
        reason = SyncReason.LOCAL_EMPTY
    elif not remote_any:
        reason = SyncReason.REMOTE_EMPTY
    elif songs_pull and lists_pull:
        reason = SyncReason.REMOTE_NEWER
    elif songs_pull:
        reason = SyncReason.REMOTE_SONGS_NEWER
    elif lists_pull:
        reason = SyncReason.REMOTE_LISTS_NEWER
    else:
        reason = SyncReason.NO_SYNC_NEEDED

    return SyncDecision(songs_need_sync=songs_pull, lists_need_sync=lists_pull, reason=reason)
