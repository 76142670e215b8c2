"""
Utility functions for worshipnote.

This module provides common utility functions used across the application:
    - ISO-8601 timestamps compatible with the stored JSON documents
    - Filename-safe timestamps for backups and archives
    - Threading utilities for parallel processing

Usage:
    from worshipnote.utils import (
        now_iso,
        filename_timestamp,
        run_in_parallel
    )
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from typing import Callable, Iterable, TypeVar

from tqdm import tqdm


# Type variable for generic parallel processing
T = TypeVar("T")
R = TypeVar("R")


def now_iso() -> str:
    """
    Current UTC time as an ISO-8601 string with millisecond precision.

    The format ("2024-01-02T09:30:00.000Z") matches the timestamps already
    stored in songs.json / worship_lists.json, so string comparison of
    timestamps written by either side stays meaningful.
    """
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def filename_timestamp(timestamp: str | None = None) -> str:
    """
    Make a timestamp safe for use inside a filename.

    Args:
        timestamp: ISO timestamp, defaults to now_iso().

    Returns:
        The timestamp with ':' and '.' replaced by '-'.
        Example: "2024-01-02T09-30-00-000Z"
    """
    return (timestamp or now_iso()).replace(":", "-").replace(".", "-")


def run_in_parallel(
    func: Callable[[T], R],
    items: Iterable[T],
    num_threads: int = 4,
    description: str = "Processing",
    show_progress: bool = True
) -> list[tuple[T, R | Exception]]:
    """
    Run a function on multiple items in parallel with progress tracking.

    Args:
        func: Function to call for each item. Takes one argument.
        items: Iterable of items to process.
        num_threads: Number of parallel threads.
        description: Description for the progress bar.
        show_progress: Whether to show tqdm progress bar.

    Returns:
        List of (item, result) tuples where result is either the
        return value or an Exception if the call failed.
        Order follows completion, not input order.

    Error Handling:
        Exceptions are caught and returned in the result tuple.
        Processing continues for other items.
    """
    items_list = list(items)
    results: list[tuple[T, R | Exception]] = []

    if not items_list:
        return results

    with ThreadPoolExecutor(max_workers=num_threads) as executor:
        future_to_item = {
            executor.submit(func, item): item
            for item in items_list
        }

        iterator = as_completed(future_to_item)
        if show_progress:
            iterator = tqdm(
                iterator,
                total=len(items_list),
                desc=description,
                unit="file"
            )

        for future in iterator:
            item = future_to_item[future]
            try:
                results.append((item, future.result()))
            except Exception as e:
                results.append((item, e))

    return results
