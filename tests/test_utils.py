# tests/test_utils.py
"""Test utilities and helpers"""

import re

from worshipnote.utils import filename_timestamp, now_iso, run_in_parallel


class TestTimestamps:
    """Test timestamp helpers"""

    def test_now_iso_format(self):
        """Millisecond precision with a Z suffix"""
        assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z", now_iso())

    def test_now_iso_is_ordered(self):
        first = now_iso()
        assert now_iso() >= first

    def test_filename_timestamp(self):
        assert filename_timestamp("2024-01-02T09:30:00.000Z") == "2024-01-02T09-30-00-000Z"

    def test_filename_timestamp_defaults_to_now(self):
        assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}-\d{3}Z", filename_timestamp())


class TestRunInParallel:
    """Test parallel processing helper"""

    def test_results_per_item(self):
        results = run_in_parallel(lambda x: x * 2, [1, 2, 3], show_progress=False)
        assert sorted(results) == [(1, 2), (2, 4), (3, 6)]

    def test_exceptions_are_returned(self):
        def fail_on_two(x):
            if x == 2:
                raise ValueError("two")
            return x

        results = dict(run_in_parallel(fail_on_two, [1, 2], num_threads=2, show_progress=False))

        assert results[1] == 1
        assert isinstance(results[2], ValueError)

    def test_empty_input(self):
        assert run_in_parallel(lambda x: x, [], show_progress=False) == []
