"""
Sheet files: canonical naming, legacy name parsing and image conversion.
"""

from worshipnote.sheets.converter import convert_to_jpeg
from worshipnote.sheets.filename import (
    SongFileInfo,
    canonical_file_name,
    is_canonical_file_name,
    parse_file_name,
)
from worshipnote.sheets.legacy import LegacyFileInfo, match_legacy_file_name

__all__ = [
    "SongFileInfo",
    "canonical_file_name",
    "is_canonical_file_name",
    "parse_file_name",
    "LegacyFileInfo",
    "match_legacy_file_name",
    "convert_to_jpeg",
]
