"""
Tests for core utility functions
"""

import pytest
from datetime import datetime, timedelta, timezone

from core.utils import as_utc, clean_filename, utcnow


class TestCleanFilename:
    """Tests for the filename sanitizer used on uploads"""

    def test_plain_name_unchanged(self):
        assert clean_filename("report.pdf") == "report.pdf"

    @pytest.mark.parametrize(
        "filename",
        [
            "../../etc/passwd",
            "/etc/passwd",
            "..\\..\\passwd",
            "uploads/./passwd",
            "C:\\Windows\\..\\passwd",
        ],
    )
    def test_directory_segments_removed(self, filename):
        assert clean_filename(filename) == "passwd"

    @pytest.mark.parametrize("filename", ["", None, "..", "../..", "/", "  ", "./"])
    def test_nothing_usable(self, filename):
        assert clean_filename(filename) == ""

    def test_control_characters_removed(self):
        assert clean_filename("evil\x00name.txt") == "evilname.txt"

    def test_surrounding_whitespace_stripped(self):
        assert clean_filename("  notes.txt ") == "notes.txt"


def test_utcnow_is_utc():
    assert utcnow().utcoffset() == timedelta(0)


class TestAsUtc:
    """Normalizing datetimes read back from the database"""

    def test_naive_is_taken_as_utc(self):
        value = as_utc(datetime(2024, 5, 1, 12, 30))
        assert value == datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)

    def test_other_offset_is_converted(self):
        cest = timezone(timedelta(hours=2))
        value = as_utc(datetime(2024, 5, 1, 14, 30, tzinfo=cest))
        assert value.tzinfo == timezone.utc
        assert value.hour == 12
