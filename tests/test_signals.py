"""
Tests for importing the culling report.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import json
import tempfile
import pytest
from datetime import datetime
from unittest.mock import patch
from photo_grouper.models import ImageRecord
from photo_grouper.error_handling import MalformedSignalError
from photo_grouper.signals import (
    SignalIndex,
    consolidate_duplicate_groups,
    parse_signal_report,
    load_signal_index
)

REPORT = {
    "selectedFiles": [
        {"file": "/shoot/a.jpg", "rating": 4.5, "reasoning": "Sharp"},
        {"filename": "b.jpg", "rating": "3.0", "reasoning": "Soft"},
        {"file": "c.jpg", "rating": None},
    ],
    "duplicateGroups": [
        {"group_id": "dup_1", "images": ["a.jpg", "b.jpg"], "best": "a.jpg", "description": "Burst"},
    ],
    "groupingWarnings": [
        {"images": ["c.jpg", "d.jpg"], "severity": "HIGH", "warning_type": "different_subject"},
        {"images": ["a.jpg", "d.jpg"], "severity": "low"},
    ],
}


class TestParseSignalReport:
    """Test building the index from a decoded report."""

    def test_quality_indexed_by_basename(self):
        """Ratings are keyed by file name, whatever path the report used."""
        index = parse_signal_report(REPORT)
        assert index.quality_for("a.jpg").rating == 4.5
        assert index.quality_for("a.jpg").reasoning == "Sharp"
        assert index.quality_for("b.jpg").rating == 3.0
        assert index.quality_for("c.jpg").rating is None
        assert index.quality_for("missing.jpg") is None

    def test_duplicates(self):
        """Duplicate membership and the best flag are indexed."""
        index = parse_signal_report(REPORT)
        assert index.duplicate_for("a.jpg").group_id == "dup_1"
        assert index.duplicate_for("a.jpg").is_best
        assert not index.duplicate_for("b.jpg").is_best
        assert index.duplicate_group_count == 1

    def test_warnings(self):
        """Severity is normalised and high-severity warnings are filtered."""
        index = parse_signal_report(REPORT)
        assert len(index.warnings) == 2
        assert len(index.high_severity_warnings) == 1
        assert index.high_severity_conflicts("c.jpg", "d.jpg")
        assert not index.high_severity_conflicts("a.jpg", "d.jpg")

    def test_empty_document(self):
        """A report with no sections gives an empty index."""
        index = parse_signal_report({})
        assert index.quality == {}
        assert index.duplicates == {}
        assert index.warnings == []

    def test_not_an_object(self):
        """A JSON array is rejected."""
        with pytest.raises(MalformedSignalError):
            parse_signal_report([])

    def test_section_wrong_type(self):
        """Sections must be lists."""
        with pytest.raises(MalformedSignalError):
            parse_signal_report({"duplicateGroups": {"images": []}})

    def test_invalid_rating(self):
        """Non-numeric ratings are rejected."""
        with pytest.raises(MalformedSignalError):
            parse_signal_report({"selectedFiles": [{"file": "a.jpg", "rating": "great"}]})


class TestConsolidateDuplicateGroups:
    """Test merging overlapping duplicate groups."""

    def test_shared_image_merges_groups(self):
        """Groups sharing an image become one class under the first id."""
        duplicates = consolidate_duplicate_groups([
            {"group_id": "g1", "images": ["a.jpg", "b.jpg"], "best": "b.jpg"},
            {"group_id": "g2", "images": ["b.jpg", "c.jpg"], "best": "c.jpg"},
            {"group_id": "g3", "images": ["x.jpg", "y.jpg"]},
        ])

        assert {duplicates[n].group_id for n in ("a.jpg", "b.jpg", "c.jpg")} == {"g1"}
        assert duplicates["x.jpg"].group_id == "g3"
        assert [n for n, info in duplicates.items() if info.is_best] == ["b.jpg"]

    def test_repeated_id_merges(self):
        """The same id listed twice is one class."""
        duplicates = consolidate_duplicate_groups([
            {"group_id": "g1", "images": ["a.jpg"]},
            {"group_id": "g1", "images": ["b.jpg"]},
        ])
        assert duplicates["a.jpg"].group_id == duplicates["b.jpg"].group_id == "g1"

    def test_missing_id_is_generated(self):
        """Groups without an id get one from their position."""
        duplicates = consolidate_duplicate_groups([{"images": ["a.jpg", "b.jpg"]}])
        assert duplicates["a.jpg"].group_id == "group_1"

    def test_at_most_one_best(self):
        """Only one image per class is flagged best."""
        duplicates = consolidate_duplicate_groups([
            {"group_id": "g1", "images": ["a.jpg", "b.jpg"], "best": "a.jpg"},
            {"group_id": "g2", "images": ["b.jpg", "c.jpg"], "best": "c.jpg"},
        ])
        assert sum(1 for info in duplicates.values() if info.is_best) == 1


class TestLoadSignalIndex:
    """Test loading the report from disk."""

    def test_missing_file_returns_none(self):
        """A missing report is not an error."""
        with tempfile.TemporaryDirectory() as temp_dir:
            assert load_signal_index(os.path.join(temp_dir, "culling_report.json")) is None
        assert load_signal_index(None) is None

    def test_load_valid_file(self):
        """A valid report is parsed and remembers its path."""
        with tempfile.TemporaryDirectory() as temp_dir:
            path = os.path.join(temp_dir, "culling_report.json")
            with open(path, 'w') as f:
                json.dump(REPORT, f)

            index = load_signal_index(path)

            assert index is not None
            assert index.source_path == path
            assert index.quality_for("a.jpg").rating == 4.5

    def test_invalid_json_raises(self):
        """An unparseable report raises MalformedSignalError."""
        with tempfile.TemporaryDirectory() as temp_dir:
            path = os.path.join(temp_dir, "culling_report.json")
            with open(path, 'w') as f:
                f.write("{not json")

            with pytest.raises(MalformedSignalError):
                load_signal_index(path)

    def test_unreadable_file_raises(self):
        """A report that exists but cannot be opened raises MalformedSignalError."""
        with tempfile.TemporaryDirectory() as temp_dir:
            path = os.path.join(temp_dir, "culling_report.json")
            with open(path, 'w') as f:
                json.dump(REPORT, f)

            with patch('photo_grouper.signals.open', side_effect=PermissionError("denied"), create=True):
                with pytest.raises(MalformedSignalError, match="Could not read"):
                    load_signal_index(path)



class TestEnrich:
    """Test copying signals onto records."""

    def test_enrich_records(self):
        """Ratings and duplicate data are copied by file name."""
        index = parse_signal_report(REPORT)
        records = [
            ImageRecord(file_path="/photos/a.jpg", timestamp=datetime(2025, 6, 14, 9, 0)),
            ImageRecord(file_path="/photos/b.jpg", timestamp=datetime(2025, 6, 14, 9, 1)),
            ImageRecord(file_path="/photos/z.jpg", timestamp=datetime(2025, 6, 14, 9, 2)),
        ]

        result = index.enrich(records)

        assert result is records
        assert records[0].quality_rating == 4.5
        assert records[0].duplicate_group_id == "dup_1"
        assert records[0].is_duplicate_best
        assert records[0].duplicate_description == "Burst"
        assert records[1].quality_reasoning == "Soft"
        assert not records[1].is_duplicate_best
        assert records[2].quality_rating is None
        assert records[2].duplicate_group_id is None

    def test_empty_index(self):
        """An empty index leaves records untouched."""
        record = ImageRecord(file_path="/photos/a.jpg", timestamp=datetime(2025, 6, 14, 9, 0))
        SignalIndex().enrich([record])
        assert record.quality_rating is None
