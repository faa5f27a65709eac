"""
Tests for temporal-exposure clustering.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import pytest
from datetime import datetime, timedelta
from photo_grouper.models import ImageRecord, Exposure, Cluster, GroupingWarning
from photo_grouper.config import GroupingConfig
from photo_grouper.signals import SignalIndex
from photo_grouper.error_handling import ClusteringError
from photo_grouper.clustering import (
    calculate_time_difference,
    is_exposure_similar,
    find_grouping_veto,
    shares_duplicate_group,
    format_cluster_name,
    create_temporal_clusters
)

BASE = datetime(2025, 6, 14, 9, 0, 0)


def make_record(name, minutes, iso=400, aperture=2.8, camera="Canon EOS R5", group=None):
    return ImageRecord(
        file_path=f"/photos/{name}",
        timestamp=BASE + timedelta(minutes=minutes),
        camera=camera,
        exposure=Exposure(iso=iso, aperture=aperture),
        duplicate_group_id=group,
    )


def high_warning(*names):
    return GroupingWarning(images=list(names), severity="high", warning_type="different_subject")


class TestTimeDifference:
    """Test whole-minute time differences."""

    def test_same_time(self):
        """Identical timestamps are 0 minutes apart."""
        assert calculate_time_difference(BASE, BASE) == 0

    def test_truncates_partial_minutes(self):
        """Partial minutes are dropped."""
        later = BASE + timedelta(minutes=4, seconds=59)
        assert calculate_time_difference(later, BASE) == 4

    def test_one_hour(self):
        """One hour is 60 minutes."""
        assert calculate_time_difference(BASE + timedelta(hours=1), BASE) == 60


class TestExposureSimilarity:
    """Test exposure comparison against cluster averages."""

    def test_within_tolerance(self):
        """Small ISO and aperture differences are similar."""
        cluster = Cluster.from_records("c", [make_record("a.jpg", 0, iso=400, aperture=2.8)])
        assert is_exposure_similar(make_record("b.jpg", 1, iso=640, aperture=3.5), cluster)

    def test_iso_bound_is_inclusive(self):
        """An ISO difference equal to the tolerance is still similar."""
        cluster = Cluster.from_records("c", [make_record("a.jpg", 0, iso=400)])
        assert is_exposure_similar(make_record("b.jpg", 1, iso=800), cluster)
        assert not is_exposure_similar(make_record("c.jpg", 1, iso=801), cluster)

    def test_aperture_outside_tolerance(self):
        """A large aperture change is dissimilar."""
        cluster = Cluster.from_records("c", [make_record("a.jpg", 0, aperture=2.8)])
        assert not is_exposure_similar(make_record("b.jpg", 1, aperture=8.0), cluster)

    def test_candidate_without_exposure(self):
        """A record without ISO or aperture is always similar."""
        cluster = Cluster.from_records("c", [make_record("a.jpg", 0, iso=100)])
        assert is_exposure_similar(make_record("b.jpg", 1, iso=None, aperture=None), cluster)

    def test_cluster_without_iso(self):
        """A cluster with no ISO data accepts any exposure."""
        cluster = Cluster.from_records("c", [make_record("a.jpg", 0, iso=None, aperture=2.8)])
        assert is_exposure_similar(make_record("b.jpg", 1, iso=6400, aperture=16.0), cluster)

    def test_missing_candidate_iso_checks_aperture_only(self):
        """Only the fields present on both sides are compared."""
        cluster = Cluster.from_records("c", [make_record("a.jpg", 0, iso=100, aperture=2.8)])
        assert is_exposure_similar(make_record("b.jpg", 1, iso=None, aperture=3.2), cluster)
        assert not is_exposure_similar(make_record("c.jpg", 1, iso=None, aperture=11.0), cluster)

    def test_uses_running_average(self):
        """Comparison is against the cluster mean, not the last member."""
        cluster = Cluster.from_records("c", [
            make_record("a.jpg", 0, iso=100),
            make_record("b.jpg", 1, iso=500),
        ])
        assert cluster.average_iso == 300
        assert is_exposure_similar(make_record("c.jpg", 2, iso=700), cluster)
        assert not is_exposure_similar(make_record("d.jpg", 2, iso=750), cluster)

    def test_custom_tolerance(self):
        """Tolerances come from the caller."""
        cluster = Cluster.from_records("c", [make_record("a.jpg", 0, iso=400)])
        assert not is_exposure_similar(make_record("b.jpg", 1, iso=600), cluster, iso_tolerance=100)


class TestSignalsChecks:
    """Test duplicate continuity and grouping vetoes."""

    def test_shares_duplicate_group(self):
        """A record continues a duplicate group present in the cluster."""
        cluster = Cluster.from_records("c", [make_record("a.jpg", 0, group="g1")])
        assert shares_duplicate_group(make_record("b.jpg", 1, group="g1"), cluster)
        assert not shares_duplicate_group(make_record("c.jpg", 1, group="g2"), cluster)
        assert not shares_duplicate_group(make_record("d.jpg", 1), cluster)

    def test_veto_requires_current_member(self):
        """A warning only vetoes when its other image is in the cluster."""
        cluster = Cluster.from_records("c", [make_record("a.jpg", 0)])
        signals = SignalIndex(warnings=[high_warning("b.jpg", "z.jpg")])
        assert find_grouping_veto(make_record("b.jpg", 1), cluster, signals) is None

        signals = SignalIndex(warnings=[high_warning("a.jpg", "b.jpg")])
        assert find_grouping_veto(make_record("b.jpg", 1), cluster, signals) is not None

    def test_low_severity_never_vetoes(self):
        """Low-severity warnings are informational."""
        cluster = Cluster.from_records("c", [make_record("a.jpg", 0)])
        signals = SignalIndex(warnings=[GroupingWarning(images=["a.jpg", "b.jpg"], severity="low")])
        assert find_grouping_veto(make_record("b.jpg", 1), cluster, signals) is None

    def test_no_signals(self):
        """Without signals there is no veto."""
        cluster = Cluster.from_records("c", [make_record("a.jpg", 0)])
        assert find_grouping_veto(make_record("b.jpg", 1), cluster, None) is None


class TestTemporalClustering:
    """Test the single-pass clusterer."""

    def test_empty_input(self):
        """No records produce no clusters."""
        assert create_temporal_clusters([]) == []

    def test_single_record(self):
        """One record forms one cluster."""
        clusters = create_temporal_clusters([make_record("a.jpg", 0)])
        assert len(clusters) == 1
        assert clusters[0].time_span == 0

    def test_close_shots_form_one_cluster(self):
        """Three shots over five minutes with equal settings make one cluster."""
        records = [
            make_record("a.jpg", 30),
            make_record("b.jpg", 32),
            make_record("c.jpg", 35),
        ]
        clusters = create_temporal_clusters(records)

        assert len(clusters) == 1
        assert len(clusters[0].files) == 3
        assert clusters[0].time_span == 5

    def test_gap_over_an_hour_splits(self):
        """A 65-minute gap starts a new cluster."""
        records = [make_record("a.jpg", 0), make_record("b.jpg", 65)]
        clusters = create_temporal_clusters(records)
        assert [len(c.files) for c in clusters] == [1, 1]

    def test_gap_of_exactly_an_hour_joins(self):
        """The gap ceiling is inclusive."""
        records = [make_record("a.jpg", 0), make_record("b.jpg", 60)]
        assert len(create_temporal_clusters(records)) == 1

    def test_gap_measured_from_last_member(self):
        """A slow sequence keeps extending the cluster."""
        records = [make_record(f"{i}.jpg", i * 50) for i in range(4)]
        clusters = create_temporal_clusters(records)
        assert len(clusters) == 1
        assert clusters[0].time_span == 150

    def test_exposure_change_splits(self):
        """ISO 100 then ISO 3200 five minutes later gives two clusters."""
        records = [make_record("a.jpg", 0, iso=100), make_record("b.jpg", 5, iso=3200)]
        assert len(create_temporal_clusters(records)) == 2

    def test_duplicate_group_overrides_exposure(self):
        """A record continuing a duplicate group joins despite the exposure change."""
        records = [
            make_record("a.jpg", 0, iso=100, group="g1"),
            make_record("b.jpg", 5, iso=3200, group="g1"),
        ]
        clusters = create_temporal_clusters(records)
        assert len(clusters) == 1

    def test_duplicate_group_does_not_override_gap(self):
        """The gap ceiling applies even to duplicate groups."""
        records = [
            make_record("a.jpg", 0, group="g1"),
            make_record("b.jpg", 90, group="g1"),
        ]
        assert len(create_temporal_clusters(records)) == 2

    def test_high_severity_warning_splits(self):
        """A high-severity warning naming a current member forces a new cluster."""
        records = [make_record("a.jpg", 0), make_record("b.jpg", 1), make_record("c.jpg", 2)]
        signals = SignalIndex(warnings=[high_warning("a.jpg", "b.jpg")])

        clusters = create_temporal_clusters(records, signals=signals)

        assert [[r.file_name for r in c.files] for c in clusters] == [["a.jpg"], ["b.jpg", "c.jpg"]]

    def test_veto_wins_over_duplicate_continuity(self):
        """Contradictory signals are resolved by the veto and reported."""
        records = [
            make_record("a.jpg", 0, group="g1"),
            make_record("b.jpg", 1, group="g1"),
        ]
        signals = SignalIndex(warnings=[high_warning("a.jpg", "b.jpg")])
        issues = []

        clusters = create_temporal_clusters(records, signals=signals, issues=issues)

        assert len(clusters) == 2
        assert len(issues) == 1
        assert "b.jpg" in issues[0]

    def test_unsorted_input_raises(self):
        """Records out of timestamp order violate the contract."""
        records = [make_record("a.jpg", 10), make_record("b.jpg", 0)]
        with pytest.raises(ClusteringError):
            create_temporal_clusters(records)

    def test_coverage_and_order(self):
        """Every record lands in exactly one cluster, in timestamp order."""
        records = [
            make_record(f"{i:02d}.jpg", minute, iso=iso)
            for i, (minute, iso) in enumerate([
                (0, 400), (2, 400), (3, 3200), (4, 3200), (80, 400), (81, 400), (200, 100),
            ])
        ]
        clusters = create_temporal_clusters(records)

        flattened = [record for cluster in clusters for record in cluster.files]
        assert flattened == records
        for cluster in clusters:
            timestamps = [r.timestamp for r in cluster.files]
            assert timestamps == sorted(timestamps)
        starts = [c.start_timestamp for c in clusters]
        assert starts == sorted(starts)

    def test_cluster_names(self):
        """Names carry a 1-based index and the start time."""
        records = [make_record("a.jpg", 30), make_record("b.jpg", 120)]
        clusters = create_temporal_clusters(records)
        assert [c.name for c in clusters] == [
            "Group_01_2025-06-14_09-30",
            "Group_02_2025-06-14_11-00",
        ]
        assert format_cluster_name(12, BASE) == "Group_12_2025-06-14_09-00"

    def test_custom_gap(self):
        """max_time_gap comes from the config."""
        records = [make_record("a.jpg", 0), make_record("b.jpg", 20)]
        clusters = create_temporal_clusters(records, config=GroupingConfig(max_time_gap=15))
        assert len(clusters) == 2

    def test_cluster_metadata(self):
        """Clusters track cameras and average time."""
        records = [
            make_record("a.jpg", 0, camera="Canon EOS R5"),
            make_record("b.jpg", 2, camera="Sony A7 IV"),
            make_record("c.jpg", 4, camera="Canon EOS R5"),
        ]
        cluster = create_temporal_clusters(records)[0]
        assert cluster.cameras == ["Canon EOS R5", "Sony A7 IV"]
        assert cluster.average_timestamp == BASE + timedelta(minutes=2)
