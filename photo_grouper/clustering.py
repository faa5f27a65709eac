import logging
from typing import List, Optional
from datetime import datetime

from .models import ImageRecord, Cluster, GroupingWarning
from .config import GroupingConfig
from .signals import SignalIndex
from .error_handling import ClusteringError

logger = logging.getLogger(__name__)

def calculate_time_difference(later: datetime, earlier: datetime) -> int:
    """Whole minutes from ``earlier`` to ``later``, truncated toward zero."""
    return int((later - earlier).total_seconds() / 60)

def is_exposure_similar(record: ImageRecord, cluster: Cluster,
                        iso_tolerance: float = 400.0,
                        aperture_tolerance: float = 1.5) -> bool:
    """
    Compare a record's exposure with the cluster's running averages.

    Missing data on either side counts as similar, as does any single
    missing field.
    """
    if not record.exposure.has_data():
        return True

    average_iso = cluster.average_iso
    if average_iso is None:
        return True

    if record.exposure.iso is not None and abs(record.exposure.iso - average_iso) > iso_tolerance:
        return False

    average_aperture = cluster.average_aperture
    if (record.exposure.aperture is not None and average_aperture is not None
            and abs(record.exposure.aperture - average_aperture) > aperture_tolerance):
        return False

    return True

def find_grouping_veto(record: ImageRecord, cluster: Cluster,
                       signals: Optional[SignalIndex]) -> Optional[GroupingWarning]:
    """Return a high-severity warning naming the record and a current member."""
    if signals is None:
        return None

    for warning in signals.high_severity_warnings:
        if not warning.names(record.file_name):
            continue
        for other in warning.images:
            if other != record.file_name and cluster.contains(other):
                return warning
    return None

def shares_duplicate_group(record: ImageRecord, cluster: Cluster) -> bool:
    return cluster.has_duplicate_group(record.duplicate_group_id)

def format_cluster_name(index: int, timestamp: datetime) -> str:
    return f"Group_{index:02d}_{timestamp.strftime('%Y-%m-%d_%H-%M')}"

def _check_sorted(records: List[ImageRecord]):
    for previous, current in zip(records, records[1:]):
        if current.timestamp < previous.timestamp:
            raise ClusteringError(
                f"Records must be sorted by timestamp: {current.file_name} ({current.timestamp}) "
                f"follows {previous.file_name} ({previous.timestamp})"
            )

def create_temporal_clusters(records: List[ImageRecord],
                             signals: Optional[SignalIndex] = None,
                             config: Optional[GroupingConfig] = None,
                             issues: Optional[List[str]] = None) -> List[Cluster]:
    """
    Partition timestamp-sorted records into clusters in a single forward pass.

    A record joins the current cluster when it is within ``max_time_gap``
    minutes of the cluster's last member and its exposure is similar to the
    cluster's running average. Records sharing a duplicate group with the
    current cluster always join, unless a high-severity grouping warning
    names the record together with a current member; the warning wins.

    Args:
        records: Records sorted ascending by timestamp
        signals: Optional prior-stage signals for grouping warnings
        config: Grouping parameters
        issues: Optional list that receives contradictory-signal messages

    Returns:
        List of Cluster covering every record exactly once, in input order

    Raises:
        ClusteringError: If records are not sorted by timestamp
    """
    config = config or GroupingConfig()

    if not records:
        logger.warning("No images provided for clustering")
        return []

    _check_sorted(records)

    clusters: List[Cluster] = []
    current = Cluster.from_records(format_cluster_name(1, records[0].timestamp), [records[0]])

    for record in records[1:]:
        time_diff = calculate_time_difference(record.timestamp, current.last_timestamp)

        if abs(time_diff) > config.max_time_gap:
            should_group = False
            reason = "time_gap"
        else:
            should_group = is_exposure_similar(
                record, current, config.iso_tolerance, config.aperture_tolerance
            )
            reason = None if should_group else "exposure"

            duplicate_continuity = shares_duplicate_group(record, current)
            if duplicate_continuity:
                should_group = True
                reason = None

            veto = find_grouping_veto(record, current, signals)
            if veto is not None:
                if duplicate_continuity:
                    message = (f"Contradictory signals for {record.file_name}: duplicate group "
                               f"{record.duplicate_group_id} continues {current.name} but a high-severity "
                               f"warning separates it ({veto.description or veto.warning_type})")
                    logger.warning(message)
                    if issues is not None:
                        issues.append(message)
                if should_group:
                    reason = "grouping_warning"
                should_group = False

        if should_group:
            current.add(record)
        else:
            logger.debug(f"Starting new cluster at {record.file_name}: {reason} "
                         f"(gap {time_diff} min after {current.name})")
            clusters.append(current)
            current = Cluster.from_records(
                format_cluster_name(len(clusters) + 1, record.timestamp), [record]
            )

    clusters.append(current)

    logger.info(f"Temporal clustering completed: {len(records)} images -> {len(clusters)} clusters")
    return clusters
