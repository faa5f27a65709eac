"""
Report data for downstream collaborators: grouping summary, representatives
manifest and per-cluster metadata.
"""

import json
import logging
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from .models import Cluster, Representative
from .config import GroupingConfig
from .signals import SignalIndex

logger = logging.getLogger(__name__)

GROUPING_REPORT_NAME = "grouping_report.json"
REPRESENTATIVES_MANIFEST_NAME = "representatives.json"


def calculate_size_distribution(clusters: List[Cluster]) -> Dict[str, int]:
    distribution = {'1-5': 0, '6-15': 0, '16-30': 0, '31-50': 0, '50+': 0}

    for cluster in clusters:
        size = len(cluster.files)
        if size <= 5:
            distribution['1-5'] += 1
        elif size <= 15:
            distribution['6-15'] += 1
        elif size <= 30:
            distribution['16-30'] += 1
        elif size <= 50:
            distribution['31-50'] += 1
        else:
            distribution['50+'] += 1

    return distribution


def calculate_time_span_distribution(clusters: List[Cluster]) -> Dict[str, int]:
    distribution = {'0-15min': 0, '16-60min': 0, '1-4hrs': 0, '4+ hrs': 0}

    for cluster in clusters:
        span = cluster.time_span
        if span <= 15:
            distribution['0-15min'] += 1
        elif span <= 60:
            distribution['16-60min'] += 1
        elif span <= 240:
            distribution['1-4hrs'] += 1
        else:
            distribution['4+ hrs'] += 1

    return distribution


def calculate_camera_distribution(clusters: List[Cluster]) -> Dict[str, int]:
    """Number of clusters each camera appears in."""
    counts = Counter()
    for cluster in clusters:
        counts.update(cluster.cameras)
    return dict(counts)


def _average_file_size(cluster: Cluster) -> float:
    if not cluster.files:
        return 0.0
    return sum(record.file_size for record in cluster.files) / len(cluster.files)


def _time_span_dict(cluster: Cluster) -> Dict[str, Any]:
    return {
        'start': cluster.start_timestamp.isoformat() if cluster.start_timestamp else None,
        'end': cluster.last_timestamp.isoformat() if cluster.last_timestamp else None,
        'durationMinutes': cluster.time_span,
    }


def build_grouping_summary(clusters: List[Cluster],
                           representatives: Optional[List[Representative]] = None,
                           config: Optional[GroupingConfig] = None,
                           duration: float = 0.0,
                           signals: Optional[SignalIndex] = None) -> Dict[str, Any]:
    """
    Build the grouping report consumed by the delivery stages.

    ``time_threshold`` only affects reporting: clusters spanning longer than
    it are counted here but were not split because of it.
    """
    config = config or GroupingConfig()
    representatives = representatives or []
    total_images = sum(len(cluster.files) for cluster in clusters)
    warnings = signals.warnings if signals else []

    return {
        'stage': 'group',
        'timestamp': datetime.now().isoformat(),
        'summary': {
            'totalImages': total_images,
            'totalClusters': len(clusters),
            'averageClusterSize': round(total_images / len(clusters)) if clusters else 0,
            'duration': duration,
            'timeThreshold': config.time_threshold,
            'maxTimeGap': config.max_time_gap,
            'clustersExceedingTimeThreshold': sum(
                1 for cluster in clusters if cluster.time_span > config.time_threshold
            ),
            'totalRepresentatives': len(representatives),
            'signalsLoaded': signals is not None,
            'groupingWarnings': {
                'high': sum(1 for w in warnings if w.is_high_severity),
                'low': sum(1 for w in warnings if not w.is_high_severity),
            },
        },
        'groupDetails': [
            {
                'name': cluster.name,
                'fileCount': len(cluster.files),
                'timeSpan': _time_span_dict(cluster),
                'averageTimestamp': cluster.average_timestamp.isoformat() if cluster.average_timestamp else None,
                'cameras': list(cluster.cameras),
                'hasLocation': len(cluster.locations) > 0,
                'averageFileSize': _average_file_size(cluster),
                'parentCluster': cluster.parent_cluster,
            }
            for cluster in clusters
        ],
        'statistics': {
            'groupSizeDistribution': calculate_size_distribution(clusters),
            'timeSpanDistribution': calculate_time_span_distribution(clusters),
            'cameraDistribution': calculate_camera_distribution(clusters),
        },
    }


def build_representatives_manifest(clusters: List[Cluster],
                                   representatives: List[Representative]) -> Dict[str, Any]:
    total_images = sum(len(cluster.files) for cluster in clusters)
    per_cluster = {cluster.name: 0 for cluster in clusters}
    for representative in representatives:
        per_cluster[representative.group_name] = per_cluster.get(representative.group_name, 0) + 1

    ratio = round(total_images / len(representatives), 2) if representatives else 0.0

    return {
        'representatives': [representative.to_dict() for representative in representatives],
        'perCluster': per_cluster,
        'totalImages': total_images,
        'totalRepresentatives': len(representatives),
        'compressionRatio': ratio,
    }


def build_cluster_metadata(cluster: Cluster,
                           representatives: Optional[List[Representative]] = None) -> Dict[str, Any]:
    """Per-cluster metadata for the visual report and group folders."""
    representatives = [r for r in (representatives or []) if r.group_name == cluster.name]
    chosen = {r.file_path for r in representatives}

    duplicate_groups = []
    for group_id in cluster.duplicate_group_ids:
        members = [record for record in cluster.files if record.duplicate_group_id == group_id]
        best = next((r.file_name for r in representatives if r.duplicate_group_id == group_id), None)
        duplicate_groups.append({
            'groupId': group_id,
            'size': len(members),
            'representative': best,
            'description': members[0].duplicate_description,
            'members': [record.file_name for record in members],
        })

    members = []
    for record in cluster.files:
        entry = record.to_dict()
        entry['isRepresentative'] = record.file_path in chosen
        members.append(entry)

    return {
        'groupName': cluster.name,
        'createdAt': datetime.now().isoformat(),
        'fileCount': len(cluster.files),
        'timeSpan': _time_span_dict(cluster),
        'cameras': list(cluster.cameras),
        'locations': [{'latitude': lat, 'longitude': lon} for lat, lon in cluster.locations],
        'parentCluster': cluster.parent_cluster,
        'duplicateGroups': duplicate_groups,
        'standaloneCount': sum(1 for record in cluster.files if record.duplicate_group_id is None),
        'files': members,
        'representatives': [r.to_dict() for r in representatives],
    }


def clusters_to_dataframe(clusters: List[Cluster],
                          representatives: Optional[List[Representative]] = None) -> pd.DataFrame:
    counts = Counter(r.group_name for r in (representatives or []))
    rows = [
        {
            'Name': cluster.name,
            'Images': len(cluster.files),
            'Start Time': cluster.start_timestamp,
            'End Time': cluster.last_timestamp,
            'Span (min)': cluster.time_span,
            'Cameras': ", ".join(cluster.cameras),
            'Duplicate Groups': len(cluster.duplicate_group_ids),
            'Representatives': counts.get(cluster.name, 0),
            'Parent': cluster.parent_cluster,
            'Latitude': cluster.center_latitude,
            'Longitude': cluster.center_longitude,
        }
        for cluster in clusters
    ]
    return pd.DataFrame(rows, columns=[
        'Name', 'Images', 'Start Time', 'End Time', 'Span (min)', 'Cameras',
        'Duplicate Groups', 'Representatives', 'Parent', 'Latitude', 'Longitude',
    ])


def write_json(path: Path, data: Dict[str, Any]) -> str:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2, default=str)
    return str(path)


def write_grouping_report(output_path: str, report: Dict[str, Any]) -> str:
    path = write_json(Path(output_path) / GROUPING_REPORT_NAME, report)
    logger.info(f"Grouping report written to {path}")
    return path


def write_representatives_manifest(output_path: str, manifest: Dict[str, Any]) -> str:
    path = write_json(Path(output_path) / REPRESENTATIVES_MANIFEST_NAME, manifest)
    logger.info(f"Representatives manifest written to {path}")
    return path
