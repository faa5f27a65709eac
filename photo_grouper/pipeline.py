"""
Grouping pipeline: records in, clusters and representatives out.

``run_grouping`` is the library entry point and does no I/O.
``process_directory`` wraps it with discovery, metadata extraction, signal
loading, report writing and file organisation.
"""

import os
import time
import logging
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .models import ImageRecord, Cluster, Representative
from .config import GroupingConfig
from .signals import SignalIndex, load_signal_index
from .metadata import find_image_files, extract_all_metadata
from .clustering import create_temporal_clusters
from .splitting import refine_clusters
from .selection import select_representatives
from .reporting import (
    build_grouping_summary, build_representatives_manifest,
    write_grouping_report, write_representatives_manifest,
)
from .organizer import organize_files_into_clusters
from .error_handling import PhotoGrouperError, MalformedSignalError, handle_error
from .app_insights import app_insights

logger = logging.getLogger(__name__)


@dataclass
class GroupingResult:
    """Outcome of one grouping run."""
    clusters: List[Cluster] = field(default_factory=list)
    representatives: List[Representative] = field(default_factory=list)
    signals: Optional[SignalIndex] = None
    issues: List[str] = field(default_factory=list)
    duration: float = 0.0
    report: Dict[str, Any] = field(default_factory=dict)
    manifest: Dict[str, Any] = field(default_factory=dict)
    output_files: Dict[str, str] = field(default_factory=dict)

    @property
    def total_images(self) -> int:
        return sum(len(cluster.files) for cluster in self.clusters)

    def representatives_for(self, cluster_name: str) -> List[Representative]:
        return [r for r in self.representatives if r.group_name == cluster_name]


def _check_unique_names(records: List[ImageRecord], issues: List[str]):
    counts = Counter(record.file_name for record in records)
    for name, count in counts.items():
        if count > 1:
            message = f"File name {name} appears {count} times; signals are matched by name"
            logger.warning(message)
            issues.append(message)


def _check_duplicate_integrity(clusters: List[Cluster], issues: List[str]):
    """Record duplicate groups that ended up in more than one cluster."""
    owners: Dict[str, List[str]] = {}
    for cluster in clusters:
        for group_id in cluster.duplicate_group_ids:
            owners.setdefault(group_id, []).append(cluster.name)

    for group_id, names in owners.items():
        if len(names) > 1:
            message = f"Duplicate group {group_id} spans clusters {', '.join(names)}"
            logger.warning(message)
            issues.append(message)


def run_grouping(records: List[ImageRecord],
                 signals: Optional[SignalIndex] = None,
                 config: Optional[GroupingConfig] = None) -> GroupingResult:
    """
    Cluster records, bound cluster sizes and select representatives.

    Records are expected to be enriched already when ``signals`` is given;
    the index is still consulted for grouping warnings and as a fallback for
    ratings and best-of-duplicate flags.

    Args:
        records: Image records in any order
        signals: Optional prior-stage signals
        config: Grouping parameters

    Returns:
        GroupingResult with clusters, representatives and any issues
    """
    config = config or GroupingConfig()
    start_time = time.time()
    result = GroupingResult(signals=signals)

    if not records:
        logger.warning("No images to group")
        return result

    ordered = sorted(records, key=lambda record: (record.timestamp, record.file_path))
    _check_unique_names(ordered, result.issues)

    clusters = create_temporal_clusters(ordered, signals=signals, config=config, issues=result.issues)
    clusters = refine_clusters(clusters, max_size=config.max_cluster_size)
    _check_duplicate_integrity(clusters, result.issues)

    result.clusters = clusters
    result.representatives = select_representatives(
        clusters, signals=signals, max_standalone=config.max_standalone_representatives
    )
    result.duration = time.time() - start_time

    logger.info(f"Grouping complete: {len(ordered)} images -> {len(clusters)} clusters, "
                f"{len(result.representatives)} representatives in {result.duration:.2f}s")
    return result


def process_directory(input_path: str, output_path: str,
                      prior_report: Optional[str] = None,
                      config: Optional[GroupingConfig] = None,
                      dry_run: bool = False,
                      progress_callback: Optional[Callable[[int, int], None]] = None) -> GroupingResult:
    """
    Run the grouping stage over a directory of images.

    Args:
        input_path: Directory searched recursively for images
        output_path: Directory receiving reports and cluster folders
        prior_report: Culling report path; defaults to
            ``<input_path>/<config.signal_report_name>``
        config: Grouping parameters
        dry_run: Write reports but do not copy files
        progress_callback: Optional callable receiving (completed, total)
            during metadata extraction

    Returns:
        GroupingResult including the report, manifest and written paths

    Raises:
        PhotoGrouperError: If the input directory does not exist
    """
    config = config or GroupingConfig()
    start_time = time.time()

    if not os.path.isdir(input_path):
        raise PhotoGrouperError(f"Input directory does not exist: {input_path}")

    logger.info(f"Grouping images in {input_path}" + (" (dry run)" if dry_run else ""))

    file_paths = find_image_files(input_path)
    logger.info(f"Found {len(file_paths)} image files")

    records = extract_all_metadata(file_paths, max_workers=config.max_workers,
                                   progress_callback=progress_callback)

    issues: List[str] = []
    report_path = prior_report or str(Path(input_path) / config.signal_report_name)
    try:
        signals = load_signal_index(report_path)
    except MalformedSignalError as e:
        handle_error(e, context="loading prior-stage report", raise_error=False)
        issues.append(f"Ignored unusable prior-stage report {report_path}: {e}")
        signals = None

    if signals is not None:
        signals.enrich(records)

    result = run_grouping(records, signals=signals, config=config)
    result.issues = issues + result.issues
    result.duration = time.time() - start_time

    result.report = build_grouping_summary(
        result.clusters, result.representatives, config=config,
        duration=result.duration, signals=signals,
    )
    result.report['issues'] = list(result.issues)
    result.manifest = build_representatives_manifest(result.clusters, result.representatives)

    result.output_files['report'] = write_grouping_report(output_path, result.report)
    result.output_files['manifest'] = write_representatives_manifest(output_path, result.manifest)

    if dry_run:
        logger.info("Dry run: skipping file organization")
    else:
        organize_files_into_clusters(result.clusters, output_path, result.representatives)

    app_insights.track_grouping_run(
        images=len(records),
        fallbacks=sum(1 for record in records if record.fallback),
        clusters=len(result.clusters),
        representatives=len(result.representatives),
        seconds=result.duration,
        dry_run=dry_run,
    )

    return result
