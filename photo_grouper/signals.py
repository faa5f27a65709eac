"""
Import of the culling stage's report: quality ratings, duplicate groups and
grouping warnings, indexed by file basename.
"""

import os
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import networkx as nx

from .models import ImageRecord, QualityRating, DuplicateInfo, GroupingWarning
from .error_handling import MalformedSignalError

logger = logging.getLogger(__name__)


@dataclass
class SignalIndex:
    """Lookups built from a prior-stage report."""
    quality: Dict[str, QualityRating] = field(default_factory=dict)
    duplicates: Dict[str, DuplicateInfo] = field(default_factory=dict)
    warnings: List[GroupingWarning] = field(default_factory=list)
    source_path: Optional[str] = None

    def quality_for(self, file_name: str) -> Optional[QualityRating]:
        return self.quality.get(file_name)

    def duplicate_for(self, file_name: str) -> Optional[DuplicateInfo]:
        return self.duplicates.get(file_name)

    @property
    def high_severity_warnings(self) -> List[GroupingWarning]:
        return [w for w in self.warnings if w.is_high_severity]

    @property
    def duplicate_group_count(self) -> int:
        return len({info.group_id for info in self.duplicates.values()})

    def high_severity_conflicts(self, file_name: str, other_name: str) -> List[GroupingWarning]:
        """High-severity warnings naming both images."""
        if file_name == other_name:
            return []
        return [
            w for w in self.high_severity_warnings
            if w.names(file_name) and w.names(other_name)
        ]

    def enrich(self, records: List[ImageRecord]) -> List[ImageRecord]:
        """Copy ratings and duplicate membership onto records in place."""
        enriched = 0
        for record in records:
            rating = self.quality_for(record.file_name)
            if rating is not None:
                record.quality_rating = rating.rating
                record.quality_reasoning = rating.reasoning

            duplicate = self.duplicate_for(record.file_name)
            if duplicate is not None:
                record.duplicate_group_id = duplicate.group_id
                record.is_duplicate_best = duplicate.is_best
                record.duplicate_description = duplicate.description

            if rating is not None or duplicate is not None:
                enriched += 1

        logger.info(f"Enriched {enriched}/{len(records)} records from prior-stage signals")
        return records


def _basename(value: Any) -> str:
    return os.path.basename(str(value))


def _require_list(data: Dict[str, Any], key: str) -> List[Any]:
    value = data.get(key) or []
    if not isinstance(value, list):
        raise MalformedSignalError(f"'{key}' must be a list, got {type(value).__name__}")
    return value


def _parse_rating(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise MalformedSignalError(f"Invalid rating value: {value!r}")


def consolidate_duplicate_groups(duplicate_groups: List[Dict[str, Any]]) -> Dict[str, DuplicateInfo]:
    """
    Merge overlapping duplicate groups into equivalence classes.

    Groups that share an id or an image end up in one connected component.
    The canonical id is the first id seen in report order and the best image
    is the first one declared best within the component.

    Args:
        duplicate_groups: ``duplicateGroups`` entries from the report

    Returns:
        Dict mapping file basename to DuplicateInfo
    """
    graph = nx.Graph()
    group_order: Dict[str, int] = {}
    declared_best: List[Tuple[str, str]] = []
    descriptions: Dict[str, str] = {}

    for index, group in enumerate(duplicate_groups):
        if not isinstance(group, dict):
            raise MalformedSignalError(f"Duplicate group entry must be an object: {group!r}")

        group_id = str(group.get('group_id') or f"group_{index + 1}")
        images = group.get('images') or []
        if not isinstance(images, list):
            raise MalformedSignalError(f"Duplicate group {group_id} images must be a list")

        group_order.setdefault(group_id, index)
        descriptions.setdefault(group_id, group.get('description') or "")

        group_node = ('group', group_id)
        graph.add_node(group_node)
        for image in images:
            graph.add_edge(group_node, ('image', _basename(image)))

        if group.get('best'):
            declared_best.append((group_id, _basename(group['best'])))

    duplicates: Dict[str, DuplicateInfo] = {}

    for component in nx.connected_components(graph):
        group_ids = [node[1] for node in component if node[0] == 'group']
        images = {node[1] for node in component if node[0] == 'image'}
        if not images:
            continue

        canonical = min(group_ids, key=lambda gid: group_order[gid])
        if len(group_ids) > 1:
            logger.info(f"Merged overlapping duplicate groups {sorted(group_ids)} into {canonical}")

        best = next((name for gid, name in declared_best if gid in group_ids and name in images), None)

        for image in images:
            duplicates[image] = DuplicateInfo(
                group_id=canonical,
                is_best=(image == best),
                description=descriptions.get(canonical, ""),
            )

    return duplicates


def parse_signal_report(data: Any, source_path: Optional[str] = None) -> SignalIndex:
    """
    Build a SignalIndex from a decoded culling report.

    Raises:
        MalformedSignalError: If the document does not have the expected shape
    """
    if not isinstance(data, dict):
        raise MalformedSignalError("Signal report must be a JSON object")

    quality: Dict[str, QualityRating] = {}
    for entry in _require_list(data, 'selectedFiles'):
        if not isinstance(entry, dict):
            raise MalformedSignalError(f"selectedFiles entry must be an object: {entry!r}")
        file_ref = entry.get('file') or entry.get('filename')
        if not file_ref:
            logger.warning(f"Skipping selectedFiles entry without a file: {entry}")
            continue
        quality[_basename(file_ref)] = QualityRating(
            rating=_parse_rating(entry.get('rating')),
            reasoning=entry.get('reasoning') or "",
        )

    duplicates = consolidate_duplicate_groups(_require_list(data, 'duplicateGroups'))

    warnings: List[GroupingWarning] = []
    for entry in _require_list(data, 'groupingWarnings'):
        if not isinstance(entry, dict):
            raise MalformedSignalError(f"groupingWarnings entry must be an object: {entry!r}")
        images = entry.get('images') or []
        if not isinstance(images, list):
            raise MalformedSignalError("groupingWarnings images must be a list")
        warnings.append(GroupingWarning(
            images=[_basename(image) for image in images],
            severity=str(entry.get('severity') or 'low').lower(),
            warning_type=entry.get('warning_type') or "",
            description=entry.get('description') or "",
            recommendation=entry.get('recommendation') or "",
        ))

    index = SignalIndex(quality=quality, duplicates=duplicates, warnings=warnings, source_path=source_path)
    logger.info(f"Loaded signals: {len(quality)} ratings, {index.duplicate_group_count} duplicate groups, "
                f"{len(warnings)} grouping warnings ({len(index.high_severity_warnings)} high severity)")
    return index


def load_signal_index(report_path: Optional[str]) -> Optional[SignalIndex]:
    """
    Load the prior-stage report if it exists.

    Args:
        report_path: Path to the culling report JSON

    Returns:
        SignalIndex, or None when there is no report

    Raises:
        MalformedSignalError: If the report exists but cannot be read or parsed
    """
    if not report_path or not os.path.isfile(report_path):
        logger.info("No prior-stage report found; grouping without external signals")
        return None

    try:
        with open(report_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except OSError as e:
        raise MalformedSignalError(f"Could not read {report_path}: {e}")
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedSignalError(f"Could not parse {report_path}: {e}")

    return parse_signal_report(data, source_path=report_path)
