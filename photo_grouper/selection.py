"""
Representative selection: one image per duplicate group plus the best
standalone shots of every cluster.
"""

import logging
from typing import Dict, List, Optional, Tuple

from .models import ImageRecord, Cluster, Representative
from .signals import SignalIndex

logger = logging.getLogger(__name__)


def _rating(record: ImageRecord, signals: Optional[SignalIndex] = None) -> Optional[float]:
    if record.quality_rating is not None:
        return record.quality_rating
    if signals is not None:
        rating = signals.quality_for(record.file_name)
        if rating is not None:
            return rating.rating
    return None


def _is_flagged_best(record: ImageRecord, signals: Optional[SignalIndex] = None) -> bool:
    if record.is_duplicate_best:
        return True
    if signals is not None:
        info = signals.duplicate_for(record.file_name)
        return info is not None and info.is_best and info.group_id == record.duplicate_group_id
    return False


def _sort_key(record: ImageRecord, signals: Optional[SignalIndex]) -> float:
    rating = _rating(record, signals)
    return rating if rating is not None else float('-inf')


def pick_duplicate_best(members: List[ImageRecord],
                        signals: Optional[SignalIndex] = None) -> Tuple[ImageRecord, str]:
    """
    Choose the representative of one duplicate group.

    The member flagged best wins; otherwise the highest rating, with ties
    going to the earliest member.

    Returns:
        (record, reason)
    """
    for member in members:
        if _is_flagged_best(member, signals):
            return member, "Marked best of duplicate group"

    best = max(members, key=lambda member: _sort_key(member, signals))
    if _rating(best, signals) is None:
        return best, "First image of duplicate group (no ratings)"
    return best, "Highest quality rating in duplicate group"


def rank_standalone(members: List[ImageRecord],
                    signals: Optional[SignalIndex] = None) -> List[ImageRecord]:
    """Sort by rating descending, unrated last, keeping original order on ties."""
    return sorted(members, key=lambda member: _sort_key(member, signals), reverse=True)


def select_cluster_representatives(cluster: Cluster, max_standalone: int = 3,
                                   signals: Optional[SignalIndex] = None) -> List[Representative]:
    duplicate_groups: Dict[str, List[ImageRecord]] = {}
    standalone: List[ImageRecord] = []

    for record in cluster.files:
        if record.duplicate_group_id is None:
            standalone.append(record)
        else:
            duplicate_groups.setdefault(record.duplicate_group_id, []).append(record)

    representatives = []

    for group_id, members in duplicate_groups.items():
        best, reason = pick_duplicate_best(members, signals)
        representatives.append(Representative(
            file_name=best.file_name,
            file_path=best.file_path,
            group_name=cluster.name,
            duplicate_group_id=group_id,
            is_duplicate_representative=True,
            duplicate_count=len(members),
            quality_rating=_rating(best, signals),
            reason=reason,
        ))

    for rank, record in enumerate(rank_standalone(standalone, signals)[:max(0, max_standalone)], start=1):
        rating = _rating(record, signals)
        reason = f"Top standalone #{rank}" + (f" (rating {rating:.2f})" if rating is not None else " (unrated)")
        representatives.append(Representative(
            file_name=record.file_name,
            file_path=record.file_path,
            group_name=cluster.name,
            quality_rating=rating,
            reason=reason,
        ))

    logger.debug(f"{cluster.name}: {len(duplicate_groups)} duplicate groups, "
                 f"{len(standalone)} standalone -> {len(representatives)} representatives")
    return representatives


def select_representatives(clusters: List[Cluster], signals: Optional[SignalIndex] = None,
                           max_standalone: int = 3) -> List[Representative]:
    """
    Select representatives for every cluster.

    Args:
        clusters: Final clusters
        signals: Optional prior-stage signals used when records lack ratings
        max_standalone: Cap on standalone representatives per cluster

    Returns:
        Flat list of Representative in cluster order
    """
    representatives: List[Representative] = []
    for cluster in clusters:
        representatives.extend(select_cluster_representatives(cluster, max_standalone, signals))

    total_images = sum(len(cluster.files) for cluster in clusters)
    logger.info(f"Selected {len(representatives)} representatives from {total_images} images "
                f"in {len(clusters)} clusters")
    return representatives
