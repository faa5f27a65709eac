import logging
from typing import Dict, List

from .models import Cluster

logger = logging.getLogger(__name__)

def _contiguous_chunks(size: int, max_size: int) -> List[List[int]]:
    return [list(range(start, min(start + max_size, size))) for start in range(0, size, max_size)]

def _pack_duplicate_aware(cluster: Cluster, max_size: int) -> List[List[int]]:
    # Whole duplicate sets first, then standalone members one at a time
    duplicate_sets: Dict[str, List[int]] = {}
    standalone: List[int] = []

    for index, record in enumerate(cluster.files):
        if record.duplicate_group_id is None:
            standalone.append(index)
        else:
            duplicate_sets.setdefault(record.duplicate_group_id, []).append(index)

    buffers: List[List[int]] = []
    buffer: List[int] = []

    for members in duplicate_sets.values():
        if buffer and len(buffer) + len(members) > max_size:
            buffers.append(buffer)
            buffer = []
        if len(members) > max_size:
            logger.warning(f"Duplicate set of {len(members)} images in {cluster.name} "
                           f"exceeds max size {max_size}; keeping it intact")
        buffer.extend(members)

    for index in standalone:
        if len(buffer) >= max_size:
            buffers.append(buffer)
            buffer = []
        buffer.append(index)

    if buffer:
        buffers.append(buffer)

    return [sorted(b) for b in buffers]

def split_large_cluster(cluster: Cluster, max_size: int = 25) -> List[Cluster]:
    """
    Split a cluster into sub-clusters of at most ``max_size`` members.

    Duplicate sets are never divided, even when one alone exceeds
    ``max_size``. Clusters without any duplicate membership are cut into
    contiguous chunks.

    Args:
        cluster: Cluster to split
        max_size: Upper bound on sub-cluster size

    Returns:
        ``[cluster]`` unchanged when it is small enough, otherwise the
        sub-clusters named ``{name}_Part{n}`` in timestamp order

    Raises:
        ValueError: If ``max_size`` is below 1
    """
    if max_size < 1:
        raise ValueError(f"max_size must be at least 1, got {max_size}")

    if len(cluster.files) <= max_size:
        return [cluster]

    if cluster.duplicate_group_ids:
        chunks = _pack_duplicate_aware(cluster, max_size)
    else:
        chunks = _contiguous_chunks(len(cluster.files), max_size)

    # Members are in parent order, so the first index gives timestamp order
    chunks.sort(key=lambda chunk: chunk[0])

    sub_clusters = [
        Cluster.from_records(
            f"{cluster.name}_Part{number}",
            [cluster.files[index] for index in chunk],
            parent_cluster=cluster.name,
        )
        for number, chunk in enumerate(chunks, start=1)
    ]

    logger.info(f"Split {cluster.name} ({len(cluster.files)} images) into "
                f"{len(sub_clusters)} sub-clusters: {[len(c.files) for c in sub_clusters]}")
    return sub_clusters

def refine_clusters(clusters: List[Cluster], max_size: int = 25) -> List[Cluster]:
    """Apply the size bound to every cluster, preserving order."""
    refined: List[Cluster] = []
    for cluster in clusters:
        refined.extend(split_large_cluster(cluster, max_size))

    logger.info(f"Size refinement: {len(clusters)} clusters -> {len(refined)} clusters")
    return refined
