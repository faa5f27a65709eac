import shutil
import logging
from pathlib import Path
from typing import Dict, List, Optional

from .models import Cluster, Representative
from .reporting import build_cluster_metadata, write_json
from .error_handling import OrganizationError, safe_file_operation, handle_error

logger = logging.getLogger(__name__)

CLUSTER_METADATA_NAME = "group_metadata.json"

def write_cluster_metadata_file(cluster_dir: Path, cluster: Cluster,
                                representatives: Optional[List[Representative]] = None) -> str:
    return write_json(cluster_dir / CLUSTER_METADATA_NAME, build_cluster_metadata(cluster, representatives))

def organize_files_into_clusters(clusters: List[Cluster], output_path: str,
                                 representatives: Optional[List[Representative]] = None) -> Dict[str, int]:
    """
    Copy member files into one folder per cluster and write its metadata.

    A file that cannot be copied is logged and skipped.

    Returns:
        Dict with copy statistics
    """
    logger.info(f"Organizing {len(clusters)} clusters into {output_path}")

    copied = 0
    failed = 0

    for cluster in clusters:
        cluster_dir = Path(output_path) / cluster.name
        cluster_dir.mkdir(parents=True, exist_ok=True)

        for record in cluster.files:
            target = cluster_dir / record.file_name
            try:
                safe_file_operation(shutil.copy2, record.file_path, target)
                copied += 1
            except OrganizationError as e:
                handle_error(e, context=f"copying {record.file_name} to {cluster.name}", raise_error=False)
                failed += 1

        write_cluster_metadata_file(cluster_dir, cluster, representatives)

    stats = {
        "clusters": len(clusters),
        "files_copied": copied,
        "files_failed": failed,
    }
    logger.info(f"File organization complete: {stats}")
    return stats
