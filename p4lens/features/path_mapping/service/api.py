from pathlib import Path
from typing import Dict, List, Optional

from p4lens.core.shared_types import P4Session
from ..data.where_adapter import P4WherePathMapper


def map_depot_paths(session: P4Session, depot_paths: List[str], workspace_root: Optional[str] = None) -> Dict[str, str]:
    """
    Standalone API: depot path -> local path for a batch of files.
    Unmapped files are left out of the result.
    """
    if not depot_paths:
        raise ValueError("No files provided to map.")

    mapper = P4WherePathMapper(session)
    root = Path(workspace_root) if workspace_root else None
    resolved = mapper.resolve_paths(depot_paths, root)

    return {
        depot: paths.local_path
        for depot, paths in resolved.items()
        if paths.local_path
    }
