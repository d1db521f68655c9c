from pathlib import Path
from typing import List, Optional

from p4lens.core.shared_types import P4Session
from p4lens.features.path_mapping.data.where_adapter import P4WherePathMapper
from p4lens.features.path_mapping.domain.interfaces import IPathMapper
from ..data.opened_adapter import P4OpenedAdapter, parse_opened_output
from ..domain.interfaces import IOpenedFilesSource
from ..domain.models import CheckedOutFileRecord


def list_opened_files(session: P4Session,
                      workspace_root: Optional[str] = None,
                      source: Optional[IOpenedFilesSource] = None,
                      mapper: Optional[IPathMapper] = None) -> List[CheckedOutFileRecord]:
    """
    Standalone API: files opened on the current client, with local paths filled in
    by one batch mapping call. Raises ProcessFailure for anything but "not opened".
    """
    cwd = Path(workspace_root) if workspace_root else Path.cwd()
    source = source or P4OpenedAdapter(session)
    mapper = mapper or P4WherePathMapper(session)

    records = parse_opened_output(source.list_opened(cwd))
    if not records:
        return []

    resolved = mapper.resolve_paths([r.depot_path for r in records], cwd)
    for record in records:
        paths = resolved.get(record.depot_path)
        if paths is not None:
            record.client_path = paths.client_path
            record.local_path = paths.local_path

    return records
