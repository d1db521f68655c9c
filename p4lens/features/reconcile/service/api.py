from typing import Optional, Sequence

from p4lens.core.common.locks import KeyedLocks
from p4lens.core.config.settings import settings
from p4lens.core.database.connection import SessionLocal
from p4lens.core.shared_types import P4Session
from p4lens.features.path_mapping.data.where_adapter import P4WherePathMapper
from ..data.output_parser import ReconcileOutputParser
from ..data.p4_adapter import P4ReconcileAdapter
from ..data.repository import SqlScanCacheStore
from ..domain.models import ReconcileRequest, ReconcileResponse, ScanScope
from .orchestrator import ReconcileOrchestrator

# Shared by every standalone call in this process
SCOPE_LOCKS = KeyedLocks()


def build_orchestrator(session: P4Session,
                       session_factory=SessionLocal,
                       locks: Optional[KeyedLocks] = None) -> ReconcileOrchestrator:
    """Wires the p4-backed scanner and mapper to the SQL cache."""
    return ReconcileOrchestrator(
        cache=SqlScanCacheStore(session_factory=session_factory),
        scanner=P4ReconcileAdapter(session),
        parser=ReconcileOutputParser(),
        mapper=P4WherePathMapper(session),
        locks=locks,
    )


def get_modified_files(session: P4Session,
                       workspace_root: str,
                       included_folders: Sequence[str] = (),
                       max_records: int = settings.DEFAULT_MAX_RECORDS,
                       force_refresh: bool = False) -> ReconcileResponse:
    """
    Standalone API: lists files that differ from the depot but are not opened.
    Raises WorkspaceRootError before running anything if the root is unusable.
    """
    request = ReconcileRequest(
        workspace_root=workspace_root,
        included_folders=tuple(included_folders),
        max_records=max_records,
        force_refresh=force_refresh,
    )
    return build_orchestrator(session, locks=SCOPE_LOCKS).get_modified_files(request)


def invalidate_scan_cache(workspace_root: str, included_folders: Sequence[str] = (), session_factory=SessionLocal) -> None:
    """Standalone API: drops the cached result for one scope."""
    SqlScanCacheStore(session_factory=session_factory).invalidate(ScanScope(workspace_root.strip(), tuple(included_folders)))
