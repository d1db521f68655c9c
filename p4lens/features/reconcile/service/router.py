"""
Modified Files Router

- GET    /api/p4/files/modified        - Reconcile preview (cached per scope)
- DELETE /api/p4/files/modified/cache  - Drop one cached scope
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from p4lens.core.config.settings import settings
from p4lens.core.http.dependencies import get_orchestrator, get_scan_cache
from p4lens.core.http.schemas import ErrorResponse
from ..domain.models import ReconcileRequest, ScanFailedError, ScanScope, WorkspaceRootError
from .schemas import CacheInvalidatedResponse, ModifiedFilesResponse, ScanLogEntryOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/p4/files", tags=["modified-files"])


def split_folders(raw: Optional[str]) -> List[str]:
    """Comma-separated folder list; stray query strings and blanks are dropped."""
    if not raw:
        return []
    folders = []
    for part in raw.split(","):
        folder = part.split("?", 1)[0].strip()
        if folder:
            folders.append(folder)
    return folders


def _error(status_code: int, error: str, details: str = "", scan_log=None) -> JSONResponse:
    body = ErrorResponse(
        error=error,
        details=details or None,
        scan_log=[ScanLogEntryOut.from_entry(e).model_dump(by_alias=True) for e in (scan_log or [])],
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True))


@router.get("/modified", response_model=ModifiedFilesResponse)
def get_modified_files_endpoint(
    client_root: str = Query("", alias="clientRoot"),
    inclusion_folders: Optional[str] = Query(None, alias="inclusionFolders"),
    max_files: int = Query(settings.DEFAULT_MAX_RECORDS, alias="maxFiles"),
    force_refresh: bool = Query(False, alias="forceRefresh"),
    orchestrator=Depends(get_orchestrator),
):
    try:
        request = ReconcileRequest(
            workspace_root=client_root,
            included_folders=tuple(split_folders(inclusion_folders)),
            max_records=max_files,
            force_refresh=force_refresh,
        )
    except WorkspaceRootError as e:
        return _error(400, str(e))

    try:
        response = orchestrator.get_modified_files(request)
    except ScanFailedError as e:
        logger.error(f"Reconcile failed for {client_root}: {e}")
        return _error(500, str(e), e.details, e.scan_log)
    except Exception as e:
        logger.exception("Unexpected error in modified files endpoint")
        return _error(500, "Failed to fetch modified files", str(e))

    return ModifiedFilesResponse.from_domain(response)


@router.delete("/modified/cache", response_model=CacheInvalidatedResponse)
def invalidate_cache_endpoint(
    client_root: str = Query(..., alias="clientRoot"),
    inclusion_folders: Optional[str] = Query(None, alias="inclusionFolders"),
    cache=Depends(get_scan_cache),
):
    if not client_root.strip():
        return _error(400, "No Perforce client root specified.")

    scope = ScanScope(client_root.strip(), tuple(split_folders(inclusion_folders)))
    try:
        cache.invalidate(scope)
    except SQLAlchemyError as e:
        logger.exception("Cache invalidation failed")
        return _error(500, "Failed to clear scan cache", str(e))

    return CacheInvalidatedResponse(scope_key=scope.cache_key)
