import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from p4lens.core.http.dependencies import get_p4_session
from p4lens.core.http.schemas import CamelModel, ErrorResponse
from p4lens.core.process.types import ProcessFailure
from p4lens.core.shared_types import P4Session
from ..domain.models import CheckedOutFileRecord
from .api import list_opened_files

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/p4/files", tags=["opened-files"])


class CheckedOutFileOut(CamelModel):
    depot_file: str
    client_file: str = ""
    local_file: str = ""
    rev: str = ""
    action: str = ""
    type: str = ""
    change: str = "default"
    user: str = ""
    client: str = ""

    @classmethod
    def from_record(cls, record: CheckedOutFileRecord) -> "CheckedOutFileOut":
        return cls(
            depot_file=record.depot_path,
            client_file=record.client_path,
            local_file=record.local_path,
            rev=record.revision,
            action=record.action,
            type=record.file_type,
            change=record.change,
            user=record.user,
            client=record.client,
        )


class OpenedFilesResponse(CamelModel):
    success: bool = True
    files: List[CheckedOutFileOut]


@router.get("/opened", response_model=OpenedFilesResponse)
def opened_files_endpoint(
    client_root: Optional[str] = Query(None, alias="clientRoot"),
    session: P4Session = Depends(get_p4_session),
):
    try:
        records = list_opened_files(session, client_root or None)
    except (ProcessFailure, FileNotFoundError) as e:
        logger.error(f"p4 opened failed: {e}")
        body = ErrorResponse(error="Failed to fetch checked out files", details=str(e))
        return JSONResponse(status_code=500, content=body.model_dump(by_alias=True))

    return OpenedFilesResponse(files=[CheckedOutFileOut.from_record(r) for r in records])
