import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from p4lens.core.http.dependencies import get_p4_session
from p4lens.core.http.schemas import CamelModel, ErrorResponse
from p4lens.core.shared_types import P4Session
from .api import map_depot_paths

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/p4/files", tags=["path-mapping"])


class WhereRequest(CamelModel):
    files: List[str] = []
    client_root: Optional[str] = None


class WhereResponse(CamelModel):
    success: bool = True
    path_map: Dict[str, str]


@router.post("/where", response_model=WhereResponse)
def where_endpoint(body: WhereRequest, session: P4Session = Depends(get_p4_session)):
    try:
        path_map = map_depot_paths(session, body.files, body.client_root)
    except ValueError as e:
        return JSONResponse(status_code=400, content=ErrorResponse(error=str(e)).model_dump(by_alias=True))

    return WhereResponse(path_map=path_map)
