import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from p4lens.core.http.dependencies import get_p4_session
from p4lens.core.http.schemas import CamelModel, ErrorResponse
from p4lens.core.process.types import ProcessFailure
from p4lens.core.shared_types import P4Session
from ..domain.models import ToolUnavailableError
from .api import check_tool, get_workspace_info

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/p4", tags=["workspace"])


class ClientInfoResponse(CamelModel):
    success: bool = True
    version: str
    client_name: str = ""
    client_root: str = ""
    client_root_detected: bool = False
    user_name: str = ""
    server_address: str = ""


@router.get("/client", response_model=ClientInfoResponse)
def client_info_endpoint(session: P4Session = Depends(get_p4_session)):
    try:
        version = check_tool(session)
        info = get_workspace_info(session)
    except ToolUnavailableError as e:
        body = ErrorResponse(error=str(e))
        return JSONResponse(status_code=500, content=body.model_dump(by_alias=True))
    except ProcessFailure as e:
        logger.error(f"p4 info failed: {e.reason}")
        body = ErrorResponse(error="Failed to read Perforce client info", details=e.reason)
        return JSONResponse(status_code=500, content=body.model_dump(by_alias=True))

    return ClientInfoResponse(
        version=version,
        client_name=info.client_name,
        client_root=info.client_root,
        client_root_detected=bool(info.client_root),
        user_name=info.user_name,
        server_address=info.server_address,
    )
