import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from p4lens.core.http.dependencies import get_p4_session
from p4lens.core.http.schemas import CamelModel, ErrorResponse
from p4lens.core.shared_types import P4Session
from ..domain.models import CheckoutError
from .api import checkout_file

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/p4/files", tags=["checkout"])


class CheckoutBody(CamelModel):
    depot_file: str = ""
    client_root: Optional[str] = None


class CheckoutResponse(CamelModel):
    success: bool = True
    message: str
    output: str = ""


@router.post("/checkout", response_model=CheckoutResponse)
def checkout_endpoint(body: CheckoutBody, session: P4Session = Depends(get_p4_session)):
    try:
        result = checkout_file(session, body.depot_file, body.client_root)
    except ValueError as e:
        return JSONResponse(status_code=400, content=ErrorResponse(error=str(e)).model_dump(by_alias=True))
    except FileNotFoundError as e:
        logger.warning(f"Checkout with unusable client root: {e}")
        error_body = ErrorResponse(error="Client root not found", details=str(e))
        return JSONResponse(status_code=400, content=error_body.model_dump(by_alias=True))
    except CheckoutError as e:
        logger.warning(f"Checkout refused for {e.depot_path}: {e.details}")
        error_body = ErrorResponse(error=str(e), details=e.details or None)
        return JSONResponse(status_code=400, content=error_body.model_dump(by_alias=True))

    return CheckoutResponse(message=result.message, output=result.output)
