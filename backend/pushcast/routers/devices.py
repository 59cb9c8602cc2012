"""Device registration API endpoint for push notifications."""
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..container import Services, get_services
from ..errors import DispatcherError, ValidationError
from ..schemas.device import StoreTokenRequest, StoreTokenResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["devices"])


@router.post("/store-fcm", response_model=StoreTokenResponse)
async def store_fcm_token(
    request: StoreTokenRequest,
    services: Services = Depends(get_services),
):
    """Register a device push token.

    If the token already exists its expiry is refreshed. Otherwise a new record
    is created. Apps should call this on every launch.
    """
    try:
        result = await services.registration.register_token(request.token)
    except ValidationError as e:
        return JSONResponse(status_code=400, content={"error": e.message})
    except DispatcherError as e:
        logger.error(f"Error storing device token: {e}")
        return JSONResponse(
            status_code=e.status_code,
            content={"error": "Error storing data", "details": e.message},
        )

    if result.created:
        body = StoreTokenResponse(id=result.id, message="New document created")
        return JSONResponse(status_code=201, content=body.model_dump())

    body = StoreTokenResponse(id=result.id, message="Document updated")
    return JSONResponse(status_code=200, content=body.model_dump())
