"""Delivery acknowledgement API endpoint."""
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..container import Services, get_services
from ..errors import DispatcherError, NotFoundError, ValidationError
from ..schemas.delivery import UpdateStatusRequest, UpdateStatusResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["deliveries"])


@router.post("/update-status", response_model=UpdateStatusResponse)
async def update_delivery_status(
    request: UpdateStatusRequest,
    services: Services = Depends(get_services),
):
    """Mark a campaign push as delivered to the calling device."""
    try:
        record_id = await services.acknowledgement.acknowledge_delivery(request.token, request.campaign_id)
    except ValidationError as e:
        return JSONResponse(status_code=400, content={"error": "Bad Request", "message": e.message})
    except NotFoundError as e:
        return JSONResponse(status_code=404, content={"error": "Not Found", "message": e.message})
    except DispatcherError as e:
        # PermissionDeniedError carries 403, everything else 500
        logger.error(f"Error updating notification status: {e}")
        return JSONResponse(
            status_code=e.status_code,
            content={
                "error": "Failed to update notification",
                "message": e.message,
                "code": e.code,
            },
        )

    body = UpdateStatusResponse(
        success=True,
        message="Notification status updated to delivered",
        id=record_id,
    )
    return body
