"""Campaign dispatch trigger endpoint.

Called by an external scheduler. Per-campaign failures are part of a 200
response; only a failure before any campaign is processed yields a 500.
"""
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..container import Services, get_services
from ..schemas.campaign import CampaignResultResponse, CheckCampaignsResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["campaigns"])


@router.get("/check-campaigns", response_model=CheckCampaignsResponse, response_model_exclude_none=True)
async def check_campaigns(services: Services = Depends(get_services)):
    """Run one dispatch pass over all due campaigns."""
    try:
        report = await services.dispatch.run_dispatch_pass()
    except Exception as e:
        logger.error(f"Error checking campaigns: {e}")
        return JSONResponse(
            status_code=500,
            content={"error": str(e), "message": "Error checking campaigns"},
        )

    if not report.campaigns_processed:
        return CheckCampaignsResponse(message="No pending campaigns found")

    return CheckCampaignsResponse(
        message=f"Processed {report.campaigns_processed} campaigns",
        results=[CampaignResultResponse(**result.to_dict()) for result in report.per_campaign_results],
    )
