"""Campaign dispatch schemas."""
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class CampaignResultResponse(BaseModel):
    """One campaign's outcome in a dispatch pass."""
    model_config = ConfigDict(populate_by_name=True)

    campaign_id: str = Field(..., alias="campaignId")
    status: str  # success, failed, skipped_no_devices, skipped_claimed
    total_sent: int = Field(0, alias="totalSent")
    success_count: int = Field(0, alias="successCount")
    failure_count: int = Field(0, alias="failureCount")
    failures_by_reason: Dict[str, int] = Field(default_factory=dict, alias="failuresByReason")
    message: Optional[str] = None
    error: Optional[str] = None
    ledger_error: Optional[str] = Field(None, alias="ledgerError")


class CheckCampaignsResponse(BaseModel):
    """Summary of a dispatch pass."""
    message: str
    results: Optional[List[CampaignResultResponse]] = None
