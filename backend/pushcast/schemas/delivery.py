"""Delivery acknowledgement schemas."""
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class UpdateStatusRequest(BaseModel):
    """Device confirmation that a campaign push arrived."""
    model_config = ConfigDict(populate_by_name=True)

    token: Optional[str] = None
    campaign_id: Optional[str] = Field(None, alias="campaignId")


class UpdateStatusResponse(BaseModel):
    """Response after marking a delivery record delivered."""
    success: bool
    message: str
    id: str
