"""Pydantic schemas for API request/response models."""
from .device import StoreTokenRequest, StoreTokenResponse
from .delivery import UpdateStatusRequest, UpdateStatusResponse
from .campaign import CampaignResultResponse, CheckCampaignsResponse

__all__ = [
    "StoreTokenRequest",
    "StoreTokenResponse",
    "UpdateStatusRequest",
    "UpdateStatusResponse",
    "CampaignResultResponse",
    "CheckCampaignsResponse",
]
