"""Device registration schemas."""
from typing import Optional
from pydantic import BaseModel


class StoreTokenRequest(BaseModel):
    """Request to register a device push token."""
    token: Optional[str] = None


class StoreTokenResponse(BaseModel):
    """Response after storing a token."""
    id: str
    message: str
