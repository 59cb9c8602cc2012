"""Database models."""
from .device_registration import DeviceRegistration
from .campaign import Campaign, CampaignStatus
from .delivery_record import DeliveryRecord, DeliveryStatus

__all__ = ["DeviceRegistration", "Campaign", "CampaignStatus", "DeliveryRecord", "DeliveryStatus"]
