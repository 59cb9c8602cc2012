"""Persistent stores the handlers and the dispatch engine talk to."""
from .token_store import TokenStore
from .campaign_store import CampaignStore
from .delivery_ledger import DeliveryLedger

__all__ = ["TokenStore", "CampaignStore", "DeliveryLedger"]
