"""Explicit wiring of stores, gateway and handlers.

The app builds one Services object at startup and routers receive it through
the get_services dependency. Tests build their own with fakes.
"""
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine

from .config import Settings, get_database_url
from .database import build_engine, build_session_factory
from .services.acknowledgement import AcknowledgementService
from .services.dispatch_engine import DispatchEngine
from .services.push_gateway import FCMConfig, FCMPushGateway
from .services.registration import RegistrationService
from .services.scheduler import SchedulerService
from .stores import CampaignStore, DeliveryLedger, TokenStore


@dataclass
class Services:
    """Everything the request handlers need."""
    registration: RegistrationService
    acknowledgement: AcknowledgementService
    dispatch: DispatchEngine
    scheduler: Optional[SchedulerService] = None
    engine: Optional[AsyncEngine] = None  # owned database engine, if any


def build_services(config: Settings) -> Services:
    """Construct the production object graph from settings."""
    engine = build_engine(get_database_url(config))
    session_factory = build_session_factory(engine)

    token_store = TokenStore(session_factory)
    campaign_store = CampaignStore(
        session_factory,
        claim_timeout=timedelta(minutes=config.claim_timeout_minutes),
    )
    ledger = DeliveryLedger(session_factory)
    gateway = FCMPushGateway(FCMConfig(
        credentials_path=config.fcm_credentials_path,
        project_id=config.fcm_project_id,
    ))

    dispatch = DispatchEngine(campaign_store, token_store, ledger, gateway)

    scheduler = None
    if config.scheduler_enabled or config.device_sweep_enabled:
        scheduler = SchedulerService(
            dispatch,
            token_store,
            dispatch_interval_seconds=config.dispatch_interval_seconds,
            dispatch_enabled=config.scheduler_enabled,
            sweep_interval_minutes=config.device_sweep_interval_minutes,
            sweep_enabled=config.device_sweep_enabled,
        )

    return Services(
        registration=RegistrationService(token_store, ttl=timedelta(hours=config.device_ttl_hours)),
        acknowledgement=AcknowledgementService(ledger),
        dispatch=dispatch,
        scheduler=scheduler,
        engine=engine,
    )


def get_services(request: Request) -> Services:
    """Dependency to get the app's services."""
    return request.app.state.services
