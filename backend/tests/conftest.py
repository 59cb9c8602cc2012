"""Pytest fixtures and configuration for test suite

This module provides:
1. In-memory fakes of the stores and push gateway for handler/engine tests
2. A SQLite-backed session factory for store tests
3. Factory functions for creating test objects with sensible defaults

Factory Functions:
    - make_campaign(**overrides) -> Campaign
"""
import uuid
from datetime import datetime, timedelta

import pytest
import pytest_asyncio

from pushcast.database import build_engine, build_session_factory, init_db, close_db
from pushcast.models import Campaign, CampaignStatus
from tests.fakes import FakeCampaignStore, FakeDeliveryLedger, FakePushGateway, FakeTokenStore

# Fixed "now" used by every injected clock
NOW = datetime(2024, 6, 1, 12, 0, 0)


# =============================================================================
# Factory Functions for Test Objects
# =============================================================================

def make_campaign(
    id: str = None,
    title: str = "Summer sale",
    body_text: str = "Everything 20% off today",
    image_url: str = "https://example.com/banner.png",
    status: str = CampaignStatus.PENDING.value,
    send_at: datetime = None,
    **overrides
) -> Campaign:
    """
    Factory function to create Campaign instances for testing.

    Counters start at zero and send_at defaults to one hour before NOW, so the
    campaign is due unless overridden.
    """
    if id is None:
        id = str(uuid.uuid4())
    if send_at is None:
        send_at = NOW - timedelta(hours=1)

    fields = dict(
        sent_count=0,
        success_count=0,
        failed_count=0,
        failed_reasons={},
    )
    fields.update(overrides)

    return Campaign(
        id=id,
        title=title,
        body_text=body_text,
        image_url=image_url,
        status=status,
        send_at=send_at,
        **fields
    )


# =============================================================================
# Fakes
# =============================================================================

@pytest.fixture
def clock():
    """Clock frozen at NOW."""
    return lambda: NOW


@pytest.fixture
def token_store():
    return FakeTokenStore()


@pytest.fixture
def campaign_store():
    return FakeCampaignStore()


@pytest.fixture
def ledger():
    return FakeDeliveryLedger()


@pytest.fixture
def gateway():
    return FakePushGateway()


# =============================================================================
# SQLite database
# =============================================================================

@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """Session factory bound to a fresh SQLite file with all tables created."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)
    yield build_session_factory(engine)
    await close_db(engine)
