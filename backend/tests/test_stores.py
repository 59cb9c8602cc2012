"""
Tests for the SQLAlchemy stores against a real SQLite database.

Tests cover:
- Token store lookup, unique token, expiry sweep
- Campaign store due selection, conditional claim, counter increments
- Delivery ledger atomic batches and acknowledgement lookups
"""
import asyncio
from datetime import datetime, timedelta

import pytest
from sqlalchemy import select

from pushcast.errors import CollaboratorError, ConflictError, NotFoundError
from pushcast.models import Campaign, CampaignStatus, DeliveryRecord, DeliveryStatus, DeviceRegistration
from pushcast.stores import CampaignStore, DeliveryLedger, TokenStore
from pushcast.stores.campaign_store import merge_reason_counts
from tests.conftest import NOW, make_campaign


def registration(token, expires_at=NOW + timedelta(hours=24)):
    return DeviceRegistration(token=token, created_at=NOW, updated_at=NOW, expires_at=expires_at)


async def seed(session_factory, *objects):
    async with session_factory() as session:
        session.add_all(objects)
        await session.commit()


async def load_campaign(session_factory, campaign_id):
    async with session_factory() as session:
        return await session.get(Campaign, campaign_id)


async def ledger_rows(session_factory, campaign_id):
    async with session_factory() as session:
        result = await session.execute(select(DeliveryRecord).where(DeliveryRecord.campaign_id == campaign_id))
        return list(result.scalars().all())


class TestTokenStore:

    @pytest.mark.asyncio
    async def test_insert_and_find(self, session_factory):
        store = TokenStore(session_factory)

        registration_id = await store.insert(registration("abc"))
        found = await store.find_by_token("abc")

        assert found.id == registration_id
        assert await store.find_by_token("missing") is None

    @pytest.mark.asyncio
    async def test_duplicate_token_conflicts(self, session_factory):
        store = TokenStore(session_factory)
        await store.insert(registration("abc"))

        with pytest.raises(ConflictError):
            await store.insert(registration("abc"))

    @pytest.mark.asyncio
    async def test_update_fields(self, session_factory):
        store = TokenStore(session_factory)
        registration_id = await store.insert(registration("abc"))
        later = NOW + timedelta(hours=5)

        await store.update(registration_id, {"updated_at": later, "expires_at": later + timedelta(hours=24)})

        found = await store.find_by_token("abc")
        assert found.updated_at == later
        assert found.expires_at == later + timedelta(hours=24)

    @pytest.mark.asyncio
    async def test_list_all_includes_expired(self, session_factory):
        store = TokenStore(session_factory)
        await store.insert(registration("fresh"))
        await store.insert(registration("stale", expires_at=NOW - timedelta(days=3)))

        assert sorted(await store.list_all()) == ["fresh", "stale"]

    @pytest.mark.asyncio
    async def test_delete_expired_only_removes_past_expiry(self, session_factory):
        store = TokenStore(session_factory)
        await store.insert(registration("fresh"))
        await store.insert(registration("stale", expires_at=NOW - timedelta(minutes=1)))

        removed = await store.delete_expired(NOW)

        assert removed == 1
        assert await store.list_all() == ["fresh"]


class TestCampaignStore:

    @pytest.mark.asyncio
    async def test_find_due(self, session_factory):
        due = make_campaign(id="due")
        future = make_campaign(id="future", send_at=NOW + timedelta(hours=1))
        done = make_campaign(id="done", status=CampaignStatus.COMPLETED.value)
        await seed(session_factory, due, future, done)

        campaigns = await CampaignStore(session_factory).find_due(NOW)

        assert [c.id for c in campaigns] == ["due"]

    @pytest.mark.asyncio
    async def test_claim_is_exclusive(self, session_factory):
        await seed(session_factory, make_campaign(id="c1"))
        store = CampaignStore(session_factory)

        claims = await asyncio.gather(*[store.claim("c1", NOW) for _ in range(4)])

        assert sorted(claims) == [False, False, False, True]
        assert (await load_campaign(session_factory, "c1")).status == CampaignStatus.PROCESSING.value
        assert await store.find_due(NOW) == []

    @pytest.mark.asyncio
    async def test_release_returns_to_pending(self, session_factory):
        await seed(session_factory, make_campaign(id="c1"))
        store = CampaignStore(session_factory)

        assert await store.release("c1") is False  # not claimed
        await store.claim("c1", NOW)
        assert await store.release("c1") is True
        assert [c.id for c in await store.find_due(NOW)] == ["c1"]
        assert (await load_campaign(session_factory, "c1")).claimed_at is None

    @pytest.mark.asyncio
    async def test_stale_claim_is_due_again(self, session_factory):
        await seed(session_factory, make_campaign(id="c1"))
        store = CampaignStore(session_factory, claim_timeout=timedelta(minutes=15))
        assert await store.claim("c1", NOW) is True

        # Fresh claims stay out of the due set
        soon = NOW + timedelta(minutes=5)
        assert await store.find_due(soon) == []
        assert await store.claim("c1", soon) is False

        later = NOW + timedelta(minutes=20)
        assert [c.id for c in await store.find_due(later)] == ["c1"]
        claims = await asyncio.gather(*[store.claim("c1", later) for _ in range(3)])
        assert sorted(claims) == [False, False, True]

        campaign = await load_campaign(session_factory, "c1")
        assert campaign.status == CampaignStatus.PROCESSING.value
        assert campaign.claimed_at == later

    @pytest.mark.asyncio
    async def test_parked_campaign_never_due(self, session_factory):
        await seed(session_factory, make_campaign(id="c1", status=CampaignStatus.FAILED.value))
        store = CampaignStore(session_factory)

        assert await store.find_due(NOW + timedelta(days=1)) == []
        assert await store.claim("c1", NOW + timedelta(days=1)) is False

    @pytest.mark.asyncio
    async def test_update_increments_and_merges(self, session_factory):
        await seed(session_factory, make_campaign(
            id="c1", sent_count=3, success_count=2, failed_count=1, failed_reasons={"Unregistered": 1},
        ))
        store = CampaignStore(session_factory)

        await store.update(
            "c1",
            fields={"status": CampaignStatus.COMPLETED.value},
            increments={"sent_count": 2, "success_count": 1, "failed_count": 1},
            merge_reasons={"Unregistered": 1, "QuotaExceeded": 0},
        )

        campaign = await load_campaign(session_factory, "c1")
        assert campaign.status == CampaignStatus.COMPLETED.value
        assert (campaign.sent_count, campaign.success_count, campaign.failed_count) == (5, 3, 2)
        assert campaign.failed_reasons == {"Unregistered": 2, "QuotaExceeded": 0}

    @pytest.mark.asyncio
    async def test_update_unknown_campaign(self, session_factory):
        with pytest.raises(NotFoundError):
            await CampaignStore(session_factory).update("nope", fields={"status": "completed"})

    @pytest.mark.asyncio
    async def test_update_rejects_non_counter_increment(self, session_factory):
        await seed(session_factory, make_campaign(id="c1"))
        with pytest.raises(ValueError):
            await CampaignStore(session_factory).update("c1", increments={"title": 1})

    def test_merge_reason_counts(self):
        assert merge_reason_counts(None, {"A": 1}) == {"A": 1}
        assert merge_reason_counts({"A": 1, "B": 2}, {"A": 2}) == {"A": 3, "B": 2}


class TestDeliveryLedger:

    @pytest.mark.asyncio
    async def test_batch_insert_and_find_one(self, session_factory):
        await seed(session_factory, make_campaign(id="c1"))
        ledger = DeliveryLedger(session_factory)

        await ledger.batch_insert([
            DeliveryRecord(campaign_id="c1", device_token="t1", status=DeliveryStatus.SUCCESS.value, created_at=NOW),
            DeliveryRecord(campaign_id="c1", device_token="t2", status=DeliveryStatus.FAILED.value,
                           error_code="Unregistered", created_at=NOW),
        ])

        record = await ledger.find_one("t2", "c1")
        assert record.status == DeliveryStatus.FAILED.value
        assert record.error_code == "Unregistered"
        assert await ledger.find_one("t2", "other") is None
        assert len(await ledger_rows(session_factory, "c1")) == 2

    @pytest.mark.asyncio
    async def test_batch_insert_is_all_or_nothing(self, session_factory):
        await seed(session_factory, make_campaign(id="c1"))
        ledger = DeliveryLedger(session_factory)

        with pytest.raises(CollaboratorError):
            await ledger.batch_insert([
                DeliveryRecord(campaign_id="c1", device_token="t1", status="success", created_at=NOW),
                # Violates the foreign key
                DeliveryRecord(campaign_id="missing", device_token="t2", status="success", created_at=NOW),
            ])

        assert await ledger_rows(session_factory, "c1") == []

    @pytest.mark.asyncio
    async def test_update_marks_delivered(self, session_factory):
        await seed(session_factory, make_campaign(id="c1"))
        ledger = DeliveryLedger(session_factory)
        await ledger.batch_insert([
            DeliveryRecord(campaign_id="c1", device_token="t1", status="success", created_at=NOW),
        ])
        record = await ledger.find_one("t1", "c1")
        delivered_at = NOW + timedelta(minutes=2)

        await ledger.update(record.id, {"status": DeliveryStatus.DELIVERED.value, "delivered_at": delivered_at})

        updated = await ledger.find_one("t1", "c1")
        assert updated.status == DeliveryStatus.DELIVERED.value
        assert updated.delivered_at == delivered_at

    @pytest.mark.asyncio
    async def test_find_one_returns_oldest_duplicate(self, session_factory):
        await seed(session_factory, make_campaign(id="c1"))
        ledger = DeliveryLedger(session_factory)
        await ledger.batch_insert([
            DeliveryRecord(id="newer", campaign_id="c1", device_token="t1", status="success",
                           created_at=NOW + timedelta(minutes=5)),
            DeliveryRecord(id="older", campaign_id="c1", device_token="t1", status="success", created_at=NOW),
        ])

        assert (await ledger.find_one("t1", "c1")).id == "older"
