"""Campaign dispatch engine - fans due campaigns out to every registered device.

One pass:
- selects pending campaigns whose send time has passed, plus any whose claim went stale
- claims each one (-> processing) so overlapping passes cannot send it twice
- sends the campaign to all registered tokens in one gateway call
- appends one ledger record per token and adds the outcome to the campaign counters

Campaigns are isolated from each other: an error while handling one is recorded
in its result and the pass moves on to the next.
"""
import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from ..errors import DispatcherError
from ..models import Campaign, CampaignStatus, DeliveryRecord, DeliveryStatus
from ..stores import CampaignStore, DeliveryLedger, TokenStore
from ..utils.clock import Clock, utcnow
from .push_gateway import PushGateway, PushMessage, UNKNOWN_ERROR_CODE

logger = logging.getLogger(__name__)


class CampaignOutcome(str, Enum):
    """How a campaign fared in a dispatch pass."""

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED_NO_DEVICES = "skipped_no_devices"
    SKIPPED_CLAIMED = "skipped_claimed"  # another pass owns it


@dataclass
class CampaignResult:
    """Per-campaign entry of a dispatch report."""

    campaign_id: str
    outcome: CampaignOutcome
    sent: int = 0
    succeeded: int = 0
    failed: int = 0
    failures_by_reason: Dict[str, int] = field(default_factory=dict)
    message: Optional[str] = None
    error: Optional[str] = None
    ledger_error: Optional[str] = None

    def to_dict(self) -> dict:
        """Wire form returned by the API."""
        data = {
            "campaignId": self.campaign_id,
            "status": self.outcome.value,
            "totalSent": self.sent,
            "successCount": self.succeeded,
            "failureCount": self.failed,
            "failuresByReason": dict(self.failures_by_reason),
        }
        if self.message:
            data["message"] = self.message
        if self.error:
            data["error"] = self.error
        if self.ledger_error:
            data["ledgerError"] = self.ledger_error
        return data


@dataclass
class DispatchReport:
    """Result of one dispatch pass."""

    campaigns_processed: int = 0
    per_campaign_results: List[CampaignResult] = field(default_factory=list)


class DispatchEngine:
    """Discovers due campaigns and fans them out through the push gateway."""

    def __init__(
        self,
        campaign_store: CampaignStore,
        token_store: TokenStore,
        ledger: DeliveryLedger,
        gateway: PushGateway,
        clock: Clock = utcnow,
    ):
        self._campaigns = campaign_store
        self._tokens = token_store
        self._ledger = ledger
        self._gateway = gateway
        self._clock = clock

    async def run_dispatch_pass(self) -> DispatchReport:
        """Process every due campaign once.

        A failure to list due campaigns propagates; failures inside a single
        campaign are captured in that campaign's result.
        """
        due = await self._campaigns.find_due(self._clock())
        report = DispatchReport(campaigns_processed=len(due))

        if not due:
            logger.debug("No due campaigns")
            return report

        logger.info(f"Dispatch pass: {len(due)} due campaigns")

        for campaign in due:
            try:
                result = await self._dispatch_campaign(campaign)
            except Exception as e:
                logger.error(f"Error processing campaign {campaign.id}: {e}")
                result = CampaignResult(
                    campaign_id=campaign.id,
                    outcome=CampaignOutcome.FAILED,
                    error=str(e),
                )
            report.per_campaign_results.append(result)

        return report

    async def _dispatch_campaign(self, campaign: Campaign) -> CampaignResult:
        if campaign.status == CampaignStatus.PROCESSING.value:
            logger.warning(f"Campaign {campaign.id}: claim from {campaign.claimed_at} is stale, reclaiming")

        if not await self._campaigns.claim(campaign.id, self._clock()):
            logger.info(f"Campaign {campaign.id} already claimed by another pass, skipping")
            return CampaignResult(
                campaign_id=campaign.id,
                outcome=CampaignOutcome.SKIPPED_CLAIMED,
                message="Campaign is being processed by another pass",
            )

        try:
            tokens = await self._tokens.list_all()
            if not tokens:
                # Stays pending so the next pass can pick it up once devices register
                await self._campaigns.release(campaign.id)
                logger.info(f"Campaign {campaign.id}: no devices registered, left pending")
                return CampaignResult(
                    campaign_id=campaign.id,
                    outcome=CampaignOutcome.SKIPPED_NO_DEVICES,
                    message="No devices found",
                )

            message = PushMessage(
                title=campaign.title,
                body=campaign.body_text,
                image=campaign.image_url,
            )
            outcomes = await self._gateway.send_multicast(message, tokens)
        except Exception:
            # Nothing was pushed yet
            await self._release_quietly(campaign.id)
            raise

        if len(outcomes) != len(tokens):
            logger.warning(
                f"Campaign {campaign.id}: gateway returned {len(outcomes)} outcomes for {len(tokens)} tokens"
            )

        now = self._clock()
        records = []
        reasons: Counter = Counter()
        succeeded = 0
        for index, token in enumerate(tokens):
            outcome = outcomes[index] if index < len(outcomes) else None
            if outcome is not None and outcome.success:
                succeeded += 1
                records.append(self._record(campaign.id, token, DeliveryStatus.SUCCESS, None, now))
            else:
                reason = (outcome.error_code if outcome else None) or UNKNOWN_ERROR_CODE
                reasons[reason] += 1
                records.append(self._record(campaign.id, token, DeliveryStatus.FAILED, reason, now))

        failed = len(tokens) - succeeded
        failures_by_reason = dict(reasons)

        # Counters are written even if the ledger write fails; the pushes are already out
        ledger_error = None
        try:
            await self._ledger.batch_insert(records)
        except Exception as e:
            ledger_error = str(e)
            logger.error(f"Campaign {campaign.id}: ledger write of {len(records)} records failed: {e}")

        try:
            await self._campaigns.update(
                campaign.id,
                fields={"status": CampaignStatus.COMPLETED.value},
                increments={
                    "sent_count": len(tokens),
                    "success_count": succeeded,
                    "failed_count": failed,
                },
                merge_reasons=failures_by_reason,
            )
        except Exception as e:
            logger.error(f"Campaign {campaign.id}: pushed but counter update failed: {e}")
            await self._park_failed(campaign.id)
            return CampaignResult(
                campaign_id=campaign.id,
                outcome=CampaignOutcome.FAILED,
                sent=len(tokens),
                succeeded=succeeded,
                failed=failed,
                failures_by_reason=failures_by_reason,
                error=str(e),
                ledger_error=ledger_error,
            )

        logger.info(
            f"Campaign {campaign.id} completed: {succeeded} success, {failed} failed "
            f"of {len(tokens)} devices"
        )
        return CampaignResult(
            campaign_id=campaign.id,
            outcome=CampaignOutcome.SUCCESS,
            sent=len(tokens),
            succeeded=succeeded,
            failed=failed,
            failures_by_reason=failures_by_reason,
            ledger_error=ledger_error,
        )

    @staticmethod
    def _record(campaign_id, token, status: DeliveryStatus, error_code, now) -> DeliveryRecord:
        return DeliveryRecord(
            campaign_id=campaign_id,
            device_token=token,
            status=status.value,
            error_code=error_code,
            created_at=now,
        )

    async def _release_quietly(self, campaign_id: str):
        try:
            await self._campaigns.release(campaign_id)
        except DispatcherError as e:
            logger.error(f"Campaign {campaign_id}: could not release claim: {e}")

    async def _park_failed(self, campaign_id: str):
        """Mark a pushed campaign failed so it is never selected again."""
        try:
            await self._campaigns.update(campaign_id, fields={"status": CampaignStatus.FAILED.value})
        except DispatcherError as e:
            logger.error(f"Campaign {campaign_id}: could not mark failed, left processing until the claim goes stale: {e}")
