"""
Voice-call intake workflow.

Runs for every Vapi webhook delivery:
- Extraction (with Vapi API fallback)
- Homeowner matching by fuzzy address
- Call record upsert
- Conditional warranty-claim creation (guarded against duplicates)
- Scenario selection and one notification per finished call

Re-deliveries of a call reuse the claim it already created, and a notification
recorded on the call row is never sent again.

Every step after extraction is best effort: failures are logged, recorded
on the result, and the next step runs with whatever data is available.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

from ..intake.errors import MissingCallIdError, StoreError
from ..intake.extractor import CallDataExtractor, is_final_event, log_call_data
from ..intake.matching import find_matching_homeowner
from ..intake.schema import (
    CallIntent,
    CallRecord,
    Claim,
    ExtractedCall,
    MatchResult,
    NotificationScenario,
)
from ..intake.vendor_client import VapiClient
from ..notifications import Notifier, NotificationData, SendResult, create_transport
from ..storage.intake_store import IntakeStore
from ..utils.config import IntakeConfig

logger = logging.getLogger(__name__)


# Intents that describe a genuine new warranty issue
CLAIM_INTENTS = frozenset({CallIntent.NEW_CLAIM, CallIntent.EMERGENCY})


# =============================================================================
# Result
# =============================================================================


@dataclass
class IntakeResult:
    """Outcome of processing one webhook delivery."""
    vapi_call_id: str = ""

    # Matching
    matched_homeowner_id: Optional[str] = None
    matched_homeowner_name: Optional[str] = None
    similarity: Optional[float] = None

    # Persistence
    call_saved: bool = False

    # Claim
    claim_created: bool = False
    claim_id: Optional[str] = None
    claim_number: Optional[str] = None
    claim_reused: bool = False
    claim_skip_reason: Optional[str] = None

    # Notification
    scenario: NotificationScenario = NotificationScenario.NO_MATCH
    is_final: bool = False
    notified: bool = False
    already_notified: bool = False
    notification: Optional[SendResult] = None

    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "vapi_call_id": self.vapi_call_id,
            "matched_homeowner_id": self.matched_homeowner_id,
            "matched_homeowner_name": self.matched_homeowner_name,
            "similarity": self.similarity,
            "call_saved": self.call_saved,
            "claim_created": self.claim_created,
            "claim_id": self.claim_id,
            "claim_number": self.claim_number,
            "claim_reused": self.claim_reused,
            "claim_skip_reason": self.claim_skip_reason,
            "scenario": self.scenario.value,
            "is_final": self.is_final,
            "notified": self.notified,
            "already_notified": self.already_notified,
            "notification": self.notification.to_dict() if self.notification else None,
            "errors": self.errors,
        }


# =============================================================================
# Decision Helpers
# =============================================================================


def has_recent_open_claim(
    store: IntakeStore,
    homeowner_id: str,
    lookback_hours: int = 24,
    now: Optional[datetime] = None,
) -> bool:
    """
    Whether the homeowner has an open claim submitted within the lookback window.

    Gates auto-creation only; manual claim creation is not affected.
    """
    since = (now or datetime.now(timezone.utc)) - timedelta(hours=lookback_hours)
    return store.has_open_claim_since(homeowner_id, since)


def intent_requests_claim(intent: Optional[CallIntent]) -> bool:
    """Whether the call intent describes a new warranty issue."""
    return intent in CLAIM_INTENTS


def select_scenario(claim_created: bool, homeowner_matched: bool) -> NotificationScenario:
    """Pick exactly one notification scenario."""
    if claim_created:
        return NotificationScenario.CLAIM_CREATED
    if homeowner_matched:
        return NotificationScenario.MATCH_NO_CLAIM
    return NotificationScenario.NO_MATCH


def build_call_record(call: ExtractedCall, match: Optional[MatchResult]) -> CallRecord:
    """Call record carrying all extracted fields plus the match outcome."""
    return CallRecord(
        vapi_call_id=call.vapi_call_id,
        homeowner_id=match.homeowner.id if match else None,
        homeowner_name=call.homeowner_name,
        phone_number=call.phone_number,
        property_address=call.property_address,
        issue_description=call.issue_description,
        call_intent=call.call_intent.value if call.call_intent else None,
        is_urgent=call.is_urgent,
        is_verified=match is not None,
        address_match_similarity=round(match.similarity, 3) if match else None,
        transcript=call.transcript,
        recording_url=call.recording_url,
    )


def build_notification_data(
    call: ExtractedCall,
    match: Optional[MatchResult],
    claim: Optional[Claim],
) -> NotificationData:
    """Facts handed to the notification templates."""
    return NotificationData(
        vapi_call_id=call.vapi_call_id,
        property_address=call.property_address,
        homeowner_name=call.homeowner_name,
        phone_number=call.phone_number,
        issue_description=call.issue_description,
        call_intent=call.call_intent.value if call.call_intent else None,
        is_urgent=call.is_urgent,
        is_verified=match is not None,
        matched_homeowner_id=match.homeowner.id if match else None,
        matched_homeowner_name=match.homeowner.name if match else None,
        claim_number=claim.claim_number if claim else None,
        claim_id=claim.id if claim else None,
        similarity=match.similarity if match else None,
    )


# =============================================================================
# Main API
# =============================================================================


class IntakeProcessor:
    """
    Process Vapi webhook deliveries into call records, claims and notifications.
    """

    def __init__(
        self,
        config: IntakeConfig,
        store: IntakeStore,
        extractor: Optional[CallDataExtractor] = None,
        notifier: Optional[Notifier] = None,
    ):
        """
        Initialize the processor.

        Args:
            config: Pipeline configuration
            store: Homeowner, claim and call storage
            extractor: Call-data extractor (built from config if None)
            notifier: Notifier (built from config if None)
        """
        self.config = config
        self.store = store
        self.extractor = extractor or CallDataExtractor(
            vapi_client=VapiClient(
                api_key=config.vapi_api_key,
                base_url=config.vapi_base_url,
                timeout=config.request_timeout_seconds,
            ),
            fallback_delay_seconds=config.fallback_delay_seconds,
        )
        self.notifier = notifier or Notifier(
            transport=create_transport(config.sendgrid_api_key, config.notification_from_email),
            recipients=config.notification_recipients,
            default_recipient=config.default_notification_email,
            app_url=config.app_url,
        )

    async def process_webhook(self, payload: dict) -> IntakeResult:
        """
        Run one webhook delivery through the full workflow.

        Args:
            payload: Parsed webhook body

        Returns:
            IntakeResult describing what happened

        Raises:
            MissingCallIdError: if no call id can be found in the payload
                (or through the API fallback)
        """
        # Step 1: Extract
        call = await self.extractor.extract(payload, self.config.required_fields)
        if not call.vapi_call_id:
            raise MissingCallIdError("Call ID required")

        result = IntakeResult(vapi_call_id=call.vapi_call_id)
        log_call_data(call)

        # Step 2: Match homeowner
        match = self._resolve_homeowner(call, result)

        # Step 3: Persist call record (always)
        self._save_call(call, match, result)

        # Step 4: Create claim if applicable
        claim = self._maybe_create_claim(call, match, result)

        # Step 5-6: Finality and scenario
        result.is_final = is_final_event(call)
        result.scenario = select_scenario(claim is not None, match is not None)

        # Step 7: Notify on the final delivery only, once per call
        if not result.is_final:
            logger.info(f"Call {call.vapi_call_id}: not a final event, skipping notification")
        elif self._already_notified(call.vapi_call_id):
            result.notified = True
            result.already_notified = True
            logger.info(f"Call {call.vapi_call_id}: notification already sent, skipping")
        else:
            await self._notify(call, match, claim, result)

        logger.info(
            f"Call {call.vapi_call_id} processed: scenario={result.scenario.value}, "
            f"claim_created={result.claim_created}, notified={result.notified}"
        )
        return result

    def _resolve_homeowner(self, call: ExtractedCall, result: IntakeResult) -> Optional[MatchResult]:
        if not call.property_address:
            logger.info(f"Call {call.vapi_call_id}: no property address for matching")
            return None

        try:
            homeowners = self.store.list_homeowners()
        except StoreError as e:
            logger.error(f"Could not load homeowners for matching: {e}")
            result.errors.append(f"homeowner lookup failed: {e}")
            return None

        match = find_matching_homeowner(call.property_address, homeowners, self.config.min_similarity)
        if match:
            result.matched_homeowner_id = match.homeowner.id
            result.matched_homeowner_name = match.homeowner.name
            result.similarity = match.similarity
            logger.info(
                f"Call {call.vapi_call_id}: matched homeowner {match.homeowner.id} "
                f"({match.similarity:.0%} similar)"
            )
        return match

    def _save_call(self, call: ExtractedCall, match: Optional[MatchResult], result: IntakeResult) -> None:
        try:
            self.store.upsert_call(build_call_record(call, match))
            result.call_saved = True
            logger.info(f"Call {call.vapi_call_id} saved to database")
        except StoreError as e:
            logger.error(f"Failed to save call {call.vapi_call_id}: {e}")
            result.errors.append(f"call save failed: {e}")

    def _maybe_create_claim(
        self,
        call: ExtractedCall,
        match: Optional[MatchResult],
        result: IntakeResult,
    ) -> Optional[Claim]:
        existing = self._claim_from_earlier_delivery(call, result)
        if existing is not None:
            return existing

        if match is None:
            result.claim_skip_reason = "no homeowner match"
            logger.info(f"Call {call.vapi_call_id}: skipping claim - no homeowner match")
            return None

        if not intent_requests_claim(call.call_intent):
            intent = call.call_intent.value if call.call_intent else "none"
            result.claim_skip_reason = f"intent '{intent}' does not request a claim"
            logger.info(f"Call {call.vapi_call_id}: skipping claim - intent is '{intent}'")
            return None

        try:
            if has_recent_open_claim(self.store, match.homeowner.id, self.config.duplicate_lookback_hours):
                result.claim_skip_reason = "recent open claim exists"
                logger.info(
                    f"Call {call.vapi_call_id}: duplicate claim detected for homeowner "
                    f"{match.homeowner.id}, skipping"
                )
                return None

            claim = self.store.create_claim_with_next_number(
                match.homeowner,
                call.issue_description,
                source_call_id=call.vapi_call_id,
            )
        except StoreError as e:
            logger.error(f"Claim creation failed for call {call.vapi_call_id}: {e}")
            result.errors.append(f"claim creation failed: {e}")
            result.claim_skip_reason = "claim creation failed"
            return None

        result.claim_created = True
        result.claim_id = claim.id
        result.claim_number = claim.claim_number
        return claim

    def _claim_from_earlier_delivery(self, call: ExtractedCall, result: IntakeResult) -> Optional[Claim]:
        """Claim a previous delivery of this same call already created."""
        try:
            claim = self.store.get_claim_by_source_call(call.vapi_call_id)
        except StoreError as e:
            logger.error(f"Could not look up existing claim for call {call.vapi_call_id}: {e}")
            result.errors.append(f"existing claim lookup failed: {e}")
            return None

        if claim is not None:
            result.claim_reused = True
            result.claim_id = claim.id
            result.claim_number = claim.claim_number
            logger.info(f"Call {call.vapi_call_id}: claim #{claim.claim_number} already created, reusing it")
        return claim

    def _already_notified(self, vapi_call_id: str) -> bool:
        try:
            record = self.store.get_call(vapi_call_id)
        except StoreError as e:
            logger.error(f"Could not read notification state for call {vapi_call_id}: {e}")
            return False
        return record is not None and record.notified_at is not None

    async def _notify(
        self,
        call: ExtractedCall,
        match: Optional[MatchResult],
        claim: Optional[Claim],
        result: IntakeResult,
    ) -> None:
        try:
            data = build_notification_data(call, match, claim)
            send_result = await self.notifier.notify(result.scenario, data)
        except Exception as e:
            logger.exception(f"Notification step failed for call {call.vapi_call_id}")
            send_result = SendResult(success=False, error=str(e))

        result.notification = send_result
        result.notified = send_result.success
        if not send_result.success:
            result.errors.append(f"notification failed: {send_result.error}")
            return

        try:
            self.store.mark_call_notified(call.vapi_call_id, result.scenario.value, send_result.message_id)
        except StoreError as e:
            logger.error(f"Could not record notification for call {call.vapi_call_id}: {e}")
            result.errors.append(f"notification record failed: {e}")
