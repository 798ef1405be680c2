"""Intake workflow module: orchestration of a Vapi webhook delivery."""

from .intake_workflow import (
    CLAIM_INTENTS,
    IntakeProcessor,
    IntakeResult,
    build_call_record,
    build_notification_data,
    has_recent_open_claim,
    intent_requests_claim,
    select_scenario,
)

__all__ = [
    "CLAIM_INTENTS",
    "IntakeProcessor",
    "IntakeResult",
    "build_call_record",
    "build_notification_data",
    "has_recent_open_claim",
    "intent_requests_claim",
    "select_scenario",
]
