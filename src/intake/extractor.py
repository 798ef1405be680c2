"""
Call-data extraction from Vapi webhook payloads.

Vapi moves structured data around between webhook event types and API
versions (``analysis.structuredData``, ``artifact.structuredOutputs``, on the
message, on the call, or on the payload root). Every logical field therefore
has an ordered list of accessors; the first non-empty value wins.

When required fields are still missing, the call is fetched once from the
Vapi call-detail API and any newly available fields are merged in.
"""

import asyncio
import hmac
import json
import logging
from typing import Any, Callable, Iterable, Optional

from .errors import InvalidPayloadError, VendorAPIError, WebhookAuthError
from .schema import CallIntent, ExtractedCall
from .vendor_client import VapiClient

logger = logging.getLogger(__name__)


Accessor = Callable[[dict], Any]

# Description length above which a missing intent defaults to a new claim
SUBSTANTIVE_DESCRIPTION_LENGTH = 20

FINAL_EVENT_TYPES = ("end-of-call-report", "function-call")

PLACEHOLDER_VALUES = {"", "not provided", "n/a", "none", "null", "unknown"}

INTENT_ALIASES = {
    "new_claim": CallIntent.NEW_CLAIM,
    "new_issue": CallIntent.NEW_CLAIM,
    "warranty_issue": CallIntent.NEW_CLAIM,
    "warranty": CallIntent.NEW_CLAIM,
    "claim": CallIntent.NEW_CLAIM,
    "emergency": CallIntent.EMERGENCY,
    "urgent": CallIntent.EMERGENCY,
    "question": CallIntent.QUESTION,
    "general_question": CallIntent.QUESTION,
    "follow_up": CallIntent.FOLLOW_UP,
    "followup": CallIntent.FOLLOW_UP,
    "status_update": CallIntent.FOLLOW_UP,
    "other": CallIntent.OTHER,
}

URGENT_INTENTS = {"urgent", "emergency"}


# =============================================================================
# Payload Access Helpers
# =============================================================================


def _get_nested(data: Any, path: str, default=None):
    """Get a nested value using dot notation."""
    current = data
    for key in path.split("."):
        if isinstance(current, dict):
            current = current.get(key)
        else:
            return default
        if current is None:
            return default
    return current


def _clean(value: Any) -> Optional[str]:
    """Return a stripped string, or None for empty and placeholder values."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        value = str(value)
    if not isinstance(value, str):
        return None
    value = value.strip()
    if value.lower() in PLACEHOLDER_VALUES:
        return None
    return value


def _is_truthy_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "y", "1")
    return False


# Ordered locations of structured-data blocks
STRUCTURED_DATA_PATHS = (
    "message.analysis.structuredData",
    "message.artifact.structuredOutputs",
    "message.structuredData",
    "message.call.analysis.structuredData",
    "message.call.artifact.structuredOutputs",
    "message.call.artifact.structuredData",
    "call.analysis.structuredData",
    "call.artifact.structuredOutputs",
    "call.artifact.structuredData",
    "analysis.structuredData",
    "artifact.structuredOutputs",
    "artifact.structuredData",
)


def _flatten_block(block: dict) -> dict:
    """
    Flatten a structured-outputs block.

    Newer Vapi payloads key structured outputs by output id:
    ``{"<id>": {"name": "...", "result": {...}}}``. The results are merged
    so fields can be probed by name either way.
    """
    flat = {}
    for key, value in block.items():
        if isinstance(value, dict) and isinstance(value.get("result"), dict):
            for inner_key, inner_value in value["result"].items():
                flat.setdefault(inner_key, inner_value)
        else:
            flat.setdefault(key, value)
    return flat


def iter_structured_blocks(payload: dict) -> Iterable[dict]:
    """Yield every non-empty structured-data block in priority order."""
    for path in STRUCTURED_DATA_PATHS:
        block = _get_nested(payload, path)
        if isinstance(block, dict) and block:
            yield _flatten_block(block)


def _structured(*keys: str) -> Accessor:
    """Accessor that probes every structured block for any of the given keys."""
    def accessor(payload: dict) -> Optional[str]:
        for block in iter_structured_blocks(payload):
            for key in keys:
                value = _clean(block.get(key))
                if value:
                    return value
        return None
    return accessor


def _path(path: str) -> Accessor:
    """Accessor for one dotted path."""
    def accessor(payload: dict) -> Optional[str]:
        return _clean(_get_nested(payload, path))
    return accessor


# Per-field accessor lists, highest priority first
FIELD_ACCESSORS: dict[str, list[Accessor]] = {
    "vapi_call_id": [
        _path("message.call.id"),
        _path("message.call.callId"),
        _path("call.id"),
        _path("call.callId"),
        _path("message.id"),
        _path("message.callId"),
        _path("id"),
        _path("callId"),
    ],
    "message_type": [
        _path("message.type"),
        _path("type"),
    ],
    "property_address": [
        _structured("propertyAddress", "property_address", "address"),
        _path("message.call.propertyAddress"),
        _path("message.call.address"),
        _path("call.propertyAddress"),
        _path("call.address"),
        _path("propertyAddress"),
    ],
    "homeowner_name": [
        _structured("homeownerName", "homeowner_name", "callerName", "name"),
        _path("message.call.homeownerName"),
        _path("call.homeownerName"),
    ],
    "phone_number": [
        _structured("phoneNumber", "phone_number", "callbackNumber"),
    ],
    "issue_description": [
        _structured("issueDescription", "issue_description", "description", "issue"),
    ],
    "call_intent": [
        _structured("callIntent", "call_intent", "intent"),
    ],
    "transcript": [
        _path("message.call.transcript"),
        _path("message.call.transcription"),
        _path("call.transcript"),
        _path("call.transcription"),
        _path("message.transcript"),
        _path("message.artifact.transcript"),
        _path("artifact.transcript"),
        _path("transcript"),
    ],
    "recording_url": [
        _path("message.call.recordingUrl"),
        _path("message.call.recording_url"),
        _path("call.recordingUrl"),
        _path("call.recording_url"),
        _path("message.recordingUrl"),
        _path("message.artifact.recordingUrl"),
        _path("artifact.recordingUrl"),
        _path("recordingUrl"),
    ],
}

# Caller ID, used when no explicit phone number was extracted
CALLER_ID_ACCESSORS: list[Accessor] = [
    _path("message.call.customer.number"),
    _path("call.customer.number"),
    _path("message.customer.number"),
    _path("customer.number"),
    _path("message.call.phoneNumber"),
    _path("call.phoneNumber"),
    _path("message.call.from"),
    _path("call.from"),
]


def first_value(payload: dict, accessors: Iterable[Accessor]) -> Optional[str]:
    """Run accessors in order and return the first non-empty result."""
    for accessor in accessors:
        value = accessor(payload)
        if value:
            return value
    return None


def _extract_urgency(payload: dict) -> bool:
    for block in iter_structured_blocks(payload):
        for key in ("isUrgent", "is_urgent", "urgent"):
            if _is_truthy_flag(block.get(key)):
                return True
    return False


# =============================================================================
# Normalization
# =============================================================================


def normalize_intent(raw: Optional[str]) -> Optional[CallIntent]:
    """Map a raw intent string onto CallIntent; unknown values become OTHER."""
    if not raw:
        return None
    key = raw.strip().lower().replace("-", "_").replace(" ", "_")
    return INTENT_ALIASES.get(key, CallIntent.OTHER)


def extract_fields(payload: dict) -> dict[str, Any]:
    """
    Raw field values found in the payload, before any defaulting.

    Keys match ExtractedCall field names; ``is_urgent`` is always a bool.
    """
    fields: dict[str, Any] = {
        name: first_value(payload, accessors)
        for name, accessors in FIELD_ACCESSORS.items()
    }
    fields["is_urgent"] = _extract_urgency(payload)
    return fields


def build_extracted_call(fields: dict[str, Any], payload: dict) -> ExtractedCall:
    """Apply caller-ID and intent defaulting and build the ExtractedCall."""
    phone_number = fields.get("phone_number")
    if not phone_number:
        phone_number = first_value(payload, CALLER_ID_ACCESSORS)
        if phone_number:
            logger.info(f"Using caller ID as phone number: {mask_phone(phone_number)}")

    raw_intent = fields.get("call_intent")
    call_intent = normalize_intent(raw_intent)
    intent_was_inferred = False
    if call_intent is None:
        description = fields.get("issue_description") or ""
        if len(description) > SUBSTANTIVE_DESCRIPTION_LENGTH:
            logger.info("Defaulting call intent to new_claim (substantive issue description)")
            call_intent = CallIntent.NEW_CLAIM
        else:
            call_intent = CallIntent.OTHER
        intent_was_inferred = True

    is_urgent = bool(fields.get("is_urgent")) or (
        raw_intent is not None and raw_intent.strip().lower() in URGENT_INTENTS
    )

    return ExtractedCall(
        vapi_call_id=fields.get("vapi_call_id"),
        message_type=fields.get("message_type"),
        property_address=fields.get("property_address"),
        homeowner_name=fields.get("homeowner_name"),
        phone_number=phone_number,
        issue_description=fields.get("issue_description"),
        call_intent=call_intent,
        intent_was_inferred=intent_was_inferred,
        is_urgent=is_urgent,
        transcript=fields.get("transcript"),
        recording_url=fields.get("recording_url"),
    )


def extract_call_data(payload: dict) -> ExtractedCall:
    """Extract call data from the payload alone (no API fallback)."""
    return build_extracted_call(extract_fields(payload), payload)


def merge_missing(local: dict[str, Any], remote: dict[str, Any]) -> list[str]:
    """
    Fill empty local fields from remote values, in place.

    Returns:
        Names of the fields that were filled
    """
    filled = []
    for name, value in remote.items():
        if name in ("vapi_call_id", "message_type"):
            continue
        if name == "is_urgent":
            if value and not local.get("is_urgent"):
                local["is_urgent"] = True
                filled.append(name)
            continue
        if value and not local.get(name):
            local[name] = value
            filled.append(name)
    return filled


# =============================================================================
# Extractor With API Fallback
# =============================================================================


class CallDataExtractor:
    """
    Extracts call facts from a webhook payload, with one Vapi API fallback.

    Never raises: fallback failures are logged and the locally extracted
    data is returned.
    """

    def __init__(
        self,
        vapi_client: Optional[VapiClient] = None,
        fallback_delay_seconds: float = 2.0,
    ):
        """
        Initialize the extractor.

        Args:
            vapi_client: Client for the call-detail API. None disables the fallback.
            fallback_delay_seconds: Wait before the API lookup so Vapi can
                finish its own analysis
        """
        self.vapi_client = vapi_client
        self.fallback_delay_seconds = fallback_delay_seconds

    async def extract(
        self,
        payload: dict,
        required_fields: tuple[str, ...] | list[str] = ("property_address",),
    ) -> ExtractedCall:
        """
        Extract call data, fetching the call from Vapi if required fields are missing.

        Args:
            payload: Parsed webhook body
            required_fields: ExtractedCall field names that trigger the fallback

        Returns:
            ExtractedCall (vapi_call_id may be None; the caller decides what to do)
        """
        fields = extract_fields(payload)
        missing = [name for name in required_fields if not fields.get(name)]
        call_id = fields.get("vapi_call_id")

        if missing and call_id and self.vapi_client is not None:
            logger.info(f"Missing fields {missing} for call {call_id}, attempting API fallback")
            await self._merge_from_api(call_id, fields)

        return build_extracted_call(fields, payload)

    async def _merge_from_api(self, call_id: str, fields: dict[str, Any]) -> None:
        try:
            if self.fallback_delay_seconds > 0:
                await asyncio.sleep(self.fallback_delay_seconds)
            api_call = await self.vapi_client.fetch_call(call_id)
        except VendorAPIError as e:
            logger.error(f"API fallback failed for call {call_id}: {e}")
            return
        except Exception:
            logger.exception(f"Unexpected error during API fallback for call {call_id}")
            return

        filled = merge_missing(fields, extract_fields(api_call))
        if filled:
            logger.info(f"Filled {filled} from Vapi API for call {call_id}")
        else:
            logger.info(f"Vapi API had no additional data for call {call_id}")


# =============================================================================
# Validation & Finality
# =============================================================================


def verify_vapi_secret(header_secret: Optional[str], expected_secret: Optional[str]) -> bool:
    """Compare the webhook secret header with the configured secret."""
    if not expected_secret:
        logger.error("Vapi secret not configured, rejecting webhook")
        return False
    if not header_secret:
        logger.warning("No Vapi secret in headers")
        return False
    if not hmac.compare_digest(header_secret.encode(), expected_secret.encode()):
        logger.warning("Invalid Vapi secret")
        return False
    return True


def require_vapi_secret(header_secret: Optional[str], expected_secret: Optional[str]) -> None:
    """
    Raises:
        WebhookAuthError: if the header does not carry the configured secret
    """
    if not verify_vapi_secret(header_secret, expected_secret):
        raise WebhookAuthError("Unauthorized")


def parse_webhook_body(raw_body: bytes) -> dict:
    """
    Decode a webhook body.

    Raises:
        InvalidPayloadError: if the body is not valid JSON or not a JSON object
    """
    try:
        payload = json.loads(raw_body)
    except (ValueError, UnicodeDecodeError) as e:
        raise InvalidPayloadError(f"Invalid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise InvalidPayloadError(f"Expected a JSON object, got {type(payload).__name__}")
    return payload


def is_final_event(call: ExtractedCall) -> bool:
    """
    Whether this delivery is the call's terminal event.

    Final if Vapi says so (end-of-call report or function call), or if the
    delivery already carries structured data.
    """
    return call.message_type in FINAL_EVENT_TYPES or call.has_structured_data()


# =============================================================================
# Logging Helpers
# =============================================================================


def mask_phone(phone: Optional[str]) -> Optional[str]:
    """Keep only the last four digits of a phone number."""
    if not phone:
        return None
    return "***" + phone[-4:]


def log_call_data(call: ExtractedCall) -> None:
    """Log a redacted summary of extracted call data."""
    logger.info(
        "Extracted call data: "
        f"call_id={call.vapi_call_id}, "
        f"type={call.message_type or 'n/a'}, "
        f"address={call.property_address or 'MISSING'}, "
        f"name={call.homeowner_name or 'not provided'}, "
        f"phone={mask_phone(call.phone_number) or 'not provided'}, "
        f"intent={call.call_intent.value if call.call_intent else 'n/a'}"
        f"{' (inferred)' if call.intent_was_inferred else ''}, "
        f"urgent={call.is_urgent}"
    )
