"""
Tests for call-data extraction from Vapi webhook payloads.

Covers path probing across payload formats, defaulting rules, the Vapi API
fallback (with a fake client), and webhook validation helpers.
"""

import asyncio

import pytest

from src.intake.errors import InvalidPayloadError, WebhookAuthError
from src.intake.extractor import (
    CallDataExtractor,
    extract_call_data,
    extract_fields,
    is_final_event,
    mask_phone,
    merge_missing,
    normalize_intent,
    parse_webhook_body,
    require_vapi_secret,
    verify_vapi_secret,
)
from src.intake.schema import CallIntent, ExtractedCall


LONG_DESCRIPTION = "Master bathroom faucet is leaking onto the floor."


# ============================================================================
# Path Probing
# ============================================================================


class TestPayloadFormats:

    def test_structured_outputs_format(self, make_payload):
        payload = make_payload(
            propertyAddress="123 Test Lane, Builder City, WA 98101",
            homeownerName="Test User",
            phoneNumber="+15550009999",
            issueDescription=LONG_DESCRIPTION,
            isUrgent=True,
        )
        call = extract_call_data(payload)

        assert call.vapi_call_id == "call-1"
        assert call.message_type == "end-of-call-report"
        assert call.property_address == "123 Test Lane, Builder City, WA 98101"
        assert call.homeowner_name == "Test User"
        assert call.phone_number == "+15550009999"
        assert call.issue_description == LONG_DESCRIPTION
        assert call.is_urgent is True
        assert call.transcript == "Caller reported a warranty issue."
        assert call.recording_url == "https://example.com/recording.mp3"

    def test_legacy_analysis_format(self):
        payload = {
            "message": {
                "type": "end-of-call-report",
                "call": {
                    "id": "call-legacy",
                    "analysis": {
                        "structuredData": {
                            "propertyAddress": "789 Pine Street",
                            "homeownerName": "Legacy User",
                            "isUrgent": False,
                        }
                    },
                },
            }
        }
        call = extract_call_data(payload)

        assert call.vapi_call_id == "call-legacy"
        assert call.property_address == "789 Pine Street"
        assert call.homeowner_name == "Legacy User"
        assert call.is_urgent is False

    def test_message_level_block_takes_priority(self, make_payload):
        payload = make_payload(propertyAddress="222 Call Level Rd")
        payload["message"]["analysis"] = {"structuredData": {"propertyAddress": "111 Message Level Rd"}}

        assert extract_call_data(payload).property_address == "111 Message Level Rd"

    def test_later_block_fills_missing_field(self, make_payload):
        payload = make_payload(propertyAddress="222 Call Level Rd")
        payload["message"]["analysis"] = {"structuredData": {"homeownerName": "Jane"}}

        call = extract_call_data(payload)
        assert call.homeowner_name == "Jane"
        assert call.property_address == "222 Call Level Rd"

    def test_id_keyed_structured_outputs(self):
        payload = {
            "message": {
                "type": "end-of-call-report",
                "call": {"id": "call-2"},
                "artifact": {
                    "structuredOutputs": {
                        "3f1c-output": {
                            "name": "warranty_intake",
                            "result": {
                                "propertyAddress": "456 Oak Ave",
                                "callIntent": "new_claim",
                            },
                        }
                    }
                },
            }
        }
        call = extract_call_data(payload)

        assert call.property_address == "456 Oak Ave"
        assert call.call_intent == CallIntent.NEW_CLAIM

    def test_root_level_call(self):
        payload = {
            "type": "status-update",
            "call": {"id": "call-root", "propertyAddress": "1 Root St"},
        }
        call = extract_call_data(payload)

        assert call.vapi_call_id == "call-root"
        assert call.message_type == "status-update"
        assert call.property_address == "1 Root St"

    def test_missing_call_id(self, make_payload):
        assert extract_call_data(make_payload(call_id=None)).vapi_call_id is None

    def test_placeholder_values_are_empty(self, make_payload):
        payload = make_payload(propertyAddress="Not provided", homeownerName="  ", phoneNumber="N/A")
        call = extract_call_data(payload)

        assert call.property_address is None
        assert call.homeowner_name is None
        assert call.phone_number is None

    def test_values_are_trimmed(self, make_payload):
        call = extract_call_data(make_payload(propertyAddress="  123 Main St  "))
        assert call.property_address == "123 Main St"

    def test_urgent_string_flag(self, make_payload):
        assert extract_call_data(make_payload(isUrgent="true")).is_urgent is True
        assert extract_call_data(make_payload(isUrgent="no")).is_urgent is False


# ============================================================================
# Defaulting Rules
# ============================================================================


class TestDefaulting:

    def test_caller_id_fallback(self, make_payload):
        call = extract_call_data(make_payload(customer_number="+12065559999"))
        assert call.phone_number == "+12065559999"

    def test_explicit_phone_beats_caller_id(self, make_payload):
        call = extract_call_data(make_payload(customer_number="+12065559999", phoneNumber="503-555-0100"))
        assert call.phone_number == "503-555-0100"

    @pytest.mark.parametrize("raw,expected", [
        ("new_claim", CallIntent.NEW_CLAIM),
        ("warranty_issue", CallIntent.NEW_CLAIM),
        ("new-issue", CallIntent.NEW_CLAIM),
        ("Emergency", CallIntent.EMERGENCY),
        ("urgent", CallIntent.EMERGENCY),
        ("question", CallIntent.QUESTION),
        ("follow-up", CallIntent.FOLLOW_UP),
        ("billing dispute", CallIntent.OTHER),
    ])
    def test_normalize_intent(self, raw, expected):
        assert normalize_intent(raw) == expected

    def test_normalize_missing_intent(self):
        assert normalize_intent(None) is None
        assert normalize_intent("") is None

    def test_explicit_intent_not_inferred(self, make_payload):
        call = extract_call_data(make_payload(callIntent="question", issueDescription=LONG_DESCRIPTION))
        assert call.call_intent == CallIntent.QUESTION
        assert call.intent_was_inferred is False

    def test_missing_intent_with_substantive_description(self, make_payload):
        call = extract_call_data(make_payload(issueDescription=LONG_DESCRIPTION))
        assert call.call_intent == CallIntent.NEW_CLAIM
        assert call.intent_was_inferred is True

    def test_missing_intent_with_short_description(self, make_payload):
        call = extract_call_data(make_payload(issueDescription="Door squeaks"))
        assert call.call_intent == CallIntent.OTHER
        assert call.intent_was_inferred is True

    def test_missing_intent_without_description(self, make_payload):
        call = extract_call_data(make_payload())
        assert call.call_intent == CallIntent.OTHER
        assert call.intent_was_inferred is True

    def test_emergency_intent_marks_urgent(self, make_payload):
        call = extract_call_data(make_payload(callIntent="emergency"))
        assert call.is_urgent is True


# ============================================================================
# API Fallback
# ============================================================================


class TestApiFallback:

    def test_fills_missing_required_field(self, make_payload, fake_vapi_client):
        client = fake_vapi_client(call={
            "id": "call-1",
            "analysis": {"structuredData": {
                "propertyAddress": "999 Fallback Ln",
                "homeownerName": "Remote Name",
            }},
        })
        extractor = CallDataExtractor(vapi_client=client, fallback_delay_seconds=0)

        call = asyncio.run(extractor.extract(make_payload(homeownerName="Local Name")))

        assert client.requested == ["call-1"]
        assert call.property_address == "999 Fallback Ln"
        # Local values are never overwritten
        assert call.homeowner_name == "Local Name"

    def test_not_called_when_required_fields_present(self, make_payload, vapi_client):
        extractor = CallDataExtractor(vapi_client=vapi_client, fallback_delay_seconds=0)
        call = asyncio.run(extractor.extract(make_payload(propertyAddress="123 Main St")))

        assert vapi_client.requested == []
        assert call.property_address == "123 Main St"

    def test_not_called_without_call_id(self, make_payload, vapi_client):
        extractor = CallDataExtractor(vapi_client=vapi_client, fallback_delay_seconds=0)
        call = asyncio.run(extractor.extract(make_payload(call_id=None)))

        assert vapi_client.requested == []
        assert call.vapi_call_id is None

    def test_vendor_failure_is_absorbed(self, make_payload, vendor_error):
        extractor = CallDataExtractor(vapi_client=vendor_error, fallback_delay_seconds=0)
        call = asyncio.run(extractor.extract(make_payload(homeownerName="Local Name")))

        assert vendor_error.requested == ["call-1"]
        assert call.property_address is None
        assert call.homeowner_name == "Local Name"

    def test_unexpected_failure_is_absorbed(self, make_payload, fake_vapi_client):
        client = fake_vapi_client(error=RuntimeError("boom"))
        extractor = CallDataExtractor(vapi_client=client, fallback_delay_seconds=0)
        call = asyncio.run(extractor.extract(make_payload()))

        assert call.vapi_call_id == "call-1"

    def test_no_client_disables_fallback(self, make_payload):
        extractor = CallDataExtractor(vapi_client=None)
        call = asyncio.run(extractor.extract(make_payload()))
        assert call.property_address is None

    def test_remote_intent_feeds_defaulting(self, make_payload, fake_vapi_client):
        client = fake_vapi_client(call={
            "analysis": {"structuredData": {"propertyAddress": "1 A St", "callIntent": "warranty_issue"}},
        })
        extractor = CallDataExtractor(vapi_client=client, fallback_delay_seconds=0)
        call = asyncio.run(extractor.extract(make_payload()))

        assert call.call_intent == CallIntent.NEW_CLAIM
        assert call.intent_was_inferred is False

    def test_merge_missing(self):
        local = {"vapi_call_id": "a", "property_address": None, "homeowner_name": "Local", "is_urgent": False}
        remote = {"vapi_call_id": "b", "property_address": "1 A St", "homeowner_name": "Remote", "is_urgent": True}

        filled = merge_missing(local, remote)

        assert sorted(filled) == ["is_urgent", "property_address"]
        assert local["vapi_call_id"] == "a"
        assert local["homeowner_name"] == "Local"
        assert local["property_address"] == "1 A St"
        assert local["is_urgent"] is True

    def test_extract_fields_keys(self, make_payload):
        fields = extract_fields(make_payload())
        assert "property_address" in fields
        assert fields["is_urgent"] is False


# ============================================================================
# Validation & Finality
# ============================================================================


class TestWebhookValidation:

    def test_verify_secret(self):
        assert verify_vapi_secret("s3cret", "s3cret") is True
        assert verify_vapi_secret("wrong", "s3cret") is False
        assert verify_vapi_secret(None, "s3cret") is False
        assert verify_vapi_secret("s3cret", None) is False
        assert verify_vapi_secret("", "") is False

    def test_require_secret_raises(self):
        require_vapi_secret("s3cret", "s3cret")
        with pytest.raises(WebhookAuthError):
            require_vapi_secret("wrong", "s3cret")

    def test_parse_webhook_body(self):
        assert parse_webhook_body(b'{"message": {}}') == {"message": {}}

    @pytest.mark.parametrize("body", [b"not json", b"[1, 2]", b'"text"', b"\xff\xfe"])
    def test_parse_webhook_body_rejects(self, body):
        with pytest.raises(InvalidPayloadError):
            parse_webhook_body(body)


class TestFinality:

    @pytest.mark.parametrize("message_type", ["end-of-call-report", "function-call"])
    def test_final_message_types(self, message_type):
        assert is_final_event(ExtractedCall(vapi_call_id="c", message_type=message_type))

    def test_status_update_without_data_is_not_final(self):
        call = ExtractedCall(
            vapi_call_id="c",
            message_type="status-update",
            call_intent=CallIntent.OTHER,
            intent_was_inferred=True,
        )
        assert not is_final_event(call)

    def test_status_update_with_address_is_final(self):
        call = ExtractedCall(vapi_call_id="c", message_type="status-update", property_address="1 A St")
        assert is_final_event(call)

    def test_status_update_with_explicit_intent_is_final(self):
        call = ExtractedCall(vapi_call_id="c", message_type="status-update", call_intent=CallIntent.QUESTION)
        assert is_final_event(call)


def test_mask_phone():
    assert mask_phone("+15550009999") == "***9999"
    assert mask_phone(None) is None
