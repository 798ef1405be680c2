#!/usr/bin/env python3
"""
Send sample Vapi webhook payloads to a running intake server.

Usage:
    python scripts/send_test_webhook.py                       # all scenarios
    python scripts/send_test_webhook.py --scenario legacy     # one scenario
    python scripts/send_test_webhook.py --url http://host:8000/vapi/webhook

The secret is read from VAPI_SECRET (.env is loaded).
"""

import argparse
import json
import os
import sys
import time

import httpx
from dotenv import load_dotenv

load_dotenv()

DEFAULT_URL = os.getenv("VAPI_WEBHOOK_TEST_URL", "http://localhost:8000/vapi/webhook")


def _call_id(label: str) -> str:
    return f"test-call-{label}-{int(time.time() * 1000)}"


def structured_outputs_payload() -> dict:
    """Urgent warranty call in the artifact.structuredOutputs format."""
    return {
        "message": {
            "type": "end-of-call-report",
            "call": {
                "id": _call_id("structured"),
                "transcript": (
                    "The homeowner at 123 Test Lane in Builder City called about a leaking "
                    "faucet in the master bathroom. This is an urgent issue."
                ),
                "recordingUrl": "https://example.com/test-recording.mp3",
                "artifact": {
                    "structuredOutputs": {
                        "propertyAddress": "123 Test Lane, Builder City, WA 98101",
                        "homeownerName": "Test User",
                        "phoneNumber": "+15550009999",
                        "issueDescription": (
                            "TEST: Master bathroom faucet is leaking. Water is pooling "
                            "on the floor. Started yesterday."
                        ),
                        "isUrgent": True,
                    }
                },
            },
        }
    }


def non_urgent_payload() -> dict:
    """Cosmetic issue, not urgent."""
    return {
        "message": {
            "type": "end-of-call-report",
            "call": {
                "id": _call_id("non-urgent"),
                "transcript": "Homeowner called about kitchen cabinet door alignment. Not urgent.",
                "recordingUrl": "https://example.com/test-recording-2.mp3",
                "artifact": {
                    "structuredOutputs": {
                        "propertyAddress": "456 Oak Avenue, Test City, OR 97001",
                        "homeownerName": "Jane Smith",
                        "phoneNumber": "503-555-0100",
                        "issueDescription": "Kitchen cabinet door slightly misaligned. Cosmetic issue only.",
                        "isUrgent": False,
                    }
                },
            },
        }
    }


def legacy_payload() -> dict:
    """Older analysis.structuredData location."""
    return {
        "message": {
            "type": "end-of-call-report",
            "call": {
                "id": _call_id("legacy"),
                "transcript": "Testing legacy format extraction.",
                "recordingUrl": "https://example.com/test-recording-3.mp3",
                "analysis": {
                    "structuredData": {
                        "propertyAddress": "789 Pine Street, Legacy Town, CA 90001",
                        "homeownerName": "Legacy User",
                        "phoneNumber": "555-0123",
                        "issueDescription": "Testing backward compatibility with old Vapi format.",
                        "isUrgent": False,
                    }
                },
            },
        }
    }


def missing_data_payload() -> dict:
    """Empty structured outputs; exercises the Vapi API fallback."""
    return {
        "message": {
            "type": "end-of-call-report",
            "call": {
                "id": _call_id("missing"),
                "transcript": (
                    "The homeowner at 999 Emergency Lane in Fallback City called about a "
                    "serious leak. This is John Doe and you can reach me at 206-555-9999."
                ),
                "recordingUrl": "https://example.com/test-recording-4.mp3",
                "customer": {"number": "+12065559999"},
                "artifact": {"structuredOutputs": {}},
            },
        }
    }


SCENARIOS = {
    "structured": ("Standard warranty call (structuredOutputs)", structured_outputs_payload),
    "non-urgent": ("Non-urgent call", non_urgent_payload),
    "legacy": ("Legacy analysis.structuredData format", legacy_payload),
    "missing": ("Missing data (API fallback)", missing_data_payload),
}


def send(url: str, secret: str, name: str, payload: dict) -> bool:
    """POST one payload and print the response."""
    print(f"\n{'=' * 70}")
    print(f"TEST: {name}")
    print(f"{'=' * 70}")
    print(json.dumps(payload, indent=2))

    try:
        response = httpx.post(
            url,
            json=payload,
            headers={"x-vapi-secret": secret},
            timeout=30.0,
        )
    except httpx.RequestError as e:
        print(f"❌ Request failed: {e}")
        return False

    try:
        body = response.json()
    except ValueError:
        body = response.text

    print(f"\nResponse: {response.status_code} {body}")
    ok = response.is_success
    print("✅ PASSED" if ok else "❌ FAILED")
    return ok


def main():
    parser = argparse.ArgumentParser(description="Send sample Vapi webhooks")
    parser.add_argument("--url", default=DEFAULT_URL, help="Webhook URL")
    parser.add_argument(
        "--scenario",
        choices=sorted(SCENARIOS),
        help="Send one scenario only (default: all)",
    )
    args = parser.parse_args()

    secret = os.getenv("VAPI_SECRET", "")
    if not secret:
        print("VAPI_SECRET is not set; the server will answer 401.")

    selected = [args.scenario] if args.scenario else list(SCENARIOS)
    results = []
    for key in selected:
        name, build = SCENARIOS[key]
        results.append(send(args.url, secret, name, build()))
        time.sleep(1)

    passed = sum(results)
    print(f"\n{passed}/{len(results)} scenarios accepted")
    sys.exit(0 if passed == len(results) else 1)


if __name__ == "__main__":
    main()
