"""
Notification templates for finished intake calls.

One subject and body per scenario, sent as plain text and HTML. Urgent calls
get an [URGENT] prefix.
"""

from dataclasses import dataclass
from html import escape
from typing import Optional

from pydantic import BaseModel, Field

from ..intake.schema import NotificationScenario


class NotificationData(BaseModel):
    """Facts about a finished call that the templates can show."""

    vapi_call_id: str
    property_address: Optional[str] = None
    homeowner_name: Optional[str] = Field(None, description="Name the caller gave")
    phone_number: Optional[str] = None
    issue_description: Optional[str] = None
    call_intent: Optional[str] = None
    is_urgent: bool = False
    is_verified: bool = False
    matched_homeowner_id: Optional[str] = None
    matched_homeowner_name: Optional[str] = None
    claim_number: Optional[str] = None
    claim_id: Optional[str] = None
    similarity: Optional[float] = None


@dataclass
class RenderedNotification:
    """Subject, plain-text body and HTML body ready for the transport."""
    subject: str
    body: str
    html: str = ""


HEADER_TITLES = {
    NotificationScenario.CLAIM_CREATED: "New Warranty Claim Created",
    NotificationScenario.MATCH_NO_CLAIM: "Homeowner Call Received",
    NotificationScenario.NO_MATCH: "Unknown Caller - Manual Review Required",
}


def build_subject(scenario: NotificationScenario, data: NotificationData) -> str:
    """Scenario subject line, with the urgency prefix when flagged."""
    if scenario == NotificationScenario.CLAIM_CREATED:
        subject = f"New Warranty Claim: {data.property_address or 'Unknown Address'}"
    elif scenario == NotificationScenario.MATCH_NO_CLAIM:
        subject = f"Homeowner Call: {data.property_address or 'Unknown Address'}"
    else:
        subject = f"Unknown Caller: {data.phone_number or 'No Phone'}"

    if data.is_urgent:
        subject = f"[URGENT] {subject}"
    return subject


def _links(scenario: NotificationScenario, data: NotificationData, app_url: str) -> tuple[str, str, str]:
    base = app_url.rstrip("/")
    calls_link = f"{base}#ai-intake"
    if scenario == NotificationScenario.CLAIM_CREATED and data.claim_id:
        return "View Claim", f"{base}#claims?claimId={data.claim_id}", calls_link
    if scenario != NotificationScenario.NO_MATCH and data.matched_homeowner_id:
        return "View Homeowner", f"{base}#dashboard?homeownerId={data.matched_homeowner_id}", calls_link
    return "Review Call", calls_link, calls_link


def build_body(scenario: NotificationScenario, data: NotificationData, app_url: str) -> str:
    """Plain-text body for the scenario."""
    display_name = data.matched_homeowner_name or data.homeowner_name

    if scenario == NotificationScenario.CLAIM_CREATED:
        description = (
            f"A warranty claim has been automatically created for "
            f"{display_name or 'this homeowner'}."
        )
    elif scenario == NotificationScenario.MATCH_NO_CLAIM:
        description = f"{display_name or 'A homeowner'} called."
    else:
        description = "A caller could not be matched to a homeowner in the database."

    lines = [HEADER_TITLES[scenario], "", description, "", "CALL INFORMATION"]

    if scenario == NotificationScenario.NO_MATCH:
        lines.append(f"Phone Number: {data.phone_number or 'Not provided'}")
        lines.append(f"Property Address: {data.property_address or 'Not provided'}")
        lines.append(f"Caller Name: {data.homeowner_name or 'Not provided'}")
    else:
        lines.append(f"Property Address: {data.property_address or 'Not provided'}")
        lines.append(f"Homeowner: {display_name or 'Not provided'}")
        lines.append(f"Phone: {data.phone_number or 'Not provided'}")
        if data.similarity is not None:
            lines.append(f"Address Match: {data.similarity:.0%}")

    lines.append(f"Urgency: {'URGENT' if data.is_urgent else 'Normal'}")

    if scenario == NotificationScenario.CLAIM_CREATED and data.claim_number:
        lines.append(f"Claim Number: #{data.claim_number}")

    if data.issue_description:
        lines.extend(["", "ISSUE DESCRIPTION", data.issue_description])

    label, primary_link, calls_link = _links(scenario, data, app_url)
    lines.extend(["", "LINKS", f"{label}: {primary_link}", f"View All Calls: {calls_link}"])

    return "\n".join(lines)


def build_html(body: str) -> str:
    """HTML version of the plain-text body, with section headings and clickable links."""
    title, *rest = body.split("\n")
    parts = [f"<h2>{escape(title)}</h2>"]
    for line in rest:
        if not line:
            continue
        if line.isupper():
            parts.append(f"<h3>{escape(line)}</h3>")
            continue
        label, sep, value = line.partition(": ")
        if sep and value.startswith(("http://", "https://")):
            parts.append(f'<p><a href="{escape(value)}">{escape(label)}</a></p>')
        elif sep:
            parts.append(f"<p><strong>{escape(label)}:</strong> {escape(value)}</p>")
        else:
            parts.append(f"<p>{escape(line)}</p>")
    return "<html><body>\n" + "\n".join(parts) + "\n</body></html>"


def render_notification(
    scenario: NotificationScenario,
    data: NotificationData,
    app_url: str,
) -> RenderedNotification:
    """Render subject and bodies for a scenario."""
    body = build_body(scenario, data, app_url)
    return RenderedNotification(
        subject=build_subject(scenario, data),
        body=body,
        html=build_html(body),
    )
