#!/usr/bin/env python3
"""
View stored calls and auto-created claims from the intake database.

Usage:
    python view_calls.py                 # Calls summary + most recent call
    python view_calls.py <vapi_call_id>  # One call in detail
    python view_calls.py --verified      # Matched calls only
    python view_calls.py --unverified    # Unmatched calls only
    python view_calls.py --claims        # Auto-created claims
"""

import argparse
import os
import sys
from datetime import datetime
from typing import Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from src.intake.matching import get_match_quality_description
from src.intake.schema import CallRecord, Claim
from src.storage import IntakeStore

console = Console()


def format_datetime(dt: Optional[datetime]) -> str:
    """Format a datetime for display."""
    if not dt:
        return ""
    return dt.strftime("%Y-%m-%d %H:%M")


def truncate(text: Optional[str], max_len: int = 50) -> str:
    """Truncate text with ellipsis."""
    if not text:
        return ""
    if len(text) > max_len:
        return text[:max_len-3] + "..."
    return text


def make_calls_table(calls: list[CallRecord]) -> Table:
    """Summary table of call records."""
    table = Table(
        title="📞 Calls",
        box=box.ROUNDED,
        header_style="bold cyan",
        show_lines=True,
    )

    table.add_column("Call ID", style="bold")
    table.add_column("Created", style="dim")
    table.add_column("Verified")
    table.add_column("Match")
    table.add_column("Name")
    table.add_column("Phone")
    table.add_column("Address")
    table.add_column("Intent")
    table.add_column("Issue")
    table.add_column("Notified")

    for call in calls:
        verified = "[green]✅[/green]" if call.is_verified else "[red]❌[/red]"
        match = f"{call.address_match_similarity:.0%}" if call.address_match_similarity is not None else ""
        intent = call.call_intent or ""
        if call.is_urgent:
            intent = f"[bold red]{intent} (urgent)[/bold red]"
        table.add_row(
            truncate(call.vapi_call_id, 24),
            format_datetime(call.created_at),
            verified,
            match,
            truncate(call.homeowner_name, 20),
            call.phone_number or "",
            truncate(call.property_address, 35),
            intent,
            truncate(call.issue_description, 40),
            call.notification_scenario or "",
        )

    return table


def make_claims_table(claims: list[Claim]) -> Table:
    """Summary table of claims."""
    table = Table(
        title="📋 Claims",
        box=box.ROUNDED,
        header_style="bold cyan",
        show_lines=True,
    )

    table.add_column("#", style="bold")
    table.add_column("Submitted", style="dim")
    table.add_column("Status", style="bold")
    table.add_column("Homeowner")
    table.add_column("Address")
    table.add_column("Source Call")
    table.add_column("Description")

    for claim in claims:
        table.add_row(
            claim.claim_number,
            format_datetime(claim.date_submitted),
            claim.status.value,
            truncate(claim.homeowner_name, 20),
            truncate(claim.address, 35),
            truncate(claim.source_call_id, 24),
            truncate(claim.description, 50),
        )

    return table


def show_call_detail(call: CallRecord, store: IntakeStore):
    """Print a detailed view of one call."""
    console.print()
    console.print(Panel(f"[bold cyan]Call: {call.vapi_call_id}[/bold cyan]", expand=False))

    console.print("\n[bold]📌 Basic Info[/bold]")
    console.print(f"  Created: {format_datetime(call.created_at)}")
    console.print(f"  Updated: {format_datetime(call.updated_at)}")
    console.print(f"  Intent: {call.call_intent or '[dim]Not provided[/dim]'}")
    console.print(f"  Urgent: {'🚨 Yes' if call.is_urgent else 'No'}")

    console.print("\n[bold]👤 Caller[/bold]")
    console.print(f"  Name: {call.homeowner_name or '[dim]Not provided[/dim]'}")
    console.print(f"  Phone: {call.phone_number or '[dim]Not provided[/dim]'}")
    console.print(f"  Address: {call.property_address or '[dim]Not provided[/dim]'}")

    console.print("\n[bold]🏠 Homeowner Match[/bold]")
    if call.is_verified and call.homeowner_id:
        homeowner = store.get_homeowner(call.homeowner_id)
        similarity = call.address_match_similarity or 0.0
        console.print(f"  Homeowner: {homeowner.name if homeowner else call.homeowner_id}")
        if homeowner:
            console.print(f"  Stored Address: {homeowner.address}")
        console.print(f"  Similarity: {similarity:.0%} ({get_match_quality_description(similarity)})")

        claim = store.get_claim_by_source_call(call.vapi_call_id)
        if claim:
            console.print(f"  Claim Created: [bold]#{claim.claim_number}[/bold] ({claim.status.value})")
    else:
        console.print("  [yellow]No matching homeowner[/yellow]")

    console.print("\n[bold]📧 Notification[/bold]")
    if call.notified_at:
        console.print(f"  Sent: {format_datetime(call.notified_at)} ({call.notification_scenario})")
        if call.notification_message_id:
            console.print(f"  Message ID: {call.notification_message_id}")
    else:
        console.print("  [yellow]Not sent[/yellow]")

    if call.issue_description:
        console.print("\n[bold]🔧 Issue[/bold]")
        for line in call.issue_description.splitlines():
            console.print(f"  {line}")

    if call.transcript:
        console.print("\n[bold]💬 Transcript[/bold]")
        console.print(f"  {truncate(call.transcript, 600)}")

    if call.recording_url:
        console.print(f"\n[bold]🎧 Recording[/bold]: {call.recording_url}")


def main():
    parser = argparse.ArgumentParser(description="View intake calls and claims")
    parser.add_argument("call_id", nargs="?", help="Show one call in detail")
    parser.add_argument("--verified", action="store_true", help="Only matched calls")
    parser.add_argument("--unverified", action="store_true", help="Only unmatched calls")
    parser.add_argument("--claims", action="store_true", help="Show auto-created claims")
    parser.add_argument("--limit", type=int, default=50, help="Max rows")
    args = parser.parse_args()

    store = IntakeStore()
    console.print(f"\n[bold]Database:[/bold] {store.db_path.resolve()}\n")

    if args.call_id:
        call = store.get_call(args.call_id)
        if call is None:
            console.print(f"[red]Call not found: {args.call_id}[/red]")
            sys.exit(1)
        show_call_detail(call, store)
        return

    if args.claims:
        claims = store.list_claims(limit=args.limit)
        if not claims:
            console.print("[yellow]No claims in database yet.[/yellow]")
            return
        console.print(make_claims_table(claims))
        return

    verified = True if args.verified else False if args.unverified else None
    total = store.count_calls()
    console.print(f"[bold]Total calls:[/bold] {total}\n")

    calls = store.list_calls(verified=verified, limit=args.limit)
    if not calls:
        console.print("[yellow]No calls in database yet. Send a webhook to create one.[/yellow]")
        return

    console.print(make_calls_table(calls))

    console.print("\n" + "="*70)
    console.print("[bold]📄 Most Recent Call - Full Details:[/bold]")
    show_call_detail(calls[0], store)

    console.print("\n[dim]Options:[/dim]")
    console.print("[dim]  <call_id>     Show one call[/dim]")
    console.print("[dim]  --claims      Show auto-created claims[/dim]")
    console.print("[dim]  --verified    Only matched calls[/dim]")


if __name__ == "__main__":
    main()
