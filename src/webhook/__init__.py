"""
Webhook module for Vapi voice intake.

The FastAPI application lives in ``src.webhook.app``; it receives Vapi server
messages and runs them through the intake workflow.
"""

from .app import main

__all__ = ["main"]
