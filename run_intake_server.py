#!/usr/bin/env python3
"""
Run script for the Vapi intake webhook server.

Usage:
    python run_intake_server.py

Make sure to:
1. Copy .env.example to .env and set VAPI_SECRET (and SENDGRID_API_KEY to send email)
2. Seed homeowners: python scripts/seed_homeowners.py
3. Expose the server (e.g. ngrok http 8000)
4. Point the Vapi assistant's server URL at {public URL}/vapi/webhook
   with the same secret in the x-vapi-secret header
"""

import logging
import os
import sys

# Configure logging early, before any other imports that might use it
logging.getLogger("python_multipart").setLevel(logging.WARNING)
logging.getLogger("python_multipart.multipart").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def main():
    """Run the intake webhook server."""
    import uvicorn
    from src.utils.config import settings

    print("=" * 60)
    print("Cascade Voice Intake")
    print("=" * 60)
    print(f"Server: http://{settings.host}:{settings.port}")
    print(f"Database: {settings.database_path}")
    print(f"Vapi secret: {'configured' if settings.vapi_secret else 'MISSING'}")
    print(f"SendGrid: {'configured' if settings.sendgrid_api_key else 'not configured (log only)'}")
    print(f"Recipients: {', '.join(settings.recipient_list) or settings.default_notification_email}")
    print("=" * 60)
    print()
    print("Endpoints:")
    print(f"  - Health: http://{settings.host}:{settings.port}/health")
    print(f"  - Vapi Webhook: POST http://{settings.host}:{settings.port}/vapi/webhook")
    print(f"  - Calls: http://{settings.host}:{settings.port}/calls")
    print(f"  - Processed: http://{settings.host}:{settings.port}/processed")
    print()

    uvicorn.run(
        "src.webhook.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="info",
    )


if __name__ == "__main__":
    main()
