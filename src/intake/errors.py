"""Exceptions raised by the voice-call intake pipeline."""


class IntakeError(Exception):
    """Base class for intake pipeline errors."""


class WebhookAuthError(IntakeError):
    """Webhook request did not carry the expected shared secret."""


class InvalidPayloadError(IntakeError):
    """Webhook body is not a JSON object."""


class MissingCallIdError(IntakeError):
    """No call identifier could be found in the payload."""


class VendorAPIError(IntakeError):
    """The Vapi call-detail API could not be reached or returned an error."""


class StoreError(IntakeError):
    """A database read or write failed."""
