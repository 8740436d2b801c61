class IngestError(Exception):
    """Base class for failures inside the webhook pipeline."""

class CustomerLookupError(IngestError):
    """A provider customer record could not be fetched."""

class MessagingError(IngestError):
    """The review-request job could not be handed to the SMS queue."""
