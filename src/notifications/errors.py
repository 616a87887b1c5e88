from __future__ import annotations


class NotificationError(Exception):
    """Base class for failures raised by the push fan-out pipeline."""


class ConfigurationError(NotificationError):
    """Push provider or token store credentials are missing or unusable."""


class InvalidIntentError(NotificationError):
    """A notification request is missing required fields or has an unknown type."""


class MalformedRecordError(NotificationError):
    """A stored user document does not have the expected shape."""


class NoAudience(NotificationError):
    """The intent resolved to zero registration tokens.

    Not a failure: the pipeline turns it into a successful no-op summary.
    """


class BatchDispatchFailure(NotificationError):
    def __init__(self, batch_index: int, token_count: int, cause: Exception) -> None:
        super().__init__(f"Batch {batch_index} ({token_count} tokens) failed: {cause}")
        self.batch_index = batch_index
        self.token_count = token_count
        self.cause = cause


class StoreWriteFailure(NotificationError):
    """The atomic token-prune commit was rejected by the store."""
