class WalletError(RuntimeError):
    """Base class for errors raised by the expense core."""


class ValidationError(WalletError):
    """Raised when an expense input is missing or has an invalid required field."""


class NotFoundError(WalletError):
    """Raised when an expense or monthly summary that must exist is missing."""


class OfflineError(WalletError):
    """Raised when an operation without an offline path is attempted while disconnected."""


class TransactionError(WalletError):
    """Raised when a store transaction fails (conflict or transient failure)."""


class TransactionOrderError(TransactionError):
    """Raised when a transaction reads after it has already issued a write."""


class SummaryExistsError(TransactionError):
    """Raised when creating a monthly summary that already exists."""


class SyncError(WalletError):
    """Raised when a queued mutation fails to replay."""


class MediaProcessingTimeoutError(WalletError, TimeoutError):
    """Raised when an uploaded media file does not finish processing in time."""
