class SyncLedgerError(Exception):
    pass


class SyncValidationError(SyncLedgerError):
    pass


class InvalidTransitionError(SyncLedgerError):
    pass


class InsufficientFundsError(SyncLedgerError):
    pass


class EntityNotFoundError(SyncLedgerError):
    pass


class PermissionDeniedError(SyncLedgerError):
    pass


class StorageConflictError(SyncLedgerError):
    """Lost a serialization race in the storage layer; safe to retry once."""


class DownstreamUnavailableError(SyncLedgerError):
    """Notification, payment or payout collaborator could not be reached."""
