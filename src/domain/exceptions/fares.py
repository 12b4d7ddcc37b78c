class FareServiceError(Exception):
    """Base exception for fare collection failures."""


class InvalidInput(FareServiceError):
    """Raised for malformed coordinates or card payloads."""


class NotFound(FareServiceError):
    """Raised when a referenced entity does not exist."""


class RiderNotFound(NotFound):
    """Raised when no account carries the scanned card or rider id."""


class NoLocationData(FareServiceError):
    """Raised when a scan arrives before the vehicle has any ledger sample."""


class BoardingConflict(FareServiceError):
    """Raised when a concurrent scan already changed the rider's boarding state."""


class LedgerWriteConflict(FareServiceError):
    """Raised by a ledger store when the sequence number was already taken."""


class LedgerWriteFailed(FareServiceError):
    """Raised when a sample could not be appended to the ledger."""


class AccountConflict(FareServiceError):
    """Raised by a profile store when the account changed since it was read."""


class SettlementFailed(FareServiceError):
    """Raised when a fare could not be settled; nothing was written."""


class UpstreamUnavailable(FareServiceError):
    """Raised when a best-effort upstream (geocoder, fare config) is unavailable."""
