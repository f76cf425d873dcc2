"""Errors raised by family stores and blob stores."""


class StoreError(Exception):
    """Base class for family store failures."""


class NotPairedError(StoreError):
    """Raised when an operation needs a family but none is selected."""


class InvalidPairingCodeError(StoreError):
    """Raised when no family matches a pairing code."""


class PairingCodeExpiredError(StoreError):
    """Raised when a pairing code exists but has expired."""


class FamilyNotFoundError(StoreError):
    """Raised when a family does not exist."""


class RequestNotFoundError(StoreError):
    """Raised when a photo request does not exist."""


class RequestAlreadyFulfilledError(StoreError):
    """Raised when fulfilling a request that is already fulfilled."""


class BlobStoreError(Exception):
    """Raised when the blob store fails to complete an operation."""


class BlobNotFoundError(BlobStoreError):
    """Raised when a blob path does not exist."""
