"""
receiptit.exceptions
~~~~~~~~~~~~~~~~~~~~
Exception hierarchy for the receiptit library.

Malformed receipt records never raise — the normalizer degrades to
defaults. These exceptions cover the collaborator boundary (persistence,
object storage, identity) and user input such as email aliases.
"""

from __future__ import annotations


class ReceiptItError(Exception):
    """Base exception for all receiptit errors."""

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause
        self.message = message

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message} (caused by {type(self.cause).__name__}: {self.cause})"
        return self.message


class CollaboratorError(ReceiptItError):
    """Raised when an external collaborator (backend, storage, auth) fails."""


class PersistenceError(CollaboratorError):
    """Raised when receipt records cannot be listed, written or deleted."""


class ObjectStorageError(CollaboratorError):
    """Raised when a file cannot be uploaded to or removed from object storage."""


class AuthenticationError(CollaboratorError):
    """Raised when signing in, signing up or signing out fails."""


class InvalidAliasError(ReceiptItError):
    """Raised when an email alias username is empty after sanitising."""


class ReceiptNotFoundError(ReceiptItError):
    """
    Raised when a receipt id is unknown to the current user.

    Attributes:
        receipt_id: The id that was looked up.
    """

    def __init__(self, message: str, *, receipt_id: str) -> None:
        super().__init__(message)
        self.receipt_id = receipt_id
