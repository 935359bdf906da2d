from typing import Optional


class ContactDedupeError(Exception):
    """Base class for errors raised by the deduplication engine"""


class InsufficientSelection(ContactDedupeError):
    """Fewer records were selected than an operation needs"""

    def __init__(self, selected: int, required: int):
        self.selected = selected
        self.required = required
        super().__init__(
            f"Please select at least {required} contacts (got {selected})"
        )


class StoreError(ContactDedupeError):
    """Raised when the contact store rejects or fails a request"""

    def __init__(self, message: str, identifier: Optional[str] = None):
        self.identifier = identifier
        super().__init__(message)


class StoreFetchFailure(StoreError):
    """A record could not be re-read from the store"""


class StoreTransactionFailure(StoreError):
    """An update/delete transaction was not applied"""
