from collections import Counter
from typing import Iterable, List, Optional, Protocol, Sequence

from .contact import ContactRecord
from .errors import StoreTransactionFailure


class ContactStore(Protocol):
    """Persistent contact store the engine reads from and commits merges to.

    The engine never holds a store globally; every component that needs one
    receives it explicitly.
    """

    def fetch_all(self) -> List[ContactRecord]:
        """Return a snapshot of every contact in a stable order."""
        ...

    def fetch_mutable(self, identifier: str) -> ContactRecord:
        """Return the latest state of one contact.

        Raises StoreFetchFailure when the contact cannot be read.
        """
        ...

    def execute_transaction(
        self, update: Optional[ContactRecord], deletes: Sequence[str]
    ) -> None:
        """Apply the update and all deletes together, or nothing at all.

        Raises StoreTransactionFailure when the transaction is rejected.
        """
        ...


def check_transaction(
    identifiers: Iterable[str], update: Optional[ContactRecord], deletes: Sequence[str]
) -> None:
    """Reject a transaction that refers to contacts the store does not hold"""
    known = set(identifiers)
    if update is not None and update.identifier not in known:
        raise StoreTransactionFailure(
            f"Cannot update missing contact: {update.identifier}", update.identifier
        )
    repeated = sorted(i for i, count in Counter(deletes).items() if count > 1)
    if repeated:
        raise StoreTransactionFailure(
            f"Contacts deleted more than once: {', '.join(repeated)}"
        )
    missing = [i for i in deletes if i not in known]
    if missing:
        raise StoreTransactionFailure(
            f"Cannot delete missing contacts: {', '.join(missing)}"
        )
    if update is not None and update.identifier in deletes:
        raise StoreTransactionFailure(
            f"Contact {update.identifier} is both updated and deleted",
            update.identifier,
        )
