import logging
from typing import Dict, Iterable, List, Optional, Sequence

from ..core.contact import ContactRecord
from ..core.errors import StoreFetchFailure
from ..core.store import check_transaction

logger = logging.getLogger(__name__)


class InMemoryContactStore:
    """Contact store kept in a dict, in insertion order.

    Transactions are checked completely before anything is applied, so a
    rejected transaction leaves the store unchanged.
    """

    def __init__(self, contacts: Iterable[ContactRecord] = ()):
        self._contacts: Dict[str, ContactRecord] = {}
        for contact in contacts:
            self._contacts[contact.identifier] = contact

    def __len__(self) -> int:
        return len(self._contacts)

    def __contains__(self, identifier: str) -> bool:
        return identifier in self._contacts

    def fetch_all(self) -> List[ContactRecord]:
        return list(self._contacts.values())

    def fetch_mutable(self, identifier: str) -> ContactRecord:
        try:
            return self._contacts[identifier]
        except KeyError:
            raise StoreFetchFailure(
                f"Contact not found: {identifier}", identifier
            ) from None

    def execute_transaction(
        self, update: Optional[ContactRecord], deletes: Sequence[str]
    ) -> None:
        check_transaction(self._contacts, update, deletes)

        if update is not None:
            self._contacts[update.identifier] = update
        for identifier in deletes:
            del self._contacts[identifier]
        logger.debug(
            f"Applied transaction: {1 if update else 0} update, {len(deletes)} deletes"
        )
