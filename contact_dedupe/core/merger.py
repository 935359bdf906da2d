import logging
import threading
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from .cluster import DuplicateGroup
from .contact import ContactRecord, LabeledValue
from .errors import InsufficientSelection, StoreFetchFailure, StoreTransactionFailure
from .scoring import rank_by_completeness
from .store import ContactStore
from .types import MergeState
from ..processors.email import normalize_email
from ..processors.phone import normalize_phone
from ..settings import MIN_MERGE_SELECTION, TIE_BREAK_BY_IDENTIFIER
from ..utils.string import first_non_empty

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MergeResult:
    """Outcome of a committed merge"""

    target_identifier: str
    merged: ContactRecord
    deleted: Tuple[str, ...]


class ContactMerger:
    """Merges a selection of duplicate contacts into the most complete one.

    The surviving contact is re-read from the store right before it is
    changed, absorbs phones, emails, addresses, organization, job title and
    photo from the other contacts, and is written back in a single
    transaction that also deletes the others. Merges through one merger
    never overlap.
    """

    def __init__(
        self, store: ContactStore, tie_break_by_id: bool = TIE_BREAK_BY_IDENTIFIER
    ):
        self.store = store
        self.tie_break_by_id = tie_break_by_id
        self.state = MergeState.IDLE
        self._lock = threading.Lock()

    def select_target(self, contacts: Sequence[ContactRecord]) -> ContactRecord:
        """Most complete contact; the first one wins a tie"""
        return rank_by_completeness(contacts, self.tie_break_by_id)[0]

    def merge(self, contacts: Sequence[ContactRecord]) -> MergeResult:
        with self._lock:
            try:
                return self._merge(list(contacts))
            except Exception:
                self._transition(MergeState.FAILED)
                raise

    def merge_group(
        self, group: DuplicateGroup, selected_ids: Iterable[str]
    ) -> MergeResult:
        """Merge the selected members of a duplicate group"""
        return self.merge(group.select(set(selected_ids)))

    def delete_contacts(self, contacts: Sequence[ContactRecord]) -> List[str]:
        """Delete contacts in one transaction, returning their identifiers"""
        if not contacts:
            logger.error("No contacts to delete")
            raise InsufficientSelection(0, 1)

        identifiers = [c.identifier for c in contacts]
        with self._lock:
            logger.info(f"Starting deletion of {len(identifiers)} contacts")
            self._commit(None, identifiers)
        logger.info(f"Successfully deleted {len(identifiers)} contacts")
        return identifiers

    def merge_fields(
        self, target: ContactRecord, contacts: Sequence[ContactRecord]
    ) -> ContactRecord:
        """Union the data of contacts into target without touching either.

        Phones and emails are de-duplicated on their normalized form, keeping
        the first label and original spelling. Addresses are appended as they
        are. Organization, job title and photo are only filled in when the
        target has none.
        """
        others = [c for c in contacts if c.identifier != target.identifier]

        phones = _union_values(
            target.phones, [c.phones for c in others], normalize_phone
        )
        emails = _union_values(
            target.emails, [c.emails for c in others], normalize_email
        )

        addresses = list(target.addresses)
        for contact in others:
            addresses.extend(contact.addresses)

        organization = target.organization or first_non_empty(
            *(c.organization for c in others)
        )
        job_title = target.job_title or first_non_empty(
            *(c.job_title for c in others)
        )

        photo = target.photo
        if not photo:
            photo = next((c.photo for c in others if c.photo), target.photo)

        return target.with_fields(
            phones=tuple(phones),
            emails=tuple(emails),
            addresses=tuple(addresses),
            organization=organization,
            job_title=job_title,
            photo=photo,
        )

    def _merge(self, contacts: List[ContactRecord]) -> MergeResult:
        self._transition(MergeState.IDLE)
        self._transition(MergeState.VALIDATING)
        contacts = _unique_by_identifier(contacts)
        if len(contacts) < MIN_MERGE_SELECTION:
            logger.error(f"Cannot merge less than {MIN_MERGE_SELECTION} contacts")
            raise InsufficientSelection(len(contacts), MIN_MERGE_SELECTION)

        logger.info(f"Starting merge of {len(contacts)} contacts")
        target = self.select_target(contacts)

        self._transition(MergeState.FETCHING_TARGET)
        fresh_target = self._fetch_target(target.identifier)

        self._transition(MergeState.MERGING)
        merged = self.merge_fields(fresh_target, contacts)
        deletes = tuple(
            c.identifier for c in contacts if c.identifier != target.identifier
        )
        logger.debug(
            f"Merged into {target.identifier}: {len(merged.phones)} phones, "
            f"{len(merged.emails)} emails, {len(merged.addresses)} addresses"
        )

        self._transition(MergeState.COMMITTING)
        self._commit(merged, deletes)

        self._transition(MergeState.SUCCEEDED)
        logger.info(
            f"Successfully merged {len(contacts)} contacts into {target.identifier}"
        )
        return MergeResult(
            target_identifier=target.identifier, merged=merged, deleted=deletes
        )

    def _fetch_target(self, identifier: str) -> ContactRecord:
        try:
            return self.store.fetch_mutable(identifier)
        except StoreFetchFailure as e:
            logger.error(f"Failed to fetch merge target {identifier}: {e}")
            raise
        except Exception as e:
            logger.error(f"Failed to fetch merge target {identifier}: {e}")
            raise StoreFetchFailure(
                f"Could not fetch contact {identifier}: {e}", identifier
            ) from e

    def _commit(self, update: Optional[ContactRecord], deletes: Sequence[str]) -> None:
        try:
            self.store.execute_transaction(update, list(deletes))
        except StoreTransactionFailure as e:
            logger.error(f"Failed to commit contact changes: {e}")
            raise
        except Exception as e:
            logger.error(f"Failed to commit contact changes: {e}")
            raise StoreTransactionFailure(
                f"Transaction failed: {e}", update.identifier if update else None
            ) from e

    def _transition(self, state: MergeState) -> None:
        logger.debug(f"Merge state {self.state.value} -> {state.value}")
        self.state = state


def _union_values(
    own: Sequence[LabeledValue],
    others: Sequence[Sequence[LabeledValue]],
    key: Callable[[str], str],
) -> List[LabeledValue]:
    """Own values first, then new values from others, unique by key"""
    merged = []
    seen = set()
    for values in [own, *others]:
        for item in values:
            normalized = key(item.value)
            if normalized and normalized not in seen:
                seen.add(normalized)
                merged.append(item)
    return merged


def _unique_by_identifier(contacts: Sequence[ContactRecord]) -> List[ContactRecord]:
    """First occurrence of each contact, in selection order"""
    seen = set()
    unique = []
    for contact in contacts:
        if contact.identifier not in seen:
            seen.add(contact.identifier)
            unique.append(contact)
    return unique
