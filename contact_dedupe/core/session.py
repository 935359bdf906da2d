import logging
from typing import Iterable, List, Optional, Set

from .cluster import ClusterBuilder, DuplicateGroup
from .contact import ContactRecord
from .merger import ContactMerger, MergeResult
from .scoring import find_incomplete
from .store import ContactStore

logger = logging.getLogger(__name__)


class DedupeSession:
    """One detection-and-review cycle over a contact store.

    ``scan`` takes a snapshot and groups it. After each merge the deleted
    contacts leave the snapshot and the surviving contact is re-read from the
    store the next time the snapshot is used.
    """

    def __init__(
        self,
        store: ContactStore,
        builder: Optional[ClusterBuilder] = None,
        merger: Optional[ContactMerger] = None,
    ):
        self.store = store
        self.builder = builder or ClusterBuilder()
        self.merger = merger or ContactMerger(store)
        self.groups: List[DuplicateGroup] = []
        self._records: List[ContactRecord] = []
        self._stale: Set[str] = set()

    @property
    def records(self) -> List[ContactRecord]:
        """Current snapshot, with contacts changed by a merge fetched again"""
        if self._stale:
            refreshed = []
            for record in self._records:
                if record.identifier in self._stale:
                    record = self.store.fetch_mutable(record.identifier)
                refreshed.append(record)
            self._records = refreshed
            self._stale.clear()
        return list(self._records)

    def scan(self) -> List[DuplicateGroup]:
        self._records = list(self.store.fetch_all())
        self._stale.clear()
        logger.info(f"Loaded {len(self._records)} contacts from store")
        self.groups = self.builder.build(self._records)
        return self.groups

    def rescan(self) -> List[DuplicateGroup]:
        """Group the current snapshot again without reloading the store"""
        self.groups = self.builder.build(self.records)
        return self.groups

    def merge(
        self, group: DuplicateGroup, selected_ids: Optional[Iterable[str]] = None
    ) -> MergeResult:
        """Merge a group, or only its selected members"""
        if selected_ids is None:
            selected_ids = group.identifiers
        result = self.merger.merge_group(group, selected_ids)
        self._forget(group, result)
        return result

    def incomplete(self) -> List[ContactRecord]:
        return find_incomplete(self.records)

    def _forget(self, group: DuplicateGroup, result: MergeResult) -> None:
        deleted = set(result.deleted)
        self._records = [r for r in self._records if r.identifier not in deleted]
        self._stale.add(result.target_identifier)
        self.groups = [g for g in self.groups if g is not group]
        logger.debug(
            f"Dropped {len(deleted)} merged contacts, "
            f"{result.target_identifier} will be re-read before next use"
        )
