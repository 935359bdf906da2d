"""Grouping of duplicate contacts.

The default strategy is seed-anchored: every group starts at the first
unvisited contact (its seed) and collects each unvisited contact that is a
duplicate of the seed. Members are never compared with each other, so two
contacts that only resemble a common third one can end up in the same group
or in different groups depending on input order. The union-find strategy
joins every duplicate pair transitively instead and has to be asked for.

Both strategies compare all pairs, O(n^2) comparisons of up to O(L^2) each
for names of length L. That is fine for an address book (hundreds to a few
thousand contacts); larger inputs should be clustered off any latency
sensitive thread.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Sequence, Set, Tuple

from .contact import ContactRecord
from .matcher import ContactMatcher, MatchKeys, MatchResult
from .scoring import rank_by_completeness
from .types import ClusteringStrategy
from ..settings import TIE_BREAK_BY_IDENTIFIER

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DuplicateGroup:
    """Two or more contacts judged to be the same person, most complete first"""

    records: Tuple[ContactRecord, ...]
    matches: Tuple[MatchResult, ...] = ()

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[ContactRecord]:
        return iter(self.records)

    @property
    def identifiers(self) -> List[str]:
        return [r.identifier for r in self.records]

    def match_for(self, identifier: str) -> Optional[MatchResult]:
        for match in self.matches:
            if match.identifier == identifier:
                return match
        return None

    def select(self, identifiers: Set[str]) -> List[ContactRecord]:
        """Members whose identifier is selected, in group order"""
        return [r for r in self.records if r.identifier in identifiers]


class ClusterBuilder:
    def __init__(
        self,
        matcher: Optional[ContactMatcher] = None,
        strategy: ClusteringStrategy = ClusteringStrategy.SEED_ANCHORED,
        tie_break_by_id: bool = TIE_BREAK_BY_IDENTIFIER,
    ):
        self.matcher = matcher or ContactMatcher()
        self.strategy = strategy
        self.tie_break_by_id = tie_break_by_id

    def build(self, contacts: Sequence[ContactRecord]) -> List[DuplicateGroup]:
        """Find groups of duplicate contacts, largest group first"""
        if not contacts:
            return []

        contacts = list(contacts)
        keys = [self.matcher.keys_for(c) for c in contacts]
        logger.debug(
            f"Clustering {len(contacts)} contacts with {self.strategy.value} strategy "
            f"({len(contacts) * (len(contacts) - 1) // 2} pairs at most)"
        )

        if self.strategy == ClusteringStrategy.UNION_FIND:
            raw_groups = self._union_find_groups(contacts, keys)
        else:
            raw_groups = self._seed_anchored_groups(contacts, keys)

        groups = []
        for members, matches in raw_groups:
            # Only groups with more than one contact
            if len(members) < 2:
                continue
            records = rank_by_completeness(
                [contacts[i] for i in members], self.tie_break_by_id
            )
            anchor = contacts[members[0]].identifier
            ordered_matches = tuple(
                matches[r.identifier] for r in records if r.identifier != anchor
            )
            groups.append(DuplicateGroup(records=tuple(records), matches=ordered_matches))

        # Larger groups first
        groups.sort(key=len, reverse=True)
        logger.info(
            f"Found {len(groups)} duplicate groups covering "
            f"{sum(len(g) for g in groups)} of {len(contacts)} contacts"
        )
        return groups

    def _seed_anchored_groups(
        self, contacts: List[ContactRecord], keys: List[MatchKeys]
    ) -> List[Tuple[List[int], Dict[str, MatchResult]]]:
        visited = set()
        groups = []

        for seed, seed_keys in enumerate(keys):
            if seed in visited:
                continue
            visited.add(seed)

            members = [seed]
            matches = {}
            for other, other_keys in enumerate(keys):
                if other in visited:
                    continue
                reason = self.matcher.match_keys(seed_keys, other_keys)
                if reason is not None:
                    identifier = contacts[other].identifier
                    members.append(other)
                    matches[identifier] = self.matcher.result_for(
                        identifier, reason, seed_keys, other_keys
                    )
                    visited.add(other)

            groups.append((members, matches))
        return groups

    def _union_find_groups(
        self, contacts: List[ContactRecord], keys: List[MatchKeys]
    ) -> List[Tuple[List[int], Dict[str, MatchResult]]]:
        uf = _UnionFind(len(contacts))
        # First edge seen for each contact, from either side
        matches: Dict[str, MatchResult] = {}

        for i in range(len(contacts)):
            for j in range(i + 1, len(contacts)):
                reason = self.matcher.match_keys(keys[i], keys[j])
                if reason is None:
                    continue
                uf.union(i, j)
                for this, that in ((j, i), (i, j)):
                    identifier = contacts[this].identifier
                    if identifier not in matches:
                        matches[identifier] = self.matcher.result_for(
                            identifier, reason, keys[that], keys[this]
                        )

        return [(members, matches) for members in uf.groups()]


class _UnionFind:
    def __init__(self, size: int):
        self._parent = list(range(size))

    def find(self, item: int) -> int:
        root = item
        while self._parent[root] != root:
            root = self._parent[root]
        while self._parent[item] != root:
            self._parent[item], item = root, self._parent[item]
        return root

    def union(self, left: int, right: int) -> None:
        root_left = self.find(left)
        root_right = self.find(right)
        if root_left != root_right:
            # Keep the earliest contact as root
            if root_right < root_left:
                root_left, root_right = root_right, root_left
            self._parent[root_right] = root_left

    def groups(self) -> List[List[int]]:
        """Components in order of their first member, members in input order"""
        grouped: Dict[int, List[int]] = defaultdict(list)
        for item in range(len(self._parent)):
            grouped[self.find(item)].append(item)
        return list(grouped.values())
