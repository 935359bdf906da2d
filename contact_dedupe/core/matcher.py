from typing import FrozenSet, NamedTuple, Optional

from .contact import ContactRecord
from .types import MatchReason
from ..processors.email import email_keys
from ..processors.name import name_similarity, names_similar, normalize_name
from ..processors.phone import phone_keys


class MatchKeys(NamedTuple):
    """Normalized comparison keys of one record"""

    phones: FrozenSet[str]
    emails: FrozenSet[str]
    name: str


class MatchResult(NamedTuple):
    """Why a group member was matched, kept for the reviewer"""

    identifier: str
    reason: MatchReason
    name_similarity: float


class ContactMatcher:
    """Decides whether two contact records describe the same person.

    Rules are checked in order and the first one that holds wins:

    1. a shared phone number (digits only)
    2. a shared email address (case-insensitive)
    3. similar names, and the records share a phone number or email

    A similar name alone never makes two records duplicates.
    """

    def keys_for(self, contact: ContactRecord) -> MatchKeys:
        return MatchKeys(
            phones=frozenset(phone_keys(contact.phones)),
            emails=frozenset(email_keys(contact.emails)),
            name=normalize_name(contact.given_name, contact.family_name),
        )

    def is_duplicate(self, contact1: ContactRecord, contact2: ContactRecord) -> bool:
        return self.match_reason(contact1, contact2) is not None

    def match_reason(
        self, contact1: ContactRecord, contact2: ContactRecord
    ) -> Optional[MatchReason]:
        """Return the rule that flags the pair as duplicates, if any"""
        return self.match_keys(self.keys_for(contact1), self.keys_for(contact2))

    def match_keys(self, keys1: MatchKeys, keys2: MatchKeys) -> Optional[MatchReason]:
        # 1. Exact phone number match (highest priority)
        if keys1.phones & keys2.phones:
            return MatchReason.PHONE

        # 2. Email match
        if keys1.emails & keys2.emails:
            return MatchReason.EMAIL

        # 3. Similar names with at least one common contact method
        if names_similar(keys1.name, keys2.name) and self._share_keys(keys1, keys2):
            return MatchReason.NAME

        return None

    def share_any_contact_method(
        self, contact1: ContactRecord, contact2: ContactRecord
    ) -> bool:
        """Check if two records have a phone number or email address in common"""
        return self._share_keys(self.keys_for(contact1), self.keys_for(contact2))

    def describe_match(
        self, anchor: ContactRecord, other: ContactRecord
    ) -> Optional[MatchResult]:
        anchor_keys = self.keys_for(anchor)
        other_keys = self.keys_for(other)
        reason = self.match_keys(anchor_keys, other_keys)
        if reason is None:
            return None
        return self.result_for(other.identifier, reason, anchor_keys, other_keys)

    @staticmethod
    def result_for(
        identifier: str, reason: MatchReason, keys1: MatchKeys, keys2: MatchKeys
    ) -> MatchResult:
        return MatchResult(
            identifier=identifier,
            reason=reason,
            name_similarity=name_similarity(keys1.name, keys2.name),
        )

    @staticmethod
    def _share_keys(keys1: MatchKeys, keys2: MatchKeys) -> bool:
        return bool(keys1.phones & keys2.phones or keys1.emails & keys2.emails)
