from typing import List, Sequence

from .contact import ContactRecord
from ..settings import (
    ADDRESS_WEIGHT,
    EMAIL_WEIGHT,
    FAMILY_NAME_WEIGHT,
    GIVEN_NAME_WEIGHT,
    JOB_TITLE_WEIGHT,
    ORGANIZATION_WEIGHT,
    PHONE_WEIGHT,
)


def completeness_score(contact: ContactRecord) -> int:
    """Rank how much contact information a record carries (higher is more complete)"""
    score = 0

    # Basic info
    if contact.given_name:
        score += GIVEN_NAME_WEIGHT
    if contact.family_name:
        score += FAMILY_NAME_WEIGHT

    # Contact methods
    score += len(contact.phones) * PHONE_WEIGHT
    score += len(contact.emails) * EMAIL_WEIGHT

    # Additional info
    if contact.organization:
        score += ORGANIZATION_WEIGHT
    if contact.job_title:
        score += JOB_TITLE_WEIGHT
    score += len(contact.addresses) * ADDRESS_WEIGHT

    return score


def rank_by_completeness(
    contacts: Sequence[ContactRecord], tie_break_by_id: bool = False
) -> List[ContactRecord]:
    """Sort contacts most complete first.

    Ties keep their input order unless tie_break_by_id is set, in which case
    the identifier decides.
    """
    if tie_break_by_id:
        return sorted(contacts, key=lambda c: (-completeness_score(c), c.identifier))
    return sorted(contacts, key=completeness_score, reverse=True)


def is_incomplete(contact: ContactRecord) -> bool:
    """A contact missing both names, or without any phone number"""
    has_name = bool(contact.given_name or contact.family_name)
    has_phone = bool(contact.phones)
    return not has_name or not has_phone


def find_incomplete(contacts: Sequence[ContactRecord]) -> List[ContactRecord]:
    return [c for c in contacts if is_incomplete(c)]
