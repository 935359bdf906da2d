from typing import Iterable, Set


def normalize_email(email: str) -> str:
    """Case-insensitive comparison key for an email address"""
    if not email:
        return ""
    return str(email).lower()


def email_keys(emails: Iterable) -> Set[str]:
    """Non-empty normalized keys of labeled email values"""
    return {key for key in (normalize_email(e.value) for e in emails) if key}
