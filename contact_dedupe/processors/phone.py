from typing import Iterable, Set
import phonenumbers
from phonenumbers import parse, NumberParseException

from ..settings import DEFAULT_REGION
from ..utils.string import extract_digits


def normalize_phone(phone: str) -> str:
    """Comparison key for a phone number: its decimal digits only.

    A value without digits normalizes to "" and never matches anything.
    """
    return extract_digits(phone)


def phone_keys(phones: Iterable) -> Set[str]:
    """Non-empty normalized keys of labeled phone values"""
    keys = set()
    for phone in phones:
        key = normalize_phone(phone.value)
        if key:
            keys.add(key)
    return keys


class PhoneProcessor:
    """Phone number checks used when validating imported contacts"""

    def __init__(self, default_region: str = DEFAULT_REGION):
        self.default_region = default_region
        self._number_cache = {}

    def is_valid_phone(self, phone: str) -> bool:
        """Check if a phone number is a plausible number for the region"""
        if not phone:
            return False

        cache_key = (phone, self.default_region)
        if cache_key in self._number_cache:
            return self._number_cache[cache_key]

        try:
            number = parse(phone, self.default_region)
            valid = phonenumbers.is_possible_number(number)
        except NumberParseException:
            valid = False

        self._number_cache[cache_key] = valid
        return valid

    def format_e164(self, phone: str) -> str:
        """Format a phone number as E.164 for display, or return it unchanged"""
        try:
            number = parse(phone, self.default_region)
        except NumberParseException:
            return phone
        if not phonenumbers.is_valid_number(number):
            return phone
        return phonenumbers.format_number(number, phonenumbers.PhoneNumberFormat.E164)
