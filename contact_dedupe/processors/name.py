import re
from fuzzywuzzy import fuzz

from ..settings import NAME_DISTANCE_RATIO, NAME_MIN_DISTANCE, NAME_MIN_LENGTH
from ..utils.string import contains_either, levenshtein


def normalize_name(given_name: str, family_name: str) -> str:
    """Comparison key for a person's name.

    "  Mary   ", "Smith " -> "mary smith"
    """
    name = f"{given_name or ''} {family_name or ''}".lower().strip()
    return re.sub(r"\s+", " ", name)


def name_distance_threshold(name1: str, name2: str) -> int:
    """Largest edit distance still accepted between two names"""
    max_length = max(len(name1), len(name2))
    return max(NAME_MIN_DISTANCE, int(max_length * NAME_DISTANCE_RATIO))


def names_similar(name1: str, name2: str) -> bool:
    """Check if two normalized names likely belong to the same person.

    Equal names and names contained in one another ("rob" / "rob smith")
    are similar. Otherwise both must be longer than NAME_MIN_LENGTH and
    differ by at most 20% of the longer name, with a floor of two edits.
    """
    if not name1 or not name2:
        return False

    if name1 == name2:
        return True

    # Nicknames and added family names
    if contains_either(name1, name2):
        return True

    if max(len(name1), len(name2)) <= NAME_MIN_LENGTH:
        return False

    return levenshtein(name1, name2) <= name_distance_threshold(name1, name2)


def name_similarity(name1: str, name2: str) -> float:
    """Fuzzy similarity of two names between 0 and 1, for display only"""
    if not name1 or not name2:
        return 0.0
    return fuzz.ratio(name1, name2) / 100
