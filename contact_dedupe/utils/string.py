from typing import Optional
import re


def extract_digits(text: str) -> str:
    """Keep only the decimal digits 0-9 of text"""
    if not text:
        return ""
    return re.sub(r"[^0-9]", "", str(text))


def levenshtein(s1: str, s2: str) -> int:
    """Edit distance between two strings (insertions, deletions, substitutions).

    Classic dynamic programming over the character sequences, keeping only
    one row of the table, sized by the shorter string.
    """
    if s1 == s2:
        return 0
    if len(s1) < len(s2):
        s1, s2 = s2, s1
    if not s2:
        return len(s1)

    previous = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1, start=1):
        current = [i]
        for j, c2 in enumerate(s2, start=1):
            cost = 0 if c1 == c2 else 1
            current.append(
                min(current[j - 1] + 1, previous[j] + 1, previous[j - 1] + cost)
            )
        previous = current
    return previous[-1]


def contains_either(s1: str, s2: str) -> bool:
    """Check if one string contains the other"""
    return s1 in s2 or s2 in s1


def first_non_empty(*values: Optional[str]) -> str:
    """Return the first truthy value, or an empty string"""
    for value in values:
        if value:
            return value
    return ""
