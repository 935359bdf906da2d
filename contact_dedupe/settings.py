"""
Configuration settings for the contact deduplication engine.
Weights and thresholds here are read by the matcher, scorer and merger.
"""

###################
# Name Matching
###################

# Names this short or shorter only match exactly or by containment
NAME_MIN_LENGTH: int = 3

# Share of the longer name that may differ between two similar names
NAME_DISTANCE_RATIO: float = 0.2

# Edits always allowed regardless of name length
NAME_MIN_DISTANCE: int = 2

###################
# Completeness Weights
###################

GIVEN_NAME_WEIGHT: int = 2
FAMILY_NAME_WEIGHT: int = 2
PHONE_WEIGHT: int = 3  # per phone number
EMAIL_WEIGHT: int = 2  # per email address
ORGANIZATION_WEIGHT: int = 1
JOB_TITLE_WEIGHT: int = 1
ADDRESS_WEIGHT: int = 1  # per postal address

###################
# Merging
###################

# Smallest selection the merge engine accepts
MIN_MERGE_SELECTION: int = 2

# Use the record identifier as secondary key on completeness ties
TIE_BREAK_BY_IDENTIFIER: bool = False

###################
# Processing Options
###################

# Region used when checking phone numbers for plausibility
DEFAULT_REGION: str = "US"

# Default encoding for reading and writing contact files
DEFAULT_ENCODING: str = "utf-8"
