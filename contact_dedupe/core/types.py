from typing import Dict, List
from enum import Enum


class ValidationLevel(Enum):
    NONE = 0
    BASIC = 1
    STRICT = 2


class MatchReason(Enum):
    """Rule of the similarity cascade that flagged a pair"""

    PHONE = "phone"
    EMAIL = "email"
    NAME = "name"


class ClusteringStrategy(Enum):
    SEED_ANCHORED = "seed"
    UNION_FIND = "union-find"


class MergeState(Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    FETCHING_TARGET = "fetching_target"
    MERGING = "merging"
    COMMITTING = "committing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


ValidationResults = Dict[str, List[str]]
