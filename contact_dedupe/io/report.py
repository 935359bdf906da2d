###################
# Duplicate Review Report
###################

import logging
from typing import Optional, Sequence

import pandas as pd

from ..core.cluster import DuplicateGroup
from ..core.scoring import completeness_score

logger = logging.getLogger(__name__)

REPORT_COLUMNS = [
    "Group",
    "Position",
    "Identifier",
    "Name",
    "Phone Numbers",
    "Emails",
    "Addresses",
    "Completeness",
    "Match Reason",
    "Name Similarity",
]


def build_duplicate_report(groups: Sequence[DuplicateGroup]) -> pd.DataFrame:
    """One row per group member, in group and member order.

    The first member of each group is the likely merge target. The contact a
    group was built from has no match reason; every other member records the
    rule that matched it.
    """
    rows = []
    for group_number, group in enumerate(groups, start=1):
        for position, contact in enumerate(group, start=1):
            match = group.match_for(contact.identifier)
            rows.append(
                {
                    "Group": group_number,
                    "Position": position,
                    "Identifier": contact.identifier,
                    "Name": contact.display_name,
                    "Phone Numbers": ", ".join(p.value for p in contact.phones),
                    "Emails": ", ".join(e.value for e in contact.emails),
                    "Addresses": "; ".join(a.value.label for a in contact.addresses),
                    "Completeness": completeness_score(contact),
                    "Match Reason": match.reason.value if match else "",
                    "Name Similarity": round(match.name_similarity, 2) if match else None,
                }
            )
    return pd.DataFrame(rows, columns=REPORT_COLUMNS)


def write_duplicate_report(
    groups: Sequence[DuplicateGroup], output_file: Optional[str] = None
) -> pd.DataFrame:
    df = build_duplicate_report(groups)
    if output_file:
        df.to_csv(output_file, index=False)
        logger.info(f"Duplicate report saved to {output_file} ({len(groups)} groups)")
    return df
