#!/usr/bin/env python3

import argparse
import logging
import os
import sys
from typing import List, Optional
from pathlib import Path

from dotenv import load_dotenv

from contact_dedupe.core.cluster import ClusterBuilder, DuplicateGroup
from contact_dedupe.core.errors import ContactDedupeError
from contact_dedupe.core.merger import ContactMerger
from contact_dedupe.core.scoring import completeness_score
from contact_dedupe.core.session import DedupeSession
from contact_dedupe.core.store import ContactStore
from contact_dedupe.core.types import ClusteringStrategy
from contact_dedupe.io.csv import CSVHandler
from contact_dedupe.io.memory import InMemoryContactStore
from contact_dedupe.io.report import write_duplicate_report
from contact_dedupe.io.vcard import VCardContactStore
from contact_dedupe.processors.phone import PhoneProcessor
from contact_dedupe import settings


def open_store(path: Path) -> ContactStore:
    """Open a contact store for an input file"""
    suffix = path.suffix.lower()
    if suffix in [".vcf", ".vcard"]:
        logging.debug(f"Opening vCard store: {path}")
        return VCardContactStore(str(path))
    if suffix == ".csv":
        # CSV input is read once and kept in memory; merges are not written back
        contacts = CSVHandler().read_csv(str(path))
        logging.debug(f"Loaded {len(contacts)} contacts from CSV: {path}")
        return InMemoryContactStore(contacts)
    raise ValueError(f"Unsupported file format: {path}")


def build_session(path: Path, strategy: ClusteringStrategy, tie_break_by_id: bool) -> DedupeSession:
    store = open_store(path)
    builder = ClusterBuilder(strategy=strategy, tie_break_by_id=tie_break_by_id)
    merger = ContactMerger(store, tie_break_by_id=tie_break_by_id)
    return DedupeSession(store, builder, merger)


def print_groups(groups: List[DuplicateGroup], phone_processor: PhoneProcessor) -> None:
    if not groups:
        print("No duplicate contacts found")
        return

    for number, group in enumerate(groups, start=1):
        print(f"\nGroup {number} ({len(group)} contacts):")
        for contact in group:
            match = group.match_for(contact.identifier)
            reason = f" [{match.reason.value}]" if match else ""
            phones = ", ".join(phone_processor.format_e164(p.value) for p in contact.phones)
            emails = ", ".join(e.value for e in contact.emails)
            print(
                f"  - {contact.display_name} ({contact.identifier}) "
                f"score={completeness_score(contact)}{reason}"
            )
            if phones:
                print(f"      phones: {phones}")
            if emails:
                print(f"      emails: {emails}")


def scan(session: DedupeSession, report: Optional[Path], region: str) -> None:
    groups = session.scan()
    print_groups(groups, PhoneProcessor(region))
    if report:
        report.parent.mkdir(parents=True, exist_ok=True)
        write_duplicate_report(groups, str(report))


def merge(session: DedupeSession, group_number: int, exclude: List[str]) -> None:
    groups = session.scan()
    if not 1 <= group_number <= len(groups):
        raise ValueError(f"No duplicate group {group_number} (found {len(groups)})")

    group = groups[group_number - 1]
    selected = [i for i in group.identifiers if i not in set(exclude)]
    result = session.merge(group, selected)
    print(
        f"Merged {len(result.deleted) + 1} contacts into "
        f"{result.merged.display_name} ({result.target_identifier})"
    )


def list_incomplete(session: DedupeSession) -> None:
    session.scan()
    incomplete = session.incomplete()
    print(f"{len(incomplete)} contacts are missing a name or phone number:")
    for contact in incomplete:
        print(f"  - {contact.display_name} ({contact.identifier})")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Find and merge duplicate contacts."
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )
    parser.add_argument(
        "--strategy",
        "-s",
        choices=[s.value for s in ClusteringStrategy],
        default=os.getenv("CONTACT_DEDUPE_STRATEGY", ClusteringStrategy.SEED_ANCHORED.value),
        help="Grouping strategy (seed: compare with the first contact of a group, "
        "union-find: join duplicates transitively)",
    )
    parser.add_argument(
        "--tie-break-by-id",
        action="store_true",
        default=os.getenv("CONTACT_DEDUPE_TIE_BREAK_BY_ID", "").lower() in ("1", "true", "yes")
        or settings.TIE_BREAK_BY_IDENTIFIER,
        help="Order contacts with equal completeness by identifier",
    )
    subparsers = parser.add_subparsers(dest="command")

    scan_parser = subparsers.add_parser("scan", help="List duplicate groups")
    scan_parser.add_argument("input", help="Input file path (.vcf or .csv)")
    scan_parser.add_argument("--report", "-r", help="Write a CSV review report")
    scan_parser.add_argument(
        "--region",
        default=os.getenv("CONTACT_DEDUPE_REGION", settings.DEFAULT_REGION),
        help="Region used to display phone numbers",
    )

    merge_parser = subparsers.add_parser("merge", help="Merge one duplicate group")
    merge_parser.add_argument("input", help="vCard file to update in place")
    merge_parser.add_argument(
        "--group", "-g", type=int, required=True, help="Group number as listed by scan"
    )
    merge_parser.add_argument(
        "--exclude", "-x", nargs="*", default=[], help="Identifiers to leave out"
    )

    incomplete_parser = subparsers.add_parser(
        "incomplete", help="List contacts missing a name or phone number"
    )
    incomplete_parser.add_argument("input", help="Input file path (.vcf or .csv)")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    # Configure logging based on verbose flag
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s"
    )

    input_path = Path(args.input)
    if args.command == "merge" and input_path.suffix.lower() not in [".vcf", ".vcard"]:
        parser.error("merge needs a vCard file it can write back to")

    try:
        session = build_session(
            input_path, ClusteringStrategy(args.strategy), args.tie_break_by_id
        )
        if args.command == "scan":
            scan(session, Path(args.report) if args.report else None, args.region)
        elif args.command == "merge":
            merge(session, args.group, args.exclude)
        elif args.command == "incomplete":
            list_incomplete(session)
    except (ContactDedupeError, ValueError) as e:
        logging.error(f"Error processing contacts: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
