import logging
import threading

import pandas as pd
import pytest

from contact_dedupe.core.cluster import ClusterBuilder
from contact_dedupe.core.contact import ContactRecord, LabeledValue, PostalAddress
from contact_dedupe.core.errors import (
    InsufficientSelection,
    StoreFetchFailure,
    StoreTransactionFailure,
)
from contact_dedupe.core.matcher import ContactMatcher
from contact_dedupe.core.merger import ContactMerger
from contact_dedupe.core.scoring import (
    completeness_score,
    find_incomplete,
    is_incomplete,
    rank_by_completeness,
)
from contact_dedupe.core.session import DedupeSession
from contact_dedupe.core.types import (
    ClusteringStrategy,
    MatchReason,
    MergeState,
    ValidationLevel,
)
from contact_dedupe.io.csv import CSVHandler
from contact_dedupe.io.memory import InMemoryContactStore
from contact_dedupe.io.report import (
    REPORT_COLUMNS,
    build_duplicate_report,
    write_duplicate_report,
)
from contact_dedupe.io.vcard import VCardContactStore, VCardHandler
from contact_dedupe.processors.email import normalize_email
from contact_dedupe.processors.name import names_similar, name_similarity, normalize_name
from contact_dedupe.processors.phone import PhoneProcessor, normalize_phone
from contact_dedupe.utils.string import levenshtein
from contact_dedupe.utils.validation import validate_contact_record
import main

# --- Logging Configuration ---
logger = logging.getLogger(__name__)


# --- Test Data ---
def sample_contacts():
    """A and B share a phone number, C shares nothing"""
    a = ContactRecord(
        "a", given_name="Ann", family_name="Lee", phones=[("cell", "5551234")]
    )
    b = ContactRecord("b", phones=["555-1234"], emails=["b@x.com"])
    c = ContactRecord("c", given_name="Carl", phones=["0000"])
    return a, b, c


def chain_contacts():
    """P and Q share a phone, Q and R share an email, P and R share nothing"""
    p = ContactRecord("p", given_name="Pat", phones=["111"])
    q = ContactRecord("q", given_name="Pat", phones=["111"], emails=["q@x.com"])
    r = ContactRecord("r", given_name="Pat", emails=["q@x.com"])
    return p, q, r


def generate_match_cases():
    a, b, c = sample_contacts()
    return [
        {
            "pair": (
                ContactRecord("1", given_name="John", phones=["(555) 123-4567"]),
                ContactRecord("2", given_name="Maria", phones=["555.123.4567"]),
            ),
            "expected": MatchReason.PHONE,
            "reason": "Shared phone number regardless of names",
        },
        {
            "pair": (
                ContactRecord("1", emails=["Ann.Lee@Example.com"]),
                ContactRecord("2", emails=["ann.lee@example.com"]),
            ),
            "expected": MatchReason.EMAIL,
            "reason": "Email addresses compare case-insensitively",
        },
        {
            "pair": (
                ContactRecord("1", given_name="Robert", phones=["5550100"]),
                ContactRecord("2", given_name="Robert", family_name="Jr", phones=["5550199"]),
            ),
            "expected": None,
            "reason": "Similar names without a shared contact method",
        },
        {
            "pair": (ContactRecord("1"), ContactRecord("2")),
            "expected": None,
            "reason": "Empty records",
        },
        {
            "pair": (ContactRecord("1"), a),
            "expected": None,
            "reason": "Empty record against a full record",
        },
        {
            "pair": (
                ContactRecord("1", phones=["n/a"]),
                ContactRecord("2", phones=["N/A"]),
            ),
            "expected": None,
            "reason": "Phones without digits never match",
        },
        {
            "pair": (a, c),
            "expected": None,
            "reason": "Different phone numbers",
        },
        {
            "pair": (a, b),
            "expected": MatchReason.PHONE,
            "reason": "Same number in different formats",
        },
    ]


class RecordingStore(InMemoryContactStore):
    """In-memory store that records calls and can be told to fail"""

    def __init__(self, contacts=(), fetch_error=None, commit_error=None):
        super().__init__(contacts)
        self.calls = []
        self.fetch_error = fetch_error
        self.commit_error = commit_error

    def fetch_all(self):
        self.calls.append(("fetch_all",))
        return super().fetch_all()

    def fetch_mutable(self, identifier):
        self.calls.append(("fetch_mutable", identifier))
        if self.fetch_error:
            raise self.fetch_error
        return super().fetch_mutable(identifier)

    def execute_transaction(self, update, deletes):
        self.calls.append(("execute_transaction", update, list(deletes)))
        if self.commit_error:
            raise self.commit_error
        super().execute_transaction(update, deletes)

    def count(self, name):
        return sum(1 for call in self.calls if call[0] == name)


VCARD_TEXT = """BEGIN:VCARD
VERSION:3.0
UID:jane-1
FN:Jane Doe
N:Doe;Jane;;;
ORG:Acme
TITLE:Engineer
TEL;TYPE=CELL:+1 650-253-0000
EMAIL;TYPE=work:jane@acme.com
ADR;TYPE=home:;;1 Main St;Springfield;IL;62701;USA
END:VCARD
BEGIN:VCARD
VERSION:3.0
FN:Joe
N:;Joe;;;
TEL:555-0100
END:VCARD
"""


# --- Normalizer Tests ---
def test_normalize_phone():
    assert normalize_phone("(555) 123-4567") == "5551234567"
    assert normalize_phone("+1 555.123.4567 ext 9") == "155512345679"
    assert normalize_phone("n/a") == ""
    assert normalize_phone("") == ""

    for value in ["(555) 123-4567", "+44 20 7946", "no digits", "0000"]:
        once = normalize_phone(value)
        assert normalize_phone(once) == once, f"Not idempotent for {value!r}"


def test_normalize_name_and_email():
    assert normalize_name("  Mary ", " Smith  ") == "mary smith"
    assert normalize_name("Mary\tAnn", "SMITH") == "mary ann smith"
    assert normalize_name("", "") == ""
    assert normalize_name("", "Lee") == "lee"

    assert normalize_email("Ann.Lee@Example.COM") == "ann.lee@example.com"
    assert normalize_email("") == ""


# --- Distance Tests ---
def test_levenshtein():
    cases = [
        ("", "abc", 3),
        ("abc", "", 3),
        ("", "", 0),
        ("kitten", "sitting", 3),
        ("flaw", "lawn", 2),
        ("maria", "mario", 1),
    ]
    for s1, s2, expected in cases:
        logger.info(f"levenshtein({s1!r}, {s2!r})")
        assert levenshtein(s1, s2) == expected
        assert levenshtein(s2, s1) == expected
        assert levenshtein(s1, s1) == 0


def test_names_similar():
    cases = [
        ("", "ann", False, "Empty name"),
        ("ann lee", "ann lee", True, "Equal names"),
        ("rob", "rob smith", True, "Containment"),
        ("robert", "robert jr", True, "Containment with suffix"),
        ("abc", "abd", False, "Short names only match exactly"),
        ("maria lopez", "mario lopez", True, "One edit"),
        ("jonathan smith", "jonathon smyth", True, "Two edits on a long name"),
        ("alex", "anna", False, "Too many edits"),
    ]
    for name1, name2, expected, reason in cases:
        assert names_similar(name1, name2) is expected, reason
        assert names_similar(name2, name1) is expected, reason


def test_name_similarity_is_a_ratio():
    assert name_similarity("ann lee", "ann lee") == 1.0
    assert name_similarity("", "ann lee") == 0.0
    assert 0.0 < name_similarity("maria lopez", "mario lopez") < 1.0


# --- Scoring Tests ---
def test_completeness_score():
    full = ContactRecord(
        "full",
        given_name="Ann",
        family_name="Lee",
        phones=["5551234", "5559999"],
        emails=["ann@x.com"],
        organization="Acme",
        job_title="CEO",
        addresses=[("home", PostalAddress(street="1 Main St"))],
    )
    assert completeness_score(full) == 2 + 2 + 6 + 2 + 1 + 1 + 1
    assert completeness_score(ContactRecord("empty")) == 0

    richer = ContactRecord(
        "r", given_name="Ann", family_name="Lee", phones=["1", "2"], emails=["a@x.com"]
    )
    name_only = ContactRecord("n", given_name="Ann", family_name="Lee")
    assert completeness_score(richer) == 12
    assert completeness_score(richer) > completeness_score(name_only)


def test_rank_by_completeness_ties():
    z = ContactRecord("z", phones=["222"])
    m = ContactRecord("m", phones=["222"])
    rich = ContactRecord("x", given_name="Xi", phones=["222"])

    assert [c.identifier for c in rank_by_completeness([z, m, rich])] == ["x", "z", "m"]
    assert [
        c.identifier for c in rank_by_completeness([z, m, rich], tie_break_by_id=True)
    ] == ["x", "m", "z"]


def test_incomplete_contacts():
    complete = ContactRecord("ok", given_name="Ann", phones=["5551234"])
    no_name = ContactRecord("d", organization="Acme", phones=["5550000"])
    no_phone = ContactRecord("e", given_name="Eve", emails=["eve@x.com"])

    assert not is_incomplete(complete)
    assert is_incomplete(no_name)
    assert is_incomplete(no_phone)
    assert find_incomplete([no_phone, complete, no_name]) == [no_phone, no_name]


# --- Record Tests ---
def test_contact_record_dict_conversion():
    contact = ContactRecord(
        "d",
        given_name="Dana",
        phones=[("cell", "5551234")],
        emails=["dana@x.com"],
        addresses=[("home", PostalAddress(street="1 Main St", city="Springfield"))],
        photo=b"photo",
    )
    data = contact.to_dict()
    assert data["Full Name"] == "Dana"
    assert data["Address"][0][1]["locality"] == "Springfield"
    assert ContactRecord.from_dict(data) == contact
    assert contact.addresses[0].value.label == "1 Main St, Springfield"
    assert ContactRecord("x").display_name == "Unknown Contact"


def test_contact_record_address_text():
    contact = ContactRecord(
        "t",
        phones=["5551234"],
        addresses=["1 Main St", ("work", "2 Side St"), ("home", {"locality": "Springfield"})],
    )
    assert [a.value for a in contact.addresses] == [
        PostalAddress(street="1 Main St"),
        PostalAddress(street="2 Side St"),
        PostalAddress(city="Springfield"),
    ]
    assert [a.label for a in contact.addresses] == ["", "work", "home"]
    assert contact.to_dict()["Address"][1] == ("work", PostalAddress(street="2 Side St").to_dict())

    other = ContactRecord("u", phones=["555-1234"])
    df = build_duplicate_report(ClusterBuilder().build([contact, other]))
    assert df["Addresses"].tolist() == ["1 Main St; 2 Side St; Springfield", ""]


# --- Matcher Tests ---
def test_duplicate_detection():
    matcher = ContactMatcher()
    for case in generate_match_cases():
        contact1, contact2 = case["pair"]
        logger.info(f"Case: {case['reason']}")
        assert matcher.match_reason(contact1, contact2) == case["expected"], case["reason"]
        assert matcher.is_duplicate(contact1, contact2) == (case["expected"] is not None)


def test_duplicate_detection_is_symmetric():
    matcher = ContactMatcher()
    contacts = list(sample_contacts()) + list(chain_contacts())
    for case in generate_match_cases():
        contacts.extend(case["pair"])

    for contact1 in contacts:
        for contact2 in contacts:
            assert matcher.is_duplicate(contact1, contact2) == matcher.is_duplicate(
                contact2, contact1
            )


def test_similar_names_need_a_shared_contact_method():
    matcher = ContactMatcher()
    robert = ContactRecord("1", given_name="Robert", emails=["rob@x.com"])
    robert_jr = ContactRecord("2", given_name="Robert", family_name="Jr")
    assert not matcher.share_any_contact_method(robert, robert_jr)
    assert not matcher.is_duplicate(robert, robert_jr)

    robert_jr = robert_jr.with_fields(emails=(LabeledValue("", "ROB@x.com"),))
    assert matcher.share_any_contact_method(robert, robert_jr)
    assert matcher.is_duplicate(robert, robert_jr)


def test_describe_match():
    a, b, c = sample_contacts()
    matcher = ContactMatcher()
    result = matcher.describe_match(a, b)
    assert result.identifier == "b"
    assert result.reason == MatchReason.PHONE
    assert result.name_similarity == 0.0
    assert matcher.describe_match(a, c) is None


# --- Cluster Tests ---
def test_cluster_example():
    a, b, c = sample_contacts()
    groups = ClusterBuilder().build([a, b, c])

    assert len(groups) == 1
    assert groups[0].identifiers == ["a", "b"]
    assert groups[0].match_for("b").reason == MatchReason.PHONE
    assert groups[0].match_for("a") is None

    # Members are ordered by completeness, not input order
    groups = ClusterBuilder().build([b, c, a])
    assert groups[0].identifiers == ["a", "b"]
    assert groups[0].match_for("a").reason == MatchReason.PHONE


def test_cluster_groups_shared_phone_regardless_of_names():
    contacts = [
        ContactRecord("1", given_name="Zed", phones=["+1 (555) 000-1111"]),
        ContactRecord("2", given_name="Alice", family_name="Wong", phones=["15550001111"]),
    ]
    groups = ClusterBuilder().build(contacts)
    assert len(groups) == 1
    assert set(groups[0].identifiers) == {"1", "2"}


def test_cluster_ignores_empty_records():
    contacts = [ContactRecord("1"), ContactRecord("2"), ContactRecord("3", phones=["n/a"])]
    assert ClusterBuilder().build(contacts) == []
    assert ClusterBuilder().build([]) == []


def test_cluster_seed_anchored_depends_on_seed():
    p, q, r = chain_contacts()

    groups = ClusterBuilder().build([p, q, r])
    assert [g.identifiers for g in groups] == [["q", "p"]]

    groups = ClusterBuilder().build([q, p, r])
    assert [g.identifiers for g in groups] == [["q", "p", "r"]]


def test_cluster_union_find_is_transitive():
    p, q, r = chain_contacts()
    builder = ClusterBuilder(strategy=ClusteringStrategy.UNION_FIND)

    for contacts in ([p, q, r], [r, p, q], [q, r, p]):
        groups = builder.build(contacts)
        assert len(groups) == 1
        assert sorted(groups[0].identifiers) == ["p", "q", "r"]

    groups = builder.build([p, q, r])
    assert groups[0].match_for("r").reason == MatchReason.EMAIL
    assert groups[0].match_for("q").reason == MatchReason.PHONE


def test_cluster_larger_groups_first():
    p, q, r = chain_contacts()
    x = ContactRecord("x", phones=["999"])
    y = ContactRecord("y", phones=["999"])

    groups = ClusterBuilder().build([x, y, q, p, r])
    assert [len(g) for g in groups] == [3, 2]
    assert groups[1].identifiers == ["x", "y"]


def test_cluster_tie_break():
    z = ContactRecord("z", phones=["222"])
    m = ContactRecord("m", phones=["222"])

    assert ClusterBuilder().build([z, m])[0].identifiers == ["z", "m"]
    assert ClusterBuilder(tie_break_by_id=True).build([z, m])[0].identifiers == ["m", "z"]


def test_cluster_is_deterministic_and_leaves_input_alone():
    contacts = list(sample_contacts()) + list(chain_contacts())
    snapshot = list(contacts)

    for strategy in ClusteringStrategy:
        builder = ClusterBuilder(strategy=strategy)
        assert builder.build(contacts) == builder.build(contacts)
    assert contacts == snapshot


# --- Merge Tests ---
def test_merge_example():
    a, b, c = sample_contacts()
    store = InMemoryContactStore([a, b, c])
    merger = ContactMerger(store)

    result = merger.merge([a, b])

    assert result.target_identifier == "a"
    assert result.deleted == ("b",)
    assert {normalize_phone(p.value) for p in result.merged.phones} == {"5551234"}
    assert [e.value for e in result.merged.emails] == ["b@x.com"]
    assert merger.state == MergeState.SUCCEEDED

    assert "b" not in store
    assert store.fetch_mutable("a") == result.merged
    assert store.fetch_mutable("c") == c


def test_merge_needs_two_contacts_and_no_store_calls():
    a, b, c = sample_contacts()
    store = RecordingStore([a, b, c])
    merger = ContactMerger(store)

    for selection in ([a], []):
        with pytest.raises(InsufficientSelection) as excinfo:
            merger.merge(selection)
        assert excinfo.value.required == 2
        assert excinfo.value.selected == len(selection)

    assert store.calls == []
    assert len(store) == 3


def test_merge_counts_each_contact_once():
    a, b, c = sample_contacts()
    store = RecordingStore([a, b, c])
    merger = ContactMerger(store)

    with pytest.raises(InsufficientSelection) as excinfo:
        merger.merge([a, a])
    assert excinfo.value.selected == 1
    assert store.calls == []

    result = merger.merge([a, b, b])
    assert result.deleted == ("b",)
    assert store.count("execute_transaction") == 1
    assert store.fetch_all() == [result.merged, c]


def test_merge_uses_fresh_target():
    a, b, c = sample_contacts()
    store = RecordingStore([a.with_fields(job_title="Engineer"), b])
    merger = ContactMerger(store)

    result = merger.merge([a, b])

    assert result.merged.job_title == "Engineer"
    assert store.count("fetch_mutable") == 1
    assert store.count("execute_transaction") == 1


def test_merge_fields():
    target = ContactRecord(
        "t",
        given_name="Tom",
        family_name="Hardy",
        phones=[("cell", "555 0001"), ("home", "(555) 0001"), ("", "n/a")],
        emails=[("work", "Tom@Example.com")],
        addresses=[("home", PostalAddress(street="1 Main St"))],
    )
    other = ContactRecord(
        "o1",
        phones=["5550002"],
        emails=["tom@example.com", "t.hardy@example.com"],
        job_title="Actor",
        addresses=[("work", PostalAddress(street="1 Main St"))],
        photo=b"photo-1",
    )
    another = ContactRecord(
        "o2", organization="Studio", phones=["555-0002"], photo=b"photo-2"
    )
    merger = ContactMerger(InMemoryContactStore())

    merged = merger.merge_fields(target, [target, other, another])

    assert merged.identifier == "t"
    assert list(merged.phones) == [
        LabeledValue("cell", "555 0001"),
        LabeledValue("", "5550002"),
    ]
    assert [e.value for e in merged.emails] == ["Tom@Example.com", "t.hardy@example.com"]
    assert len(merged.addresses) == 2
    assert merged.organization == "Studio"
    assert merged.job_title == "Actor"
    assert merged.photo == b"photo-1"

    # Inputs are untouched and the target's own values win
    assert len(target.phones) == 3
    with_photo = target.with_fields(photo=b"own", organization="Own Corp")
    merged = merger.merge_fields(with_photo, [with_photo, other, another])
    assert merged.photo == b"own"
    assert merged.organization == "Own Corp"


def test_merge_target_selection():
    z = ContactRecord("z", phones=["222"])
    m = ContactRecord("m", phones=["222"])

    assert ContactMerger(InMemoryContactStore()).select_target([z, m]).identifier == "z"
    assert (
        ContactMerger(InMemoryContactStore(), tie_break_by_id=True)
        .select_target([z, m])
        .identifier
        == "m"
    )


def test_merge_fetch_failure():
    a, b, c = sample_contacts()
    for error in (StoreFetchFailure("gone", "a"), KeyError("a")):
        store = RecordingStore([a, b, c], fetch_error=error)
        merger = ContactMerger(store)

        with pytest.raises(StoreFetchFailure) as excinfo:
            merger.merge([a, b])

        if not isinstance(error, StoreFetchFailure):
            assert excinfo.value.__cause__ is error
        assert store.count("execute_transaction") == 0
        assert merger.state == MergeState.FAILED
        assert store.fetch_all() == [a, b, c]


def test_merge_transaction_failure():
    a, b, c = sample_contacts()
    for error in (StoreTransactionFailure("rejected"), RuntimeError("disk full")):
        store = RecordingStore([a, b, c], commit_error=error)
        merger = ContactMerger(store)

        with pytest.raises(StoreTransactionFailure) as excinfo:
            merger.merge([a, b])

        if not isinstance(error, StoreTransactionFailure):
            assert excinfo.value.__cause__ is error
        assert store.count("execute_transaction") == 1
        assert merger.state == MergeState.FAILED
        assert store.fetch_all() == [a, b, c]


def test_merge_group_with_deselection():
    p, q, r = chain_contacts()
    store = InMemoryContactStore([q, p, r])
    group = ClusterBuilder().build([q, p, r])[0]
    merger = ContactMerger(store)

    result = merger.merge_group(group, ["q", "r"])

    assert result.target_identifier == "q"
    assert result.deleted == ("r",)
    assert "p" in store
    assert "r" not in store

    with pytest.raises(InsufficientSelection):
        merger.merge_group(group, ["q"])


def test_merges_do_not_overlap():
    contacts = [ContactRecord(f"c{i}", phones=[f"55500{i // 2}"]) for i in range(8)]
    store = InMemoryContactStore(contacts)
    merger = ContactMerger(store)
    pairs = [contacts[i:i + 2] for i in range(0, 8, 2)]
    errors = []

    def run(pair):
        try:
            merger.merge(pair)
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=run, args=(pair,)) for pair in pairs]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert [c.identifier for c in store.fetch_all()] == ["c0", "c2", "c4", "c6"]


def test_delete_contacts():
    a, b, c = sample_contacts()
    store = RecordingStore([a, b, c])
    merger = ContactMerger(store)

    assert merger.delete_contacts([b, c]) == ["b", "c"]
    assert store.fetch_all() == [a]
    assert ("execute_transaction", None, ["b", "c"]) in store.calls

    with pytest.raises(InsufficientSelection):
        merger.delete_contacts([])


# --- Store Tests ---
def test_memory_store_transactions_are_all_or_nothing():
    a, b, c = sample_contacts()
    store = InMemoryContactStore([a, b, c])
    changed = a.with_fields(job_title="CEO")

    bad_transactions = [
        (changed, ["b", "missing"]),
        (ContactRecord("missing"), ["b"]),
        (changed, ["a"]),
        (changed, ["b", "b"]),
        (None, ["c", "b", "c"]),
    ]
    for update, deletes in bad_transactions:
        with pytest.raises(StoreTransactionFailure):
            store.execute_transaction(update, deletes)
        assert store.fetch_all() == [a, b, c]

    with pytest.raises(StoreFetchFailure):
        store.fetch_mutable("missing")


# --- Session Tests ---
def test_session_refetches_merged_target():
    a, b, c = sample_contacts()
    store = RecordingStore([a, b, c])
    session = DedupeSession(store)

    groups = session.scan()
    assert len(groups) == 1

    result = session.merge(groups[0])
    assert session.groups == []
    assert store.count("fetch_mutable") == 1

    records = session.records
    assert [r.identifier for r in records] == ["a", "c"]
    assert records[0] == result.merged
    assert store.count("fetch_mutable") == 2

    session.records
    assert store.count("fetch_mutable") == 2
    assert session.rescan() == []


def test_session_incomplete():
    a, b, c = sample_contacts()
    session = DedupeSession(InMemoryContactStore([a, b, c]))
    session.scan()
    assert [r.identifier for r in session.incomplete()] == ["b"]


# --- File Tests ---
def test_vcard_parse():
    contacts = VCardHandler().parse(VCARD_TEXT)
    assert len(contacts) == 2

    jane, joe = contacts
    assert jane.identifier == "jane-1"
    assert (jane.given_name, jane.family_name) == ("Jane", "Doe")
    assert jane.organization == "Acme"
    assert jane.job_title == "Engineer"
    assert jane.phones == (LabeledValue("cell", "+1 650-253-0000"),)
    assert jane.emails == (LabeledValue("work", "jane@acme.com"),)
    assert jane.addresses[0].label == "home"
    assert jane.addresses[0].value.street == "1 Main St"
    assert jane.addresses[0].value.postal_code == "62701"

    assert joe.identifier == "vcard-1"
    assert joe.given_name == "Joe"
    assert joe.phones == (LabeledValue("", "555-0100"),)


def test_vcard_store_merge(tmp_path):
    a, b, c = sample_contacts()
    path = tmp_path / "contacts.vcf"
    VCardHandler().write_vcard([a, b, c], str(path))
    store = VCardContactStore(str(path))

    loaded = store.fetch_all()
    assert [r.identifier for r in loaded] == ["a", "b", "c"]
    assert loaded[0].phones == (LabeledValue("cell", "5551234"),)
    assert loaded[1].emails == (LabeledValue("", "b@x.com"),)

    session = DedupeSession(store)
    groups = session.scan()
    session.merge(groups[0])

    reloaded = VCardContactStore(str(path)).fetch_all()
    assert [r.identifier for r in reloaded] == ["a", "c"]
    assert [e.value for e in reloaded[0].emails] == ["b@x.com"]
    assert list(tmp_path.iterdir()) == [path]


def test_vcard_store_failures(tmp_path):
    a, b, c = sample_contacts()
    path = tmp_path / "contacts.vcf"
    VCardHandler().write_vcard([a, b], str(path))
    before = path.read_bytes()
    store = VCardContactStore(str(path))

    with pytest.raises(StoreTransactionFailure):
        store.execute_transaction(a, ["b", "c"])
    assert path.read_bytes() == before

    with pytest.raises(StoreFetchFailure):
        store.fetch_mutable("c")
    with pytest.raises(StoreFetchFailure):
        VCardContactStore(str(tmp_path / "missing.vcf")).fetch_mutable("a")


def test_csv_reading(tmp_path):
    path = tmp_path / "contacts.csv"
    path.write_text(
        "First Name,Last Name,Phone,Email,Company\n"
        "Ann,Lee,555-1234; 555-9999,ann@x.com,Acme\n"
        "Bob,,5559999,,\n"
        "Cy,Doe,5550000,,,extra\n",
        encoding="utf-8",
    )

    contacts = CSVHandler().read_csv(str(path))

    assert [c.identifier for c in contacts] == ["csv-1", "csv-2", "csv-3"]
    ann = contacts[0]
    assert (ann.given_name, ann.family_name, ann.organization) == ("Ann", "Lee", "Acme")
    assert [p.value for p in ann.phones] == ["555-1234", "555-9999"]
    assert [e.value for e in ann.emails] == ["ann@x.com"]
    assert contacts[1].family_name == ""

    groups = ClusterBuilder().build(contacts)
    assert [g.identifiers for g in groups] == [["csv-1", "csv-2"]]


def test_duplicate_report(tmp_path):
    groups = ClusterBuilder().build(sample_contacts())
    df = build_duplicate_report(groups)

    assert list(df.columns) == REPORT_COLUMNS
    assert df["Identifier"].tolist() == ["a", "b"]
    assert df["Completeness"].tolist() == [7, 5]
    assert df["Match Reason"].tolist() == ["", "phone"]
    assert df["Addresses"].tolist() == ["", ""]

    output = tmp_path / "report.csv"
    write_duplicate_report(groups, str(output))
    assert len(pd.read_csv(output)) == 2


# --- Validation Tests ---
def test_validation():
    contact = ContactRecord("v", given_name="Val", phones=["n/a"], emails=["not-an-email"])

    results = validate_contact_record(contact, ValidationLevel.BASIC)
    assert results["errors"] == []
    assert len(results["warnings"]) == 2

    results = validate_contact_record(contact, ValidationLevel.STRICT)
    assert len(results["errors"]) == 1

    assert validate_contact_record(contact, ValidationLevel.NONE) == {
        "errors": [],
        "warnings": [],
    }


def test_phone_processor():
    processor = PhoneProcessor("US")
    assert processor.is_valid_phone("650-253-0000")
    assert not processor.is_valid_phone("12")
    assert not processor.is_valid_phone("")
    assert processor.format_e164("650-253-0000") == "+16502530000"
    assert processor.format_e164("n/a") == "n/a"


# --- Command Line Tests ---
def test_cli_scan_and_merge(tmp_path, capsys):
    a, b, c = sample_contacts()
    path = tmp_path / "contacts.vcf"
    report = tmp_path / "out" / "report.csv"
    VCardHandler().write_vcard([a, b, c], str(path))

    assert main.main(["scan", str(path), "--report", str(report)]) == 0
    assert "Group 1 (2 contacts)" in capsys.readouterr().out
    assert report.exists()

    assert main.main(["merge", str(path), "--group", "3"]) == 1

    assert main.main(["merge", str(path), "--group", "1"]) == 0
    assert "Merged 2 contacts into Ann Lee (a)" in capsys.readouterr().out
    assert [r.identifier for r in VCardContactStore(str(path)).fetch_all()] == ["a", "c"]

    assert main.main(["scan", str(path)]) == 0
    assert "No duplicate contacts found" in capsys.readouterr().out


def test_cli_incomplete_and_bad_input(tmp_path, capsys):
    path = tmp_path / "contacts.csv"
    path.write_text("First Name,Phone\nAnn,5551234\n,5550000\n", encoding="utf-8")

    assert main.main(["incomplete", str(path)]) == 0
    out = capsys.readouterr().out
    assert "1 contacts are missing a name or phone number" in out
    assert "csv-2" in out

    with pytest.raises(SystemExit):
        main.main(["merge", str(path), "--group", "1"])
    assert main.main(["scan", str(tmp_path / "contacts.txt")]) == 1
