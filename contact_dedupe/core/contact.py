from dataclasses import dataclass, field, replace
from typing import Any, Dict, NamedTuple, Optional, Tuple


class LabeledValue(NamedTuple):
    """A contact field value together with its label ("home", "work", ...)"""

    label: str
    value: Any


@dataclass(frozen=True)
class PostalAddress:
    street: str = ""
    city: str = ""
    region: str = ""
    postal_code: str = ""
    country: str = ""
    po_box: str = ""
    extended: str = ""

    @property
    def label(self) -> str:
        """Single line rendering used for display and reports"""
        parts = [
            self.po_box,
            self.extended,
            self.street,
            self.city,
            self.region,
            self.postal_code,
            self.country,
        ]
        return ", ".join(p for p in parts if p)

    def to_dict(self) -> Dict[str, str]:
        return {
            "street": self.street,
            "locality": self.city,
            "region": self.region,
            "postal_code": self.postal_code,
            "country": self.country,
            "po_box": self.po_box,
            "extended": self.extended,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "PostalAddress":
        return cls(
            street=data.get("street", "") or "",
            city=data.get("locality", data.get("city", "")) or "",
            region=data.get("region", "") or "",
            postal_code=data.get("postal_code", "") or "",
            country=data.get("country", "") or "",
            po_box=data.get("po_box", "") or "",
            extended=data.get("extended", "") or "",
        )


@dataclass(frozen=True)
class ContactRecord:
    """Immutable snapshot of one contact as handed over by a contact store.

    Phones, emails and addresses keep their store order. Nothing in the
    engine modifies a record; merges build a new one with ``with_fields``.
    """

    identifier: str
    given_name: str = ""
    family_name: str = ""
    phones: Tuple[LabeledValue, ...] = field(default_factory=tuple)
    emails: Tuple[LabeledValue, ...] = field(default_factory=tuple)
    organization: str = ""
    job_title: str = ""
    addresses: Tuple[LabeledValue, ...] = field(default_factory=tuple)
    photo: Optional[bytes] = None

    def __post_init__(self):
        # Lists and bare values handed in by adapters are frozen into labeled tuples
        for name in ("phones", "emails", "addresses"):
            values = getattr(self, name)
            if isinstance(values, tuple) and all(
                isinstance(v, LabeledValue) for v in values
            ):
                continue
            object.__setattr__(self, name, tuple(_labeled(v) for v in values))

        # Addresses given as plain text or dicts become postal addresses
        if not all(isinstance(a.value, PostalAddress) for a in self.addresses):
            object.__setattr__(
                self,
                "addresses",
                tuple(LabeledValue(a.label, _postal(a.value)) for a in self.addresses),
            )

    @property
    def full_name(self) -> str:
        return " ".join(filter(None, [self.given_name, self.family_name]))

    @property
    def display_name(self) -> str:
        """Best available name for listings"""
        if self.full_name:
            return self.full_name
        if self.organization:
            return self.organization
        if self.emails:
            return self.emails[0].value
        if self.phones:
            return self.phones[0].value
        return "Unknown Contact"

    def with_fields(self, **changes) -> "ContactRecord":
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, data: Dict) -> "ContactRecord":
        """Create a ContactRecord from a dictionary produced by ``to_dict``"""
        return cls(
            identifier=data["Identifier"],
            given_name=data.get("FirstName", "") or "",
            family_name=data.get("LastName", "") or "",
            phones=tuple(_labeled(p) for p in data.get("Telephone", [])),
            emails=tuple(_labeled(e) for e in data.get("Email", [])),
            organization=data.get("Organization", "") or "",
            job_title=data.get("JobTitle", "") or "",
            addresses=tuple(
                LabeledValue(label, PostalAddress.from_dict(address))
                for label, address in (_labeled(a) for a in data.get("Address", []))
            ),
            photo=data.get("Photo"),
        )

    def to_dict(self) -> Dict:
        """Convert record to dictionary with standardized field names"""
        return {
            "Identifier": self.identifier,
            "Full Name": self.full_name,
            "FirstName": self.given_name,
            "LastName": self.family_name,
            "Telephone": [tuple(p) for p in self.phones],
            "Email": [tuple(e) for e in self.emails],
            "Organization": self.organization,
            "JobTitle": self.job_title,
            "Address": [(a.label, a.value.to_dict()) for a in self.addresses],
            "Photo": self.photo,
        }


def _labeled(item) -> LabeledValue:
    """Accept either a bare value or a (label, value) pair"""
    if isinstance(item, (tuple, list)) and len(item) == 2:
        return LabeledValue(item[0] or "", item[1])
    return LabeledValue("", item)


def _postal(value) -> PostalAddress:
    if isinstance(value, PostalAddress):
        return value
    if isinstance(value, dict):
        return PostalAddress.from_dict(value)
    if isinstance(value, str):
        return PostalAddress(street=value.strip())
    raise TypeError(f"Unsupported address value: {value!r}")
