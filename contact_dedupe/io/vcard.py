import logging
import os
import tempfile
from typing import List, Optional, Sequence
import vobject
from vobject.base import ParseError

from ..core.contact import ContactRecord, LabeledValue, PostalAddress
from ..core.errors import StoreFetchFailure, StoreTransactionFailure
from ..core.store import check_transaction
from ..core.types import ValidationLevel
from ..processors.phone import PhoneProcessor
from ..settings import DEFAULT_ENCODING
from ..utils.validation import log_validation_results, validate_contact_record

logger = logging.getLogger(__name__)


class VCardHandler:
    """Handles reading and writing contacts in vCard format"""

    def __init__(self, validation_level: ValidationLevel = ValidationLevel.BASIC):
        self.validation_level = validation_level
        self.phone_processor = PhoneProcessor()

    def read_vcard(self, filepath: str) -> List[ContactRecord]:
        """Read contacts from vCard file"""
        with open(filepath, "r", encoding=DEFAULT_ENCODING) as f:
            return self.parse(f.read())

    def parse(self, text: str) -> List[ContactRecord]:
        contacts = []
        for index, vcard in enumerate(vobject.readComponents(text)):
            contact = self._parse_vcard(vcard, f"vcard-{index}")
            log_validation_results(
                validate_contact_record(
                    contact, self.validation_level, self.phone_processor
                ),
                logger,
            )
            contacts.append(contact)
        return contacts

    def write_vcard(self, contacts: Sequence[ContactRecord], filepath: str) -> None:
        """Write contacts to vCard file"""
        with open(filepath, "w", encoding=DEFAULT_ENCODING) as f:
            f.write(self.serialize(contacts))

    def serialize(self, contacts: Sequence[ContactRecord]) -> str:
        return "".join(self._create_vcard(c).serialize() for c in contacts)

    def _parse_vcard(self, vcard: vobject.vCard, default_id: str) -> ContactRecord:
        """Convert vCard to a contact record"""
        given_name = family_name = ""
        # Handle structured name
        if hasattr(vcard, "n") and vcard.n.value:
            given_name = _text(vcard.n.value.given)
            family_name = _text(vcard.n.value.family)

        organization = ""
        if hasattr(vcard, "org") and vcard.org.value:
            org = vcard.org.value
            organization = _text(org[0] if isinstance(org, list) else org)

        photo = None
        if hasattr(vcard, "photo") and isinstance(vcard.photo.value, bytes):
            photo = vcard.photo.value

        return ContactRecord(
            identifier=self._get_vcard_value(vcard, "uid") or default_id,
            given_name=given_name,
            family_name=family_name,
            phones=self._get_labeled_values(vcard, "tel"),
            emails=self._get_labeled_values(vcard, "email"),
            organization=organization,
            job_title=self._get_vcard_value(vcard, "title"),
            addresses=tuple(
                LabeledValue(_label(adr), self._parse_vcard_address(adr))
                for adr in getattr(vcard, "adr_list", [])
                if adr.value
            ),
            photo=photo,
        )

    def _create_vcard(self, contact: ContactRecord) -> vobject.vCard:
        """Convert contact record to vCard object"""
        vcard = vobject.vCard()

        # Add basic fields
        self._add_vcard_field(vcard, "uid", contact.identifier)
        self._add_vcard_field(vcard, "fn", contact.display_name)
        vcard.add("n").value = vobject.vcard.Name(
            family=contact.family_name or "", given=contact.given_name or ""
        )

        if contact.organization:
            vcard.add("org").value = [contact.organization]
        self._add_vcard_field(vcard, "title", contact.job_title)

        for phone in contact.phones:
            self._add_vcard_field(vcard, "tel", phone.value, phone.label)
        for email in contact.emails:
            self._add_vcard_field(vcard, "email", email.value, email.label)
        for address in contact.addresses:
            self._add_vcard_address(vcard, address)

        if contact.photo:
            photo = vcard.add("photo")
            photo.encoding_param = "b"
            photo.value = contact.photo

        return vcard

    @staticmethod
    def _get_vcard_value(vcard: vobject.vCard, field: str) -> str:
        """Safely get single value from vCard field"""
        if hasattr(vcard, field):
            return _text(getattr(vcard, field).value)
        return ""

    @staticmethod
    def _get_labeled_values(vcard: vobject.vCard, field: str) -> List[LabeledValue]:
        """Safely get multiple values from vCard field with their TYPE label"""
        values = []
        for line in getattr(vcard, f"{field}_list", []):
            values.append(LabeledValue(_label(line), _text(line.value)))
        return values

    @staticmethod
    def _parse_vcard_address(adr) -> PostalAddress:
        """Parse vCard address into a postal address"""
        return PostalAddress(
            po_box=_text(adr.value.box),
            extended=_text(adr.value.extended),
            street=_text(adr.value.street),
            city=_text(adr.value.city),
            region=_text(adr.value.region),
            postal_code=_text(adr.value.code),
            country=_text(adr.value.country),
        )

    @staticmethod
    def _add_vcard_field(
        vcard: vobject.vCard, field: str, value: str, label: str = ""
    ) -> None:
        """Add field to vCard"""
        if value:
            line = vcard.add(field)
            line.value = value
            if label:
                line.type_param = label

    @staticmethod
    def _add_vcard_address(vcard: vobject.vCard, address: LabeledValue) -> None:
        """Add address to vCard"""
        postal = address.value
        line = vcard.add("adr")
        line.value = vobject.vcard.Address(
            box=postal.po_box,
            extended=postal.extended,
            street=postal.street,
            city=postal.city,
            region=postal.region,
            code=postal.postal_code,
            country=postal.country,
        )
        if address.label:
            line.type_param = address.label


class VCardContactStore:
    """Contact store backed by a single .vcf file.

    A transaction rewrites the whole file into a temporary sibling and moves
    it over the original, so readers see either the old or the new file.
    """

    def __init__(self, filepath: str, handler: Optional[VCardHandler] = None):
        self.filepath = str(filepath)
        self.handler = handler or VCardHandler()

    def fetch_all(self) -> List[ContactRecord]:
        return self.handler.read_vcard(self.filepath)

    def fetch_mutable(self, identifier: str) -> ContactRecord:
        try:
            contacts = self.fetch_all()
        except (OSError, ParseError) as e:
            raise StoreFetchFailure(
                f"Could not read {self.filepath}: {e}", identifier
            ) from e

        for contact in contacts:
            if contact.identifier == identifier:
                return contact
        raise StoreFetchFailure(f"Contact not found: {identifier}", identifier)

    def execute_transaction(
        self, update: Optional[ContactRecord], deletes: Sequence[str]
    ) -> None:
        try:
            contacts = self.fetch_all()
        except (OSError, ParseError) as e:
            raise StoreTransactionFailure(f"Could not read {self.filepath}: {e}") from e

        check_transaction((c.identifier for c in contacts), update, deletes)

        result = []
        for contact in contacts:
            if contact.identifier in deletes:
                continue
            if update is not None and contact.identifier == update.identifier:
                contact = update
            result.append(contact)

        self._replace_file(self.handler.serialize(result))
        logger.info(
            f"Wrote {len(result)} contacts to {self.filepath} "
            f"({len(deletes)} deleted)"
        )

    def _replace_file(self, content: str) -> None:
        directory = os.path.dirname(os.path.abspath(self.filepath))
        fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".vcf.tmp")
        try:
            with os.fdopen(fd, "w", encoding=DEFAULT_ENCODING) as f:
                f.write(content)
            os.replace(tmp_path, self.filepath)
        except OSError as e:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise StoreTransactionFailure(
                f"Could not write {self.filepath}: {e}"
            ) from e


def _text(value) -> str:
    """vobject hands back either a string or a list of strings"""
    if value is None:
        return ""
    if isinstance(value, list):
        return " ".join(str(v) for v in value if v).strip()
    return str(value).strip()


def _label(line) -> str:
    types = line.params.get("TYPE", [])
    return types[0].lower() if types else ""
