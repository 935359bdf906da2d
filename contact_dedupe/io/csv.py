import csv
import re
from typing import Dict, List, Optional
from ..core.contact import ContactRecord, LabeledValue, PostalAddress
from ..core.types import ValidationLevel
from ..processors.phone import PhoneProcessor
from ..settings import DEFAULT_ENCODING
from ..utils.validation import log_validation_results, validate_contact_record


class CSVHandler:
    """Reads contacts from CSV exports of other address books"""

    # Common CSV field mappings
    DEFAULT_FIELD_MAP = {
        "Identifier": ["Identifier", "ID", "UID", "Contact ID"],
        "FirstName": ["First Name", "FirstName", "Given Name"],
        "LastName": ["Last Name", "LastName", "Family Name"],
        "Organization": ["Organization", "Company", "Business"],
        "JobTitle": ["Job Title", "JobTitle", "Title"],
        "Email": ["Email", "E-mail", "E-mail Address", "E-mail 1", "Primary Email"],
        "Telephone": ["Phone", "Telephone", "Primary Phone", "Mobile", "Cell"],
        "Address": ["Address", "Home Address", "Primary Address"],
    }

    def __init__(
        self,
        field_map: Optional[Dict] = None,
        validation_level: ValidationLevel = ValidationLevel.BASIC,
    ):
        self.field_map = field_map or self.DEFAULT_FIELD_MAP
        self.validation_level = validation_level
        self.phone_processor = PhoneProcessor()

    def read_csv(self, filepath: str) -> List[ContactRecord]:
        """Read contacts from CSV file"""
        contacts = []
        with open(filepath, "r", encoding=DEFAULT_ENCODING, newline="") as csvfile:
            reader = csv.DictReader(csvfile)
            headers = self._normalize_headers(reader.fieldnames or [])

            for row_number, row in enumerate(reader, start=1):
                normalized_row = self._normalize_row(row, headers)
                contact = self._to_record(normalized_row, f"csv-{row_number}")
                log_validation_results(
                    validate_contact_record(
                        contact, self.validation_level, self.phone_processor
                    )
                )
                contacts.append(contact)

        return contacts

    def _to_record(self, row: Dict[str, str], default_id: str) -> ContactRecord:
        return ContactRecord(
            identifier=row.get("Identifier") or default_id,
            given_name=row.get("FirstName", ""),
            family_name=row.get("LastName", ""),
            phones=[LabeledValue("", p) for p in self._split_merged_fields(row.get("Telephone"))],
            emails=[LabeledValue("", e) for e in self._split_merged_fields(row.get("Email"))],
            organization=row.get("Organization", ""),
            job_title=row.get("JobTitle", ""),
            # Addresses contain commas, so only ";" separates them
            addresses=[
                LabeledValue("", PostalAddress(street=a.strip()))
                for a in (row.get("Address") or "").split(";")
                if a.strip()
            ],
        )

    def _normalize_headers(self, headers: List[str]) -> Dict[str, str]:
        """Map CSV headers to standardized field names"""
        header_map = {}
        for header in headers:
            normalized = None
            for std_field, variations in self.field_map.items():
                if header in variations or header == std_field:
                    normalized = std_field
                    break
            header_map[header] = normalized or header
        return header_map

    def _normalize_row(self, row: Dict, header_map: Dict) -> Dict:
        """Convert CSV row to standardized format"""
        normalized = {}
        for original_header, value in row.items():
            if original_header is None:  # cells beyond the header row
                continue
            normalized_header = header_map.get(original_header, original_header)
            if value:  # Only include non-empty values
                normalized[normalized_header] = value.strip()
        return normalized

    def _split_merged_fields(self, value: Optional[str]) -> List[str]:
        """Split merged fields (e.g., multiple emails) into list"""
        if not value:
            return []
        return [v.strip() for v in re.split(r"[;,]", value) if v.strip()]
