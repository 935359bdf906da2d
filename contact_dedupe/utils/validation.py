from typing import Dict, List, Optional
import re
import logging

from ..core.contact import ContactRecord
from ..core.types import ValidationLevel, ValidationResults
from ..processors.phone import PhoneProcessor, normalize_phone


def validate_email(email: str) -> bool:
    """Validate email format"""
    if not email:
        return False

    # Basic email regex pattern
    pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
    return bool(re.match(pattern, email))


def validate_contact_record(
    contact: ContactRecord,
    level: ValidationLevel = ValidationLevel.BASIC,
    phone_processor: Optional[PhoneProcessor] = None,
) -> ValidationResults:
    """Check an imported record for problems worth reporting.

    Nothing here changes or rejects the record; the results are only logged.
    """
    validation_results: Dict[str, List[str]] = {"errors": [], "warnings": []}

    if level == ValidationLevel.NONE:
        return validation_results

    phone_processor = phone_processor or PhoneProcessor()
    name = contact.display_name

    if not contact.identifier:
        validation_results["errors"].append("Missing identifier")

    # Phones without digits never take part in matching
    for phone in contact.phones:
        if not normalize_phone(phone.value):
            validation_results["warnings"].append(
                f"Phone without digits for {name}: {phone.value!r}"
            )
        elif level == ValidationLevel.STRICT and not phone_processor.is_valid_phone(
            phone.value
        ):
            validation_results["warnings"].append(
                f"Suspicious phone format for {name}: {phone.value}"
            )

    for email in contact.emails:
        if not validate_email(email.value):
            message = f"Invalid email format for {name}: {email.value}"
            if level == ValidationLevel.STRICT:
                validation_results["errors"].append(message)
            else:
                validation_results["warnings"].append(message)

    if level == ValidationLevel.STRICT and not (contact.given_name or contact.family_name):
        validation_results["warnings"].append(f"Contact {contact.identifier} has no name")

    return validation_results


def log_validation_results(
    results: Dict[str, List[str]], logger: Optional[logging.Logger] = None
) -> None:
    """Log validation results with appropriate severity"""
    if logger is None:
        logger = logging.getLogger(__name__)

    if results["errors"]:
        for error in results["errors"]:
            logger.error(f"Validation error: {error}")

    if results["warnings"]:
        for warning in results["warnings"]:
            logger.warning(f"Validation warning: {warning}")
