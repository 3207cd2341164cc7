import re
from typing import Optional

PHONE_REGEX = re.compile(r"^\+?[0-9\s\-()]+$")
FINGERPRINT_REGEX = re.compile(r"^[A-Za-z0-9_-]{16,128}$")


def validate_phone_number(phone: Optional[str]) -> bool:
    if not phone:
        return False
    if not PHONE_REGEX.match(phone):
        return False
    digits = sum(ch.isdigit() for ch in phone)
    return 7 <= digits <= 15


def validate_fingerprint(fingerprint: Optional[str]) -> bool:
    if not fingerprint:
        return False
    return bool(FINGERPRINT_REGEX.match(fingerprint))
