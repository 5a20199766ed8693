"""
Input validation and sanitization for customer-facing and admin forms.

Every predicate is independent and side-effect free; callers decide which
message to raise. Bounds:

    name          2-100 chars, letters (incl. accented), spaces, . - '
    address       5-200 chars, as name plus digits and commas
    zip code      3-10 chars, digits and spaces
    phone         <= 20 chars, digits, spaces, + - ( )
    email         <= 254 chars, something@something.tld
    quantity      integer 1-1000
    price         finite number 0-10000
    order notes   <= 1000 chars after sanitization
"""

import math
import re
from decimal import Decimal
from typing import Any


EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^[0-9\s+\-()]+$")
_LETTERS = r"a-zA-ZÀ-ÿĀ-ſƀ-ɏ"
NAME_RE = re.compile(rf"^[{_LETTERS}\s.\-']+$")
ADDRESS_RE = re.compile(rf"^[{_LETTERS}0-9\s.\-,']+$")
ZIP_RE = re.compile(r"^[0-9\s]+$")

_ANGLE_BRACKETS_RE = re.compile(r"[<>]")
_JS_SCHEME_RE = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER_RE = re.compile(r"on\w+=", re.IGNORECASE)

MAX_QUANTITY = 1000
MAX_PRICE = Decimal("10000")
MAX_NOTES_LENGTH = 1000


def sanitize_string(value: Any, max_length: int = 500) -> str:
    """Strip markup-like substrings and truncate to ``max_length``."""
    if not isinstance(value, str):
        return ""

    sanitized = _ANGLE_BRACKETS_RE.sub("", value)
    sanitized = _JS_SCHEME_RE.sub("", sanitized)
    sanitized = _EVENT_HANDLER_RE.sub("", sanitized)
    sanitized = sanitized.strip()

    return sanitized[:max_length]


def sanitize_object(obj: Any) -> Any:
    """Recursively sanitize every string inside dicts and lists."""
    if isinstance(obj, str):
        return sanitize_string(obj)
    if isinstance(obj, list):
        return [sanitize_object(item) for item in obj]
    if isinstance(obj, dict):
        return {key: sanitize_object(value) for key, value in obj.items()}
    return obj


def validate_email(email: Any) -> bool:
    if not email or not isinstance(email, str):
        return False
    return bool(EMAIL_RE.match(email.strip())) and len(email) <= 254


def validate_phone(phone: Any) -> bool:
    if not phone or not isinstance(phone, str):
        return False
    return bool(PHONE_RE.match(phone.strip())) and len(phone) <= 20


def validate_name(name: Any) -> bool:
    if not name or not isinstance(name, str):
        return False
    return bool(NAME_RE.match(name.strip())) and 2 <= len(name) <= 100


def validate_address(address: Any) -> bool:
    if not address or not isinstance(address, str):
        return False
    return bool(ADDRESS_RE.match(address.strip())) and 5 <= len(address) <= 200


def validate_zip_code(zip_code: Any) -> bool:
    if not zip_code or not isinstance(zip_code, str):
        return False
    return bool(ZIP_RE.match(zip_code.strip())) and 3 <= len(zip_code) <= 10


def validate_quantity(quantity: Any) -> bool:
    # bool is an int subclass; True is not a quantity
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        return False
    return 0 < quantity <= MAX_QUANTITY


def validate_price(price: Any) -> bool:
    if isinstance(price, bool) or not isinstance(price, (int, float, Decimal)):
        return False
    if isinstance(price, Decimal):
        if not price.is_finite():
            return False
    elif not math.isfinite(price):
        return False
    return 0 <= price <= MAX_PRICE


def validate_order_notes(notes: Any) -> bool:
    if not notes:
        return True
    if not isinstance(notes, str):
        return False
    return len(sanitize_string(notes, max_length=len(notes))) <= MAX_NOTES_LENGTH
