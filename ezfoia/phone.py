# ezfoia/phone.py
"""
North-American phone number handling.

Canonical storage is "+1" followed by exactly 10 digits; display is
"(XXX) XXX-XXXX". Partial input never raises, it just yields a shorter
digit string; rejecting incomplete numbers is the caller's job.
"""

import re
from typing import Optional

MAX_DIGITS = 10

_NON_DIGIT = re.compile(r"\D")

NAVIGATION_KEYS = frozenset({
    "Tab", "Enter", "Escape", "ArrowLeft", "ArrowRight", "ArrowUp", "ArrowDown", "Home", "End",
})
DELETE_KEYS = frozenset({"Backspace", "Delete"})


def extract_digits(value: Optional[str]) -> str:
    """Return the (at most 10) national digits of a raw or canonical value."""
    digits = _NON_DIGIT.sub("", value or "")
    if len(digits) == 11 and digits.startswith("1"):
        return digits[1:]
    return digits[:MAX_DIGITS]


def to_e164(digits: str) -> str:
    if not digits:
        return ""
    return f"+1{digits}"


def normalize(value: Optional[str]) -> str:
    return to_e164(extract_digits(value))


def is_complete(value: Optional[str]) -> bool:
    return len(extract_digits(value)) == MAX_DIGITS


def format_display(digits: str) -> str:
    if not digits:
        return ""
    if len(digits) <= 3:
        return f"({digits}"
    if len(digits) <= 6:
        return f"({digits[:3]}) {digits[3:]}"
    return f"({digits[:3]}) {digits[3:6]}-{digits[6:10]}"


def mask_phone(value: Optional[str]) -> Optional[str]:
    """Mask to the last 4 digits: "+15551234567" -> "***4567"."""
    if not value:
        return value
    digits = _NON_DIGIT.sub("", value)
    if len(digits) < 4:
        return "***"
    return f"***{digits[-4:]}"


def to_sms_recipient(value: str) -> str:
    """Digits-only international recipient; numbers without "+" are assumed NANP."""
    digits = _NON_DIGIT.sub("", value)
    return digits if value.startswith("+") else f"1{digits}"


class PhoneKeyBuffer:
    """
    Keystroke-driven phone entry backed by a single digit buffer.

    Deletion always removes the last stored digit, regardless of where a
    text cursor would be. Digits past the tenth are ignored until a deletion.
    """

    def __init__(self, value: Optional[str] = None):
        self._digits = extract_digits(value)

    @property
    def digits(self) -> str:
        return self._digits

    @property
    def value(self) -> str:
        return to_e164(self._digits)

    @property
    def display(self) -> str:
        return format_display(self._digits)

    def handle_key(self, key: str) -> bool:
        """Apply one key press; returns False when the key is rejected."""
        if key in NAVIGATION_KEYS:
            return True
        if key in DELETE_KEYS:
            self._digits = self._digits[:-1]
            return True
        if len(key) == 1 and key.isdigit() and key.isascii():
            if len(self._digits) < MAX_DIGITS:
                self._digits += key
            return True
        return False

    def feed(self, keys) -> str:
        for key in keys:
            self.handle_key(key)
        return self.value
