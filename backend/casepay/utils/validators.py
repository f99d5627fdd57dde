"""
Validators — Rule-based checks for amounts, currencies and case metadata.
"""
import re


HIGH_FEE_CASE_TYPES = {"criminal", "commercial", "cybercrime"}

CASE_TYPES = {
    "civil", "criminal", "family", "commercial", "cybercrime", "constitutional",
    "administrative", "tax", "consumer", "election", "special", "other",
}


def validate_amount(amount) -> tuple[bool, str]:
    """Amount must be a positive integer in the smallest currency unit (e.g. paise)."""
    # bool is an int subclass; True is not a price
    if isinstance(amount, bool) or not isinstance(amount, int):
        return False, "Amount must be an integer in the smallest currency unit"
    if amount <= 0:
        return False, "Amount must be greater than 0"
    return True, "Valid"


def validate_currency(currency: str | None, supported: list[str]) -> bool:
    """Three-letter ISO code from the configured list. Exact match, no case folding."""
    if not currency or not re.match(r"^[A-Z]{3}$", currency):
        return False
    return currency in supported


def validate_case_prefix(prefix: str | None) -> bool:
    """Case number prefix: 1-16 uppercase letters or digits, starting with a letter."""
    if not prefix:
        return False
    return bool(re.match(r"^[A-Z][A-Z0-9]{0,15}$", prefix))


def normalize_case_type(case_type: str | None) -> str:
    """Lower-case the case type; unknown or missing types become 'civil'."""
    normalized = (case_type or "civil").strip().lower()
    return normalized if normalized in CASE_TYPES else "civil"


def calculate_filing_fee(case_type: str, high_fee: int, standard_fee: int) -> int:
    """Filing fee in paise: criminal, commercial and cybercrime pay the high fee."""
    if normalize_case_type(case_type) in HIGH_FEE_CASE_TYPES:
        return high_fee
    return standard_fee
