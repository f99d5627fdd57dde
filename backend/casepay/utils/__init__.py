from casepay.utils.hashing import generate_hash, generate_chain_hash
from casepay.utils.validators import (
    validate_amount, validate_currency, validate_case_prefix,
    normalize_case_type, calculate_filing_fee,
)

__all__ = [
    "generate_hash", "generate_chain_hash",
    "validate_amount", "validate_currency", "validate_case_prefix",
    "normalize_case_type", "calculate_filing_fee",
]
