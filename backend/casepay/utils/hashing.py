"""
Cryptographic Hashing Utilities — SHA-256 chain hashes for the audit trail
and HMAC-SHA256 digests for gateway signatures.
"""
import hashlib
import hmac
import json


def generate_hash(data: dict) -> str:
    """SHA-256 of a dictionary (deterministic, sorted keys)."""
    canonical = json.dumps(data, sort_keys=True, default=str).encode("utf-8")
    return hashlib.sha256(canonical).hexdigest()


def generate_chain_hash(current_data: dict, previous_hash: str = "") -> str:
    """Chain hash: SHA-256(previous_hash + SHA-256(current_payload)).
    Editing or removing any earlier entry changes every hash after it.
    """
    current_hash = generate_hash(current_data)
    chain_input = f"{previous_hash}{current_hash}".encode("utf-8")
    return hashlib.sha256(chain_input).hexdigest()


def hmac_sha256_hex(secret: str, message: str) -> str:
    """Lower-case hex HMAC-SHA256 of `message` keyed with `secret` (both UTF-8)."""
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()
