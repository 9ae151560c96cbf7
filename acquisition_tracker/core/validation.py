"""Token mint address validation."""

from __future__ import annotations

import re

# Base58 alphabet (no 0, O, I, l); mint addresses encode to 32-44 characters
_BASE58_RE = re.compile(r"^[1-9A-HJ-NP-Za-km-z]+$")
MIN_ADDRESS_LEN = 32
MAX_ADDRESS_LEN = 44


def is_valid_token_mint(token: object) -> bool:
    """Return True if token looks like a base58 Solana address."""
    if not isinstance(token, str):
        return False
    if not (MIN_ADDRESS_LEN <= len(token) <= MAX_ADDRESS_LEN):
        return False
    return bool(_BASE58_RE.match(token))
