"""
Known exchange programs and their operation signatures.

Program id -> exchange name -> {operation name: 8-byte leading signature}.
Anchor programs use sha256("global:<name>")[:8]. Programs whose signatures
are not catalogued carry an empty table: their instructions are still
attributed to the exchange, with the operation left unmatched.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

SIGNATURE_LEN = 8


@dataclass(frozen=True)
class DexProgram:
    program_id: str
    name: str
    signatures: Mapping[str, bytes] = field(default_factory=dict)

    def match(self, payload: bytes) -> str | None:
        """Operation whose signature equals the first 8 payload bytes, if any."""
        if len(payload) < SIGNATURE_LEN:
            return None
        head = payload[:SIGNATURE_LEN]
        for operation, signature in self.signatures.items():
            if head == signature:
                return operation
        return None


def _sig(hex_str: str) -> bytes:
    raw = bytes.fromhex(hex_str)
    if len(raw) != SIGNATURE_LEN:
        raise ValueError(f"signature must be {SIGNATURE_LEN} bytes: {hex_str}")
    return raw


_PROGRAMS = (
    DexProgram(
        "JUP4Fb2cqiRUcaTHdrPC8h2gNsA2ETXiPDD33WcGuJB",
        "Jupiter",
        {
            "shared_route": _sig("8b8f1f8c1c1a6a4a"),
            "route": _sig("8b8f1f8c1c1a6a4a"),
        },
    ),
    DexProgram(
        "JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4",
        "Jupiter",
        {
            "route": _sig("e517cb977ae3ad2a"),
            "shared_accounts_route": _sig("c1209b3341d69c81"),
            "exact_out_route": _sig("d033ef977b2bed5c"),
            "shared_accounts_exact_out_route": _sig("b0d169a89a7d453e"),
        },
    ),
    DexProgram(
        "9W959DqEETiGZocYWCQPaJ6sBmUzgfxXfqGeTEdp3aQP",
        "Orca",
        {"swap": _sig("f8c69e91e17587c8")},
    ),
    DexProgram(
        "whirLbMiicVdio4qvUfM5KAg6Ct8VwpYzGff3uctyCc",
        "Orca",
        {
            "swap": _sig("f8c69e91e17587c8"),
            "swap_v2": _sig("2b04ed0b1ac91e62"),
            "two_hop_swap": _sig("c360ed6c44a2dbe6"),
        },
    ),
    DexProgram(
        "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8",
        "Raydium",
        {"swap": _sig("090a901d0c0a0b0c")},
    ),
    DexProgram(
        "CAMMCzo5YL8w4VFF8KVHrK22GGUsp5VTaW7grrKgrWqK",
        "Raydium",
        {"swap": _sig("f8c69e91e17587c8"), "swap_v2": _sig("2b04ed0b1ac91e62")},
    ),
    DexProgram(
        "2wT8Yq49kHgDzXuPxZSaeLaH1qbmGXtEyPy64bL7aD3c",
        "Lifinity",
        {"swap": _sig("2e6b415a9f8b7c3d")},
    ),
    DexProgram(
        "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin",
        "Serum",
        {"new_order": _sig("102c0b6e3f548a9c")},
    ),
    DexProgram(
        "srmqPvymJeFKQ4zGQed1GFppgkRHL9kaELCbyksJtPX",
        "OpenBook",
        {"new_order": _sig("102c0b6e3f548a9c")},
    ),
    DexProgram("PhoeNiXZ8ByJGLkxNfZRnkUfjvmuYqLR89jjFHGqdXY", "Phoenix"),
    DexProgram("SSwpMgqNDsyV7mAgN9ady4bDVu5ySjmmXejXvy2vLt1", "Step"),
    DexProgram("cysPXAjehMpVKUapzbMCCnpFxUFFryEWEaLgnb9NrR8", "Cykura"),
    DexProgram("7WduLbRfYhTJktjLw5FDEyrqoEv61aTTCuGAetgLjzN5", "GooseFX"),
    DexProgram("CTMAxxk34HjKWxQ3QLZK1HpaLXmBveao3ESePXbiyfzh", "Cropper"),
    DexProgram("6MLxLqiXaaSUpkgMnWDTuejNZEz3kE7k2woyHGVFw319", "Crema"),
    DexProgram("AMM55ShdkoGRB5jVYPjWziwk8m5MpwyDgsMWHaMSQWH6", "Aldrin"),
    DexProgram(
        "pAMMBay6oceH9fJKBRHGP5D4bD4sWpmSwMn52FMfXEA",
        "Pumpswap",
        {"buy": _sig("66063d1201daebea"), "sell": _sig("33e685a4017f83ad")},
    ),
    DexProgram(
        "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P",
        "Pump.fun",
        {"buy": _sig("66063d1201daebea"), "sell": _sig("33e685a4017f83ad")},
    ),
    DexProgram(
        "Eo7WjKq67rjJQSZxS6z3YkapzY3eMj6Xy8X5EQVn5UaB",
        "Meteora",
        {"swap": _sig("f8c69e91e17587c8")},
    ),
    DexProgram(
        "LBUZKhRxPF3XUpBCjp4YzTKgLccjZhTSDM9YuVaPwxo",
        "Meteora",
        {"swap": _sig("f8c69e91e17587c8")},
    ),
)

DEX_PROGRAMS: Mapping[str, DexProgram] = MappingProxyType({p.program_id: p for p in _PROGRAMS})


def find_dex(program_id: str) -> DexProgram | None:
    return DEX_PROGRAMS.get(program_id)
