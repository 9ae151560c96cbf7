"""
Program instruction matcher.

Resolves each top-level and inner instruction's program through the
transaction's account keys, keeps only instructions of known exchange
programs, and matches the payload's leading 8 bytes against that program's
signature table. Pure: the same transaction always decodes to the same list.
"""

from __future__ import annotations

import base58

from acquisition_tracker.analysis_engine.dex_programs import DexProgram, find_dex
from acquisition_tracker.analysis_engine.models import UNMATCHED_OPERATION, DecodedInstruction
from acquisition_tracker.core.exceptions import DecodeFailure
from acquisition_tracker.solana_listener.models import Instruction, RawTransaction
from acquisition_tracker.tracker_logging import get_logger

logger = get_logger(__name__)


def _get_program_id(account_keys: tuple[str, ...], ix: Instruction) -> str | None:
    """Resolve program id for an instruction (programIdIndex -> account key)."""
    idx = ix.program_id_index
    if not (0 <= idx < len(account_keys)):
        return None
    return account_keys[idx]


def decode_payload(data: str) -> bytes:
    """Decode base58 instruction data; raise DecodeFailure on malformed input."""
    if not data:
        return b""
    try:
        return base58.b58decode(data)
    except ValueError as e:
        raise DecodeFailure(f"instruction data is not base58: {e}") from e


def _decode_one(
    tx: RawTransaction,
    ix: Instruction,
    source_index: int,
    *,
    is_inner: bool = False,
    parent_index: int | None = None,
) -> DecodedInstruction | None:
    program_id = _get_program_id(tx.account_keys, ix)
    if program_id is None:
        return None
    dex: DexProgram | None = find_dex(program_id)
    if dex is None:
        return None
    try:
        payload = decode_payload(ix.data)
    except DecodeFailure as e:
        logger.debug(
            "instruction_decode_failed",
            signature=tx.signature,
            program_id=program_id,
            index=source_index,
            error=str(e),
        )
        return None
    operation = dex.match(payload) or UNMATCHED_OPERATION
    return DecodedInstruction(
        source_index=source_index,
        program_id=program_id,
        exchange_name=dex.name,
        accounts=ix.accounts,
        raw_data=payload,
        operation=operation,
        is_inner=is_inner,
        parent_index=parent_index,
    )


def decode_transaction(tx: RawTransaction) -> list[DecodedInstruction]:
    """Known-exchange instructions of ``tx``: top-level first, then inner groups in order."""
    decoded: list[DecodedInstruction] = []
    for i, ix in enumerate(tx.instructions):
        d = _decode_one(tx, ix, i)
        if d is not None:
            decoded.append(d)
    for group in tx.inner_instructions:
        for j, ix in enumerate(group.instructions):
            d = _decode_one(tx, ix, j, is_inner=True, parent_index=group.index)
            if d is not None:
                decoded.append(d)
    return decoded
