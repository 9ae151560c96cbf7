"""
Acquisition classifier — balance deltas + decoded instructions to records.

A transaction acquires the target token when some account's target balance
rises while some other token's balance falls. The largest target increase is
the amount acquired; the largest non-target decrease is the amount spent
("largest wins", first encountered on ties). Exchange attribution and
confidence come from the decoded instructions; without any, the balance
heuristic still yields a medium-confidence record.
"""

from __future__ import annotations

import time
from decimal import ROUND_HALF_EVEN, Context, Decimal
from typing import Callable, Sequence

from acquisition_tracker.analysis_engine.models import (
    CONFIDENCE_HIGH,
    CONFIDENCE_LOW,
    CONFIDENCE_MEDIUM,
    AcquisitionRecord,
    BalanceDelta,
    Confidence,
    DecodedInstruction,
)
from acquisition_tracker.solana_listener.models import RawTransaction

PRICE_PLACES = 8
_PRICE_QUANTUM = Decimal(1).scaleb(-PRICE_PLACES)
# Enough digits for u64 amounts on both sides of the division plus the scale
_PRICE_CONTEXT = Context(prec=80, rounding=ROUND_HALF_EVEN)

UNKNOWN_EXCHANGE = "Unknown"
UNKNOWN_PROGRAM = "unknown"
POTENTIAL_OPERATION = "potential_acquisition"
UNKNOWN_ACQUIRER = "unknown"


def _largest(deltas: Sequence[BalanceDelta], magnitude: Callable[[BalanceDelta], int]) -> BalanceDelta:
    """First delta with the greatest magnitude (stable on ties)."""
    best = deltas[0]
    for d in deltas[1:]:
        if magnitude(d) > magnitude(best):
            best = d
    return best


def unit_price(amount_spent: int, amount_acquired: int, target_decimals: int, counter_decimals: int) -> str:
    """
    Counter-token cost per whole target token: spent / acquired scaled by
    10^(target_decimals - counter_decimals), 8 fractional digits. "0" when
    nothing was acquired.
    """
    if amount_acquired == 0:
        return "0"
    ctx = _PRICE_CONTEXT
    ratio = ctx.divide(Decimal(amount_spent), Decimal(amount_acquired))
    price = ctx.multiply(ratio, Decimal(1).scaleb(target_decimals - counter_decimals))
    return format(price.quantize(_PRICE_QUANTUM, context=ctx), "f")


def _confidence(instruction: DecodedInstruction | None, receiver: BalanceDelta, fee_payer: str | None) -> Confidence:
    if instruction is not None and instruction.matched:
        return CONFIDENCE_HIGH
    # Heuristic path: tokens landed in an account the signer does not own
    if receiver.owner is not None and fee_payer is not None and receiver.owner != fee_payer:
        return CONFIDENCE_LOW
    return CONFIDENCE_MEDIUM


def classify(
    tx: RawTransaction,
    deltas: Sequence[BalanceDelta],
    decoded: Sequence[DecodedInstruction],
    target_token: str,
    *,
    block_height: int | None = None,
    block_time: int | None = None,
) -> list[AcquisitionRecord]:
    """
    Acquisition records for ``target_token`` in ``tx`` (empty when it is not one).

    One record per decoded exchange instruction, in ``decoded`` order (a route
    through two venues yields two records with the same hash); a single
    heuristic record when no exchange instruction is present. Records carry
    ``sequence_number`` 0; the owning session numbers them on append.
    """
    target_deltas = [d for d in deltas if d.mint == target_token]
    if not target_deltas:
        return []
    increases = [d for d in target_deltas if d.delta > 0]
    if not increases:
        return []
    decreases = [d for d in deltas if d.delta < 0 and d.mint != target_token]
    if not decreases:
        return []

    acquired = _largest(increases, lambda d: d.delta)
    spent = _largest(decreases, lambda d: -d.delta)
    amount_acquired = acquired.delta
    amount_spent = -spent.delta

    fee_payer = tx.fee_payer
    height = tx.slot if tx.slot is not None else block_height
    timestamp = tx.block_time if tx.block_time is not None else block_time
    common = dict(
        transaction_hash=tx.signature,
        target_token=target_token,
        counter_token=spent.mint,
        amount_acquired=str(amount_acquired),
        amount_spent=str(amount_spent),
        target_decimals=acquired.decimals,
        counter_decimals=spent.decimals,
        block_timestamp=timestamp if timestamp is not None else int(time.time()),
        block_height=height if height is not None else 0,
        acquirer_address=fee_payer or UNKNOWN_ACQUIRER,
        unit_price=unit_price(amount_spent, amount_acquired, acquired.decimals, spent.decimals),
    )

    if not decoded:
        return [
            AcquisitionRecord(
                exchange_name=UNKNOWN_EXCHANGE,
                operation_type=POTENTIAL_OPERATION,
                program_identifier=UNKNOWN_PROGRAM,
                confidence_level=_confidence(None, acquired, fee_payer),
                **common,
            )
        ]
    return [
        AcquisitionRecord(
            exchange_name=ix.exchange_name,
            operation_type=ix.operation,
            program_identifier=ix.program_id,
            confidence_level=_confidence(ix, acquired, fee_payer),
            **common,
        )
        for ix in decoded
    ]
