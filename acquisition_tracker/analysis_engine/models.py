"""
Analysis engine data models.

BalanceDelta and DecodedInstruction are ephemeral, per-transaction values.
AcquisitionRecord is the durable output unit; its serialized field names are
camelCase and fixed, so exported JSON stays compatible with the dashboard and
with re-import.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

Confidence = Literal["high", "medium", "low"]

CONFIDENCE_HIGH: Confidence = "high"
CONFIDENCE_MEDIUM: Confidence = "medium"
CONFIDENCE_LOW: Confidence = "low"

UNMATCHED_OPERATION = "unmatched"


@dataclass(frozen=True)
class BalanceDelta:
    """Signed raw-amount change of one token at one account within a transaction."""

    mint: str
    account_index: int
    delta: int
    decimals: int
    owner: str | None = None


@dataclass(frozen=True)
class DecodedInstruction:
    """
    An instruction (top-level or inner) executed by a known exchange program.

    ``source_index`` is the top-level position for top-level instructions and
    the position inside the inner group for inner ones (``parent_index`` then
    names the top-level instruction that invoked it).
    """

    source_index: int
    program_id: str
    exchange_name: str
    accounts: tuple[int, ...]
    raw_data: bytes
    operation: str
    is_inner: bool = False
    parent_index: int | None = None

    @property
    def matched(self) -> bool:
        return self.operation != UNMATCHED_OPERATION


class AcquisitionRecord(BaseModel):
    """One detected acquisition of the target token. Immutable once created."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    transaction_hash: str
    exchange_name: str
    target_token: str
    counter_token: str
    amount_acquired: str
    """Raw integer amount of the target token received (decimal string)."""
    amount_spent: str
    """Raw integer amount of the counter token given up (decimal string)."""
    target_decimals: int
    counter_decimals: int
    block_timestamp: int
    operation_type: str
    program_identifier: str
    block_height: int
    sequence_number: int = 0
    """1-based position in the owning session; 0 until appended."""
    acquirer_address: str
    unit_price: str
    """Counter-token units per target-token unit, decimal-adjusted, 8 fractional digits."""
    confidence_level: Confidence
