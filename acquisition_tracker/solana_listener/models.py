"""
Data models for Solana listener output.

Frozen dataclasses for blocks and transactions as returned by getBlock
(encoding=json, transactionDetails=full). Only the fields the analysis engine
needs are kept: account keys, instructions, inner instructions, token balance
snapshots, status, signature, slot, and block time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator

from acquisition_tracker.tracker_logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Instruction:
    """A compiled instruction: program account index, base58 payload, account indices."""

    program_id_index: int
    data: str
    accounts: tuple[int, ...] = ()

    @classmethod
    def from_rpc_item(cls, item: dict[str, Any]) -> "Instruction":
        return cls(
            program_id_index=int(item["programIdIndex"]),
            data=item.get("data") or "",
            accounts=tuple(int(a) for a in item.get("accounts") or ()),
        )


@dataclass(frozen=True)
class InnerInstructionGroup:
    """CPI instructions executed under the top-level instruction at ``index``."""

    index: int
    instructions: tuple[Instruction, ...] = ()

    @classmethod
    def from_rpc_item(cls, item: dict[str, Any]) -> "InnerInstructionGroup":
        return cls(
            index=int(item["index"]),
            instructions=tuple(
                Instruction.from_rpc_item(ix) for ix in item.get("instructions") or ()
            ),
        )


@dataclass(frozen=True)
class TokenBalance:
    """
    Token account balance snapshot (pre or post execution).

    ``amount`` is the raw integer amount; the RPC sends it as a string so large
    supplies survive JSON without float rounding.
    """

    account_index: int
    mint: str
    amount: int
    decimals: int
    owner: str | None = None

    @classmethod
    def from_rpc_item(cls, item: dict[str, Any]) -> "TokenBalance":
        ui = item.get("uiTokenAmount") or {}
        return cls(
            account_index=int(item["accountIndex"]),
            mint=item["mint"],
            amount=int(ui.get("amount") or 0),
            decimals=int(ui.get("decimals") or 0),
            owner=item.get("owner"),
        )


def _get_account_keys(message: dict[str, Any], meta: dict[str, Any] | None) -> tuple[str, ...]:
    """
    Resolve accountKeys to base58 strings (handles json vs jsonParsed).
    For versioned transactions, appends meta.loadedAddresses (writable + readonly).
    """
    keys = message.get("accountKeys") or []
    out = [k if isinstance(k, str) else k.get("pubkey", "") for k in keys]
    loaded = (meta or {}).get("loadedAddresses") or {}
    for role in ("writable", "readonly"):
        out.extend(loaded.get(role) or [])
    return tuple(out)


@dataclass(frozen=True)
class RawTransaction:
    """One transaction of a block, reduced to what classification needs."""

    signature: str
    account_keys: tuple[str, ...]
    instructions: tuple[Instruction, ...] = ()
    inner_instructions: tuple[InnerInstructionGroup, ...] = ()
    pre_token_balances: tuple[TokenBalance, ...] = ()
    post_token_balances: tuple[TokenBalance, ...] = ()
    succeeded: bool = True
    slot: int | None = None
    block_time: int | None = None

    @property
    def fee_payer(self) -> str | None:
        """First account key: the wallet that signed and paid for the transaction."""
        return self.account_keys[0] if self.account_keys else None

    @classmethod
    def from_rpc_item(
        cls,
        item: dict[str, Any],
        *,
        slot: int | None = None,
        block_time: int | None = None,
    ) -> "RawTransaction":
        """Build from one entry of getBlock's ``transactions`` list."""
        tx_obj = item.get("transaction") or {}
        message = tx_obj.get("message") or {}
        meta = item.get("meta")
        if not isinstance(meta, dict):
            meta = None
        signatures = tx_obj.get("signatures") or []
        return cls(
            signature=signatures[0] if signatures else "",
            account_keys=_get_account_keys(message, meta),
            instructions=tuple(
                Instruction.from_rpc_item(ix) for ix in message.get("instructions") or ()
            ),
            inner_instructions=tuple(
                InnerInstructionGroup.from_rpc_item(g)
                for g in (meta or {}).get("innerInstructions") or ()
            ),
            pre_token_balances=tuple(
                TokenBalance.from_rpc_item(b) for b in (meta or {}).get("preTokenBalances") or ()
            ),
            post_token_balances=tuple(
                TokenBalance.from_rpc_item(b) for b in (meta or {}).get("postTokenBalances") or ()
            ),
            # Missing meta means the node could not report status; treat as failed
            succeeded=meta is not None and meta.get("err") is None,
            slot=slot,
            block_time=block_time,
        )


@dataclass(frozen=True)
class Block:
    """A produced block: height (slot), block time, and its transactions in order."""

    height: int
    block_time: int | None
    transactions: list[RawTransaction] = field(default_factory=list)

    def __iter__(self) -> Iterator[RawTransaction]:
        return iter(self.transactions)

    def __len__(self) -> int:
        return len(self.transactions)

    @classmethod
    def from_rpc_result(cls, height: int, result: dict[str, Any]) -> "Block":
        """Build from a getBlock result; unparseable transactions are skipped."""
        block_time = result.get("blockTime")
        txs: list[RawTransaction] = []
        for item in result.get("transactions") or []:
            if not isinstance(item, dict):
                continue
            try:
                txs.append(RawTransaction.from_rpc_item(item, slot=height, block_time=block_time))
            except (KeyError, TypeError, ValueError) as e:
                logger.debug("block_tx_parse_skipped", slot=height, error=str(e))
                continue
        return cls(height=height, block_time=block_time, transactions=txs)
