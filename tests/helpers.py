"""
Builders for tracker tests.

Transactions and blocks are built as getBlock-shaped JSON dicts so the same
builders feed both the pure analysis tests and the MockTransport-backed
block source tests.
"""

from __future__ import annotations

import json
from typing import Any, Callable

import base58
import httpx

from acquisition_tracker.config.settings import SourceConfig
from acquisition_tracker.solana_listener.models import RawTransaction

# Real mainnet mints (base58, 32 bytes)
TARGET_MINT = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"
COUNTER_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
OTHER_MINT = "So11111111111111111111111111111111111111112"

BUYER = "9QCfNuQuxct1Xk9ytFYgxc5fThmTzL4pHQnSjjrVUrka"
OTHER_WALLET = "7F1WzVNQ1Qpurqxxdyv3UrFQR3uoNepULVW9A4bAJ5nZ"
BUYER_TARGET_ATA = "4k3Dyjzvzp8eMZWUXbBCjEvwSkkk59S5iCNLY3QrkX6R"
BUYER_COUNTER_ATA = "HZ1JovNiVvGrGNiiYvEozEVgZ58xaU3RKwX8eACQBCt3"

JUPITER_V6 = "JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4"
RAYDIUM_AMM = "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8"
WHIRLPOOL = "whirLbMiicVdio4qvUfM5KAg6Ct8VwpYzGff3uctyCc"
TOKEN_PROGRAM = "TokenkegQfeZyiNwAJbNbGqPMpTH5qgEeB1xPZLYQ5s"

JUPITER_ROUTE = bytes.fromhex("e517cb977ae3ad2a")
RAYDIUM_SWAP = bytes.fromhex("090a901d0c0a0b0c")

ENDPOINT_A = "https://rpc-a.test"
ENDPOINT_B = "https://rpc-b.test"
ENDPOINT_C = "https://rpc-c.test"


def ix_data(signature: bytes, tail: bytes = b"\x01\x00\x00\x00\x00\x00\x00\x00") -> str:
    """Base58 instruction payload: 8-byte signature followed by arguments."""
    return base58.b58encode(signature + tail).decode("ascii")


def balance(index: int, mint: str, amount: int, decimals: int, owner: str | None = BUYER) -> dict[str, Any]:
    item: dict[str, Any] = {
        "accountIndex": index,
        "mint": mint,
        "uiTokenAmount": {"amount": str(amount), "decimals": decimals},
    }
    if owner is not None:
        item["owner"] = owner
    return item


def tx_item(
    signature: str,
    *,
    account_keys: list[str] | None = None,
    instructions: list[dict[str, Any]] | None = None,
    inner: list[dict[str, Any]] | None = None,
    pre: list[dict[str, Any]] | None = None,
    post: list[dict[str, Any]] | None = None,
    err: Any = None,
) -> dict[str, Any]:
    """One entry of getBlock's ``transactions`` list."""
    return {
        "transaction": {
            "signatures": [signature],
            "message": {
                "accountKeys": account_keys or [BUYER, BUYER_TARGET_ATA, BUYER_COUNTER_ATA],
                "instructions": instructions or [],
            },
        },
        "meta": {
            "err": err,
            "innerInstructions": inner or [],
            "preTokenBalances": pre or [],
            "postTokenBalances": post or [],
        },
    }


def buy_item(
    signature: str,
    *,
    acquired: int = 1_000_000,
    spent: int = 1_000_000_000,
    program: str | None = RAYDIUM_AMM,
    op: bytes = RAYDIUM_SWAP,
    err: Any = None,
) -> dict[str, Any]:
    """A transaction in which BUYER receives ``acquired`` TARGET for ``spent`` COUNTER."""
    keys = [BUYER, BUYER_TARGET_ATA, BUYER_COUNTER_ATA]
    instructions = []
    if program is not None:
        keys.append(program)
        instructions.append({"programIdIndex": 3, "accounts": [0, 1, 2], "data": ix_data(op)})
    return tx_item(
        signature,
        account_keys=keys,
        instructions=instructions,
        pre=[
            balance(1, TARGET_MINT, 0, 6),
            balance(2, COUNTER_MINT, 5_000_000_000, 9),
        ],
        post=[
            balance(1, TARGET_MINT, acquired, 6),
            balance(2, COUNTER_MINT, 5_000_000_000 - spent, 9),
        ],
        err=err,
    )


def make_tx(item: dict[str, Any], *, slot: int = 100, block_time: int | None = 1_700_000_000) -> RawTransaction:
    return RawTransaction.from_rpc_item(item, slot=slot, block_time=block_time)


def block_result(items: list[dict[str, Any]], block_time: int = 1_700_000_000) -> dict[str, Any]:
    return {"blockTime": block_time, "transactions": items}


def fast_source_config(endpoints: list[str] | None = None, **overrides: Any) -> SourceConfig:
    """Source config with every delay at zero and a generous request ceiling."""
    values: dict[str, Any] = dict(
        endpoints=endpoints or [ENDPOINT_A],
        max_requests_per_second=1000,
        request_delay=0.0,
        max_rate_limit_delay=0.0,
        retry_delay=0.0,
        slot_poll_interval=0.0,
        slot_processing_delay=0.0,
        historical_batch_delay=0.0,
        rotation_pause=0.0,
        max_retries=3,
    )
    values.update(overrides)
    return SourceConfig(**values)


class FakeChain:
    """
    In-memory Solana node behind httpx.MockTransport.

    ``blocks`` maps slot -> getBlock result (None answers with a -32007 skipped-slot
    error). ``slots`` is the sequence of getSlot answers; the last one repeats.
    ``script`` is a list of per-request overrides consumed in order
    (an int HTTP status or a dict JSON-RPC error); None entries pass through.
    """

    def __init__(
        self,
        blocks: dict[int, dict[str, Any] | None],
        slots: list[int],
        script: list[Any] | None = None,
    ) -> None:
        self.blocks = blocks
        self.slots = list(slots)
        self.script = list(script or [])
        self.calls: list[tuple[str, str, list[Any]]] = []
        self.block_requests: list[int] = []
        self.on_request: Callable[[str, list[Any]], None] | None = None

    def _next_slot(self) -> int:
        if len(self.slots) > 1:
            return self.slots.pop(0)
        return self.slots[0]

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        method = body["method"]
        params = body.get("params") or []
        self.calls.append((request.url.host, method, params))
        if self.on_request is not None:
            self.on_request(method, params)
        if self.script:
            override = self.script.pop(0)
            if isinstance(override, int):
                return httpx.Response(override, json={"error": "status"})
            if isinstance(override, dict):
                return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "error": override})
        if method == "getSlot":
            result: Any = self._next_slot()
        elif method == "getBlock":
            slot = params[0]
            self.block_requests.append(slot)
            block = self.blocks.get(slot)
            if block is None:
                return httpx.Response(
                    200,
                    json={
                        "jsonrpc": "2.0",
                        "id": body["id"],
                        "error": {"code": -32007, "message": f"Slot {slot} was skipped"},
                    },
                )
            result = block
        else:
            return httpx.Response(
                200,
                json={"jsonrpc": "2.0", "id": body["id"], "error": {"code": -32601, "message": "Method not found"}},
            )
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def hosts(self) -> list[str]:
        return [c[0] for c in self.calls]


