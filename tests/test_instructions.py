"""
Tests for program instruction matching (top-level and inner instructions).
"""

from __future__ import annotations

import base58
import pytest
from helpers import (
    BUYER,
    BUYER_COUNTER_ATA,
    BUYER_TARGET_ATA,
    JUPITER_ROUTE,
    JUPITER_V6,
    RAYDIUM_AMM,
    RAYDIUM_SWAP,
    TOKEN_PROGRAM,
    WHIRLPOOL,
    ix_data,
    make_tx,
    tx_item,
)

from acquisition_tracker.analysis_engine.dex_programs import DEX_PROGRAMS, SIGNATURE_LEN, find_dex
from acquisition_tracker.analysis_engine.instructions import decode_payload, decode_transaction
from acquisition_tracker.core.exceptions import DecodeFailure

KEYS = [BUYER, BUYER_TARGET_ATA, BUYER_COUNTER_ATA, JUPITER_V6, RAYDIUM_AMM, TOKEN_PROGRAM, WHIRLPOOL]


def _ix(program_index: int, data: str) -> dict:
    return {"programIdIndex": program_index, "accounts": [0, 1, 2], "data": data}


def test_matched_top_level_instruction():
    tx = make_tx(tx_item("sig1", account_keys=KEYS, instructions=[_ix(3, ix_data(JUPITER_ROUTE))]))
    (d,) = decode_transaction(tx)
    assert d.program_id == JUPITER_V6
    assert d.exchange_name == "Jupiter"
    assert d.operation == "route"
    assert d.matched is True
    assert d.is_inner is False
    assert d.source_index == 0
    assert d.accounts == (0, 1, 2)
    assert d.raw_data[:SIGNATURE_LEN] == JUPITER_ROUTE


def test_unknown_program_is_dropped():
    tx = make_tx(tx_item("sig1", account_keys=KEYS, instructions=[_ix(5, ix_data(RAYDIUM_SWAP))]))
    assert decode_transaction(tx) == []


def test_known_program_unknown_signature_is_unmatched():
    tx = make_tx(tx_item("sig1", account_keys=KEYS, instructions=[_ix(4, ix_data(b"\xff" * 8))]))
    (d,) = decode_transaction(tx)
    assert d.exchange_name == "Raydium"
    assert d.operation == "unmatched"
    assert d.matched is False


def test_short_payload_is_unmatched():
    tx = make_tx(
        tx_item("sig1", account_keys=KEYS, instructions=[_ix(4, base58.b58encode(b"\x09\x0a").decode())])
    )
    (d,) = decode_transaction(tx)
    assert d.operation == "unmatched"


def test_undecodable_payload_drops_only_that_instruction():
    tx = make_tx(
        tx_item(
            "sig1",
            account_keys=KEYS,
            instructions=[_ix(4, "0OIl-not-base58"), _ix(3, ix_data(JUPITER_ROUTE))],
        )
    )
    decoded = decode_transaction(tx)
    assert [d.exchange_name for d in decoded] == ["Jupiter"]
    assert decoded[0].source_index == 1


def test_out_of_range_program_index_is_ignored():
    tx = make_tx(tx_item("sig1", account_keys=KEYS, instructions=[_ix(42, ix_data(JUPITER_ROUTE))]))
    assert decode_transaction(tx) == []


def test_inner_instructions_follow_top_level_with_parent_index():
    inner = [{"index": 0, "instructions": [_ix(4, ix_data(RAYDIUM_SWAP)), _ix(5, ix_data(b"\x03" * 8))]}]
    tx = make_tx(
        tx_item("sig1", account_keys=KEYS, instructions=[_ix(3, ix_data(JUPITER_ROUTE))], inner=inner)
    )
    decoded = decode_transaction(tx)
    assert [(d.exchange_name, d.operation, d.is_inner, d.parent_index) for d in decoded] == [
        ("Jupiter", "route", False, None),
        ("Raydium", "swap", True, 0),
    ]


def test_whirlpool_anchor_signature():
    tx = make_tx(
        tx_item("sig1", account_keys=KEYS, instructions=[_ix(6, ix_data(bytes.fromhex("f8c69e91e17587c8")))])
    )
    (d,) = decode_transaction(tx)
    assert (d.exchange_name, d.operation) == ("Orca", "swap")


def test_decoding_is_pure():
    inner = [{"index": 0, "instructions": [_ix(4, ix_data(RAYDIUM_SWAP))]}]
    tx = make_tx(
        tx_item("sig1", account_keys=KEYS, instructions=[_ix(3, ix_data(JUPITER_ROUTE))], inner=inner)
    )
    assert decode_transaction(tx) == decode_transaction(tx)


def test_decode_payload_rejects_non_base58():
    with pytest.raises(DecodeFailure):
        decode_payload("0OIl")
    assert decode_payload("") == b""


def test_program_table_signatures_are_eight_bytes():
    for program in DEX_PROGRAMS.values():
        for sig in program.signatures.values():
            assert len(sig) == SIGNATURE_LEN
    assert find_dex(RAYDIUM_AMM).name == "Raydium"
    assert find_dex(TOKEN_PROGRAM) is None
