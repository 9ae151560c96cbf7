"""
Tests for balance delta extraction from pre/post token snapshots.
"""

from __future__ import annotations

from helpers import BUYER, COUNTER_MINT, OTHER_WALLET, TARGET_MINT, balance, make_tx, tx_item

from acquisition_tracker.analysis_engine.deltas import extract_deltas


def test_delta_is_post_minus_pre():
    tx = make_tx(
        tx_item(
            "sig1",
            pre=[balance(1, TARGET_MINT, 100, 6), balance(2, COUNTER_MINT, 900, 9)],
            post=[balance(1, TARGET_MINT, 350, 6), balance(2, COUNTER_MINT, 400, 9)],
        )
    )
    deltas = extract_deltas(tx)
    assert [(d.mint, d.account_index, d.delta, d.decimals) for d in deltas] == [
        (TARGET_MINT, 1, 250, 6),
        (COUNTER_MINT, 2, -500, 9),
    ]


def test_missing_pre_counts_as_zero():
    tx = make_tx(tx_item("sig1", post=[balance(3, TARGET_MINT, 42, 6)]))
    (delta,) = extract_deltas(tx)
    assert delta.delta == 42
    assert delta.account_index == 3


def test_zero_deltas_omitted():
    tx = make_tx(
        tx_item(
            "sig1",
            pre=[balance(1, TARGET_MINT, 7, 6)],
            post=[balance(1, TARGET_MINT, 7, 6)],
        )
    )
    assert extract_deltas(tx) == []


def test_account_closed_in_transaction_is_not_reported():
    # Only accounts present after execution produce deltas
    tx = make_tx(tx_item("sig1", pre=[balance(1, COUNTER_MINT, 500, 9)], post=[]))
    assert extract_deltas(tx) == []


def test_same_account_different_mints_are_separate():
    tx = make_tx(
        tx_item(
            "sig1",
            pre=[balance(1, TARGET_MINT, 0, 6), balance(1, COUNTER_MINT, 10, 9)],
            post=[balance(1, TARGET_MINT, 5, 6), balance(1, COUNTER_MINT, 3, 9)],
        )
    )
    deltas = extract_deltas(tx)
    assert {(d.mint, d.delta) for d in deltas} == {(TARGET_MINT, 5), (COUNTER_MINT, -7)}


def test_owner_falls_back_to_pre_snapshot():
    tx = make_tx(
        tx_item(
            "sig1",
            pre=[balance(1, TARGET_MINT, 0, 6, owner=OTHER_WALLET)],
            post=[balance(1, TARGET_MINT, 9, 6, owner=None)],
        )
    )
    (delta,) = extract_deltas(tx)
    assert delta.owner == OTHER_WALLET


def test_raw_amounts_beyond_float_precision_stay_exact():
    big = 2**64 - 1
    tx = make_tx(
        tx_item(
            "sig1",
            pre=[balance(1, TARGET_MINT, 1, 0, owner=BUYER)],
            post=[balance(1, TARGET_MINT, big, 0, owner=BUYER)],
        )
    )
    (delta,) = extract_deltas(tx)
    assert delta.delta == big - 1


def test_duplicate_snapshot_entries_take_the_last_value():
    tx = make_tx(
        tx_item(
            "sig1",
            pre=[balance(1, TARGET_MINT, 10, 6), balance(1, TARGET_MINT, 20, 6)],
            post=[
                balance(1, TARGET_MINT, 50, 6),
                balance(2, COUNTER_MINT, 5, 9),
                balance(1, TARGET_MINT, 80, 6),
            ],
        )
    )
    deltas = extract_deltas(tx)
    assert [(d.mint, d.account_index, d.delta) for d in deltas] == [
        (TARGET_MINT, 1, 60),
        (COUNTER_MINT, 2, 5),
    ]
