"""
Token balance deltas from pre/post execution snapshots.

Amounts are raw on-chain integers; Python ints keep them exact regardless of
token supply.
"""

from __future__ import annotations

from acquisition_tracker.analysis_engine.models import BalanceDelta
from acquisition_tracker.solana_listener.models import RawTransaction, TokenBalance


def extract_deltas(tx: RawTransaction) -> list[BalanceDelta]:
    """
    Signed change per (account index, mint) present after execution.

    An account absent from the pre snapshot counts as zero (token account
    created in this transaction). Zero deltas are omitted. When a snapshot lists
    the same (account index, mint) twice, the later entry wins in both pre and
    post. Order follows first appearance in the post snapshot.
    """
    pre: dict[tuple[int, str], TokenBalance] = {
        (b.account_index, b.mint): b for b in tx.pre_token_balances
    }
    posts: dict[tuple[int, str], TokenBalance] = {}
    for b in tx.post_token_balances:
        posts[(b.account_index, b.mint)] = b
    out: list[BalanceDelta] = []
    for key, post in posts.items():
        before = pre.get(key)
        delta = post.amount - (before.amount if before is not None else 0)
        if delta == 0:
            continue
        out.append(
            BalanceDelta(
                mint=post.mint,
                account_index=post.account_index,
                delta=delta,
                decimals=post.decimals,
                owner=post.owner or (before.owner if before is not None else None),
            )
        )
    return out
