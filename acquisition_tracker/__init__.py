"""
Acquisition Tracker — near-real-time detection of token acquisitions on Solana.

Polls produced blocks, extracts token balance deltas per transaction, matches
instructions against known DEX programs, and records who acquires a target
token and through which venue. Modular layout: listener (block source),
analysis engine (deltas, instruction matching, classification), and agent
worker (tracking sessions and runtime).
"""

__version__ = "0.1.0"
