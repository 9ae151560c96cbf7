"""
Analysis engine — balance deltas, instruction matching, acquisition classification.

Turns one RawTransaction into zero or more AcquisitionRecords for a target
token. Pure functions; sessions own ordering and numbering.
"""

from acquisition_tracker.analysis_engine.classifier import classify, unit_price
from acquisition_tracker.analysis_engine.deltas import extract_deltas
from acquisition_tracker.analysis_engine.instructions import decode_transaction
from acquisition_tracker.analysis_engine.models import (
    AcquisitionRecord,
    BalanceDelta,
    Confidence,
    DecodedInstruction,
)

__all__ = [
    "AcquisitionRecord",
    "BalanceDelta",
    "Confidence",
    "DecodedInstruction",
    "classify",
    "decode_transaction",
    "extract_deltas",
    "unit_price",
]
