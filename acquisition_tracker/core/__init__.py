"""
Core utilities — shared exceptions and address validation.

Used across the listener, analysis engine, and agent worker.
"""
