"""
Flat JSON export/import of acquisition records.

The array uses the record's camelCase field names verbatim, so a dump loaded
back and dumped again is byte-for-byte identical.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from pydantic import TypeAdapter

from acquisition_tracker.analysis_engine.models import AcquisitionRecord

_RECORDS = TypeAdapter(list[AcquisitionRecord])


def dump_records(records: Iterable[AcquisitionRecord], *, indent: int | None = None) -> str:
    """Serialize records to a JSON array string."""
    return _RECORDS.dump_json(list(records), by_alias=True, indent=indent).decode("utf-8")


def load_records(text: str | bytes) -> list[AcquisitionRecord]:
    """Parse a JSON array produced by dump_records; raises pydantic.ValidationError on schema mismatch."""
    return _RECORDS.validate_json(text)


def export_to_file(records: Iterable[AcquisitionRecord], path: str | Path) -> int:
    """Write records to ``path``; returns how many were written."""
    items = list(records)
    Path(path).write_text(dump_records(items, indent=2), encoding="utf-8")
    return len(items)


def import_from_file(path: str | Path) -> list[AcquisitionRecord]:
    return load_records(Path(path).read_text(encoding="utf-8"))
