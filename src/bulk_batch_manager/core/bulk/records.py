# -*- coding: utf-8 -*-
"""
Record handling for bulk batches: header union, chunking into size-bounded
batches, per-record serialization and the delimited text (CSV) codec used on
the wire.
"""

import csv
import io
from collections.abc import Mapping
from datetime import date, datetime, time
from decimal import Decimal
from typing import Iterable, Iterator, List, Optional, Sequence, Union

from .exceptions import ConfigurationError, RecordValidationError

MAX_BATCH_SIZE = 10_000

# Server-side "no value" token; distinct from an explicitly empty string.
NOT_APPLICABLE = '#N/A'

FieldValue = Union[str, int, float, Decimal, bool, datetime, date, time, None]
Record = Mapping[str, FieldValue]


#=============================================================================
# Header and Chunking
#=============================================================================

def validate_batch_size(batch_size: int) -> int:
    """Check that 0 < batch_size <= MAX_BATCH_SIZE."""
    if isinstance(batch_size, bool) or not isinstance(batch_size, int) \
            or not 0 < batch_size <= MAX_BATCH_SIZE:
        raise ConfigurationError(
            f"Invalid batch size {batch_size!r}, expected 1 .. {MAX_BATCH_SIZE}"
        )
    return batch_size


def validate_records(records) -> List[Record]:
    """Ensure records is a sequence of mappings and return it as a list."""
    if isinstance(records, (str, bytes, Mapping)) or not isinstance(records, Sequence):
        raise ConfigurationError("Records must be a list of mappings.")
    for i, record in enumerate(records):
        if not isinstance(record, Mapping):
            raise ConfigurationError(
                f"Record at position {i} is a {type(record).__name__}, expected a mapping."
            )
    return list(records)


def collect_field_names(records: Iterable[Record]) -> List[str]:
    """
    Union of the field names of all records, in order of first appearance.

    Args:
        records: Records to inspect.

    Returns:
        list: Field names used as the shared header row of every batch.
    """
    seen = {}
    for record in records:
        for key in record:
            seen.setdefault(key, None)
    return list(seen)


def chunk_records(records: Sequence[Record], batch_size: int = MAX_BATCH_SIZE) -> List[List[Record]]:
    """
    Split records into consecutive chunks of at most batch_size records.

    Order is preserved and nothing is dropped or duplicated; only the last
    chunk may be smaller than batch_size.
    """
    validate_batch_size(batch_size)
    return [list(records[i:i + batch_size]) for i in range(0, len(records), batch_size)]


#=============================================================================
# Serialization
#=============================================================================

def serialize_value(value: FieldValue) -> str:
    """String form of a single, already validated field value."""
    if value is None:
        return NOT_APPLICABLE
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, datetime) and value.tzinfo is None:
        # naive values are local time; always send an explicit offset
        value = value.astimezone()
    if hasattr(value, 'isoformat'):
        return value.isoformat()
    return str(value)


def serialize_record(keys: Sequence[str], record: Record, nullable_fields=()) -> List[str]:
    """
    Serialize one record into a CSV row following the shared header.

    A field that is absent or empty is only accepted when listed in
    nullable_fields, and is then sent as an empty string. A field present
    with a None value is sent as the not-applicable token.

    Args:
        keys: Header row field names.
        record: The record to serialize.
        nullable_fields: Field names allowed to carry an empty value.

    Returns:
        list: One string per header field.

    Raises:
        RecordValidationError: On a missing required value or a nested value.
    """
    nullable = {str(field) for field in (nullable_fields or ())}
    row = []
    for key in keys:
        if key in record and record[key] is None:
            row.append(NOT_APPLICABLE)
            continue

        value = record.get(key, '')
        if isinstance(value, (Mapping, list, tuple, set, frozenset)):
            raise RecordValidationError(key, record, "Unsupported field type")
        if value == '' and str(key) not in nullable:
            raise RecordValidationError(
                key, record,
                f"Value is empty or not specified, use a space instead or declare "
                f"a nullable field (nullable fields: {sorted(nullable)})"
            )
        row.append(serialize_value(value))
    return row


#=============================================================================
# CSV Codec
#=============================================================================

def encode_csv(keys: Sequence[str], rows: Iterable[Sequence[str]]) -> str:
    """Write a header row plus rows as comma separated text with '\\n' row separators."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator='\n')
    writer.writerow(keys)
    writer.writerows(rows)
    return buffer.getvalue()


def encode_records(keys: Sequence[str], records: Iterable[Record], nullable_fields=()) -> str:
    """Serialize a chunk of records into a CSV batch payload."""
    return encode_csv(
        keys, (serialize_record(keys, record, nullable_fields) for record in records)
    )


def iter_csv_records(lines: Iterable[str], lowercase_headers: bool = False) -> Iterator[dict]:
    """
    Lazily decode CSV lines with a header row into dictionaries.

    Records spanning several lines (quoted newlines) are handled by the csv
    module pulling further lines as needed.
    """
    reader = csv.reader(lines)
    header: Optional[List[str]] = None
    for row in reader:
        if header is None:
            header = [h.lower() for h in row] if lowercase_headers else row
            continue
        if not row:
            continue
        yield dict(zip(header, row))


def decode_csv(text: Union[str, bytes], lowercase_headers: bool = False) -> List[dict]:
    """Decode a whole CSV document into a list of dictionaries."""
    if isinstance(text, bytes):
        text = text.decode('utf-8-sig')
    if not text:
        return []
    return list(iter_csv_records(io.StringIO(text, newline=''), lowercase_headers))
