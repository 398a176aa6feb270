# -*- coding: utf-8 -*-

import polars as pl
from pathlib import Path

from .misc import read_jsonl, write_jsonl


def read_records_tabular(records_file):
    """Read records from a CSV or PARQUET file."""
    records_file = Path(records_file)
    if records_file.suffix == '.csv':
        df = pl.read_csv(records_file, infer_schema_length=0, missing_utf8_is_empty_string=True)
    elif records_file.suffix == '.parquet':
        df = pl.read_parquet(records_file)
    else:
        raise ValueError('Records file must be either CSV or PARQUET')
    return df.to_dicts()


def read_records(records_file):
    """
    Read the records to send from a JSONL, CSV or PARQUET file.

    CSV columns are read as strings, exactly as written, and empty cells
    stay empty strings.
    """
    records_file = Path(records_file)
    if records_file.suffix == '.jsonl':
        records = read_jsonl(records_file)
        for i, item in enumerate(records):
            if not isinstance(item, dict):
                raise ValueError(f"Line {i} of {records_file} is not a JSON object.")
        return records
    if records_file.suffix in ['.csv', '.parquet']:
        return read_records_tabular(records_file)
    raise ValueError("Records file must be a JSONL, CSV or PARQUET file.")


def write_records(records, output_file):
    """
    Write result rows to a JSONL or CSV file.

    JSONL rows are written one at a time, so streamed query results are
    never fully held in memory. CSV output goes through a polars DataFrame.

    Returns:
        int: Number of rows written.
    """
    output_file = Path(output_file)
    if output_file.suffix == '.jsonl':
        return write_jsonl(records, output_file)
    if output_file.suffix == '.csv':
        rows = list(records)
        pl.DataFrame(rows, infer_schema_length=None).write_csv(output_file)
        return len(rows)
    raise ValueError("Output file must be a JSONL or CSV file.")
