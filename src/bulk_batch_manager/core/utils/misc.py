# -*- coding: utf-8 -*-

import os
import json
import logging
from pathlib import Path

import yaml


#=======================================================================
# JSON Lines Utilities
#=======================================================================

def write_jsonl(rows, path):
    """
    Write rows to a JSON Lines file as they are produced.

    Values json cannot encode natively (dates, decimals) are written with
    str(). Lazy iterators, such as streamed query results, are consumed one
    row at a time.

    Args:
        rows (iterable): Dictionaries to write.
        path (str): Output file.

    Returns:
        int: Number of rows written.
    """
    count = 0
    with open(path, 'w', encoding='utf-8') as f:
        for row in rows:
            f.write(json.dumps(row, default=str))
            f.write('\n')
            count += 1
    return count


def read_jsonl(path):
    """Load a JSON Lines file into a list. Blank lines are skipped."""
    rows = []
    with open(path, 'r', encoding='utf-8') as f:
        for line in f:
            if line.strip():
                rows.append(json.loads(line))
    return rows


#=======================================================================
# YAML Utilities
#=======================================================================

def read_yaml(path):
    with open(path, 'r', encoding='utf-8') as f:
        return yaml.safe_load(f)


def write_yaml(data, path):
    with open(path, 'w', encoding='utf-8') as f:
        yaml.safe_dump(data, f, sort_keys=False)


#=======================================================================
# Path Utilities
#=======================================================================

def mask_path(path, base_dir=None):
    """
    Shorten a path for log messages.

    Paths under base_dir (or $PROJECT_DIR) are shown relative to it, paths
    under the home directory start with '~'.
    """
    path = Path(path)
    base_dir = base_dir or os.getenv('PROJECT_DIR')

    if base_dir and path.is_relative_to(base_dir):
        return str(path.relative_to(base_dir))
    if path.is_relative_to(Path.home()):
        return f"~/{path.relative_to(Path.home())}"
    return str(path)


def ensure_output_path(path, description="Output folder"):
    """Create the parent folder of an output file when it is missing."""
    parent = Path(path).parent
    if not parent.exists():
        logging.info(f"{description} does not exist. Creating it at: {mask_path(parent)}")
        parent.mkdir(parents=True, exist_ok=True)
