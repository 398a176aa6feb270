# -*- coding: utf-8 -*-

import logging
from collections import Counter
from typing import List


def summarize_batch_states(batches: List[dict]) -> dict:
    """
    Count batches per state.

    Args:
        batches (list[dict]): batchInfo dictionaries with a 'state' key.

    Returns:
        dict: {state: {'count': int, 'percentage': float}}
    """
    counter = Counter(batch.get('state', 'Unknown') for batch in batches)
    total = sum(counter.values())
    return {
        state: {'count': count, 'percentage': (count / total) * 100}
        for state, count in counter.items()
    }


def summarize_records(batches: List[dict]) -> dict:
    """Add up the processed and failed record counts reported by each batch."""
    processed = failed = 0
    for batch in batches:
        processed += int(batch.get('numberRecordsProcessed') or 0)
        failed += int(batch.get('numberRecordsFailed') or 0)
    return {'processed': processed, 'failed': failed}


def log_batch_summary(job_id: str, batches: List[dict]):
    """Log a per-state summary and the error text of every failed batch."""
    summary = summarize_batch_states(batches)
    records = summarize_records(batches)

    logging.info(f"{'='*25}")
    logging.info(f"Job {job_id} Batch Summary:")
    for state, data in summary.items():
        logging.info(f"- {state}: {data['count']} ({data['percentage']:.2f}%)")
    logging.info(f"Records processed: {records['processed']}, failed: {records['failed']}")

    for batch in batches:
        if batch.get('state') in ('Failed', 'NotProcessed'):
            logging.warning(f"Batch {batch.get('id')} {batch.get('state')}: {batch.get('stateMessage', '')}")

    return summary
