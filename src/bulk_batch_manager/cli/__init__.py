"""
Command-line interface for Bulk Batch Manager.

Command Categories:
    Data Operations:
        - insert, update, upsert, delete: Send records from a file
        - query: Run a query and stream its results

    Job Management:
        - status: Show job and batch states
        - close: Close an open job
        - resume: Wait for a recorded job and collect its results

    Job Journal:
        - list-jobs: Show recorded jobs
        - forget-job: Remove a job from the journal

Environment Requirements:
    - BULK_INSTANCE_URL, BULK_SESSION_ID (or --instance-url / --session-id)

Example Workflow:
    $ bulkbm upsert Account ./accounts.csv --external-field Id --output results.csv
    $ bulkbm list-jobs --pending
    $ bulkbm resume 750x000000000001 --operation upsert --output results.csv
    $ bulkbm query Account "SELECT Id, Name FROM Account" --output accounts.jsonl
"""

from .cli import cli

__all__ = [
    'cli',  # Main CLI interface (Click command group)
]
