"""
Bulk Batch Manager - Asynchronous bulk jobs against a record-oriented data service

A toolkit for running insert, update, upsert, delete and query operations as
asynchronous bulk jobs made of batches. This package provides both a
programmatic API and a command-line interface.

Key Features:
    - Record chunking into size-bounded CSV batches
    - Job creation, closing and status polling with a deadline
    - Ordered per-batch results, with per-record success and error rows
    - Streaming of large query results without buffering whole bodies
    - Job journal for recovering jobs after a crash

Package Structure:
    bulk:  Job lifecycle, records, streaming reader and orchestration
    utils: Shared utilities (connection, environment, job registry, files)

Example Usage:

    Basic Workflow:
        import bulk_batch_manager as bbm

        connection = bbm.utils.clients.create_bulk_connection()
        manager = bbm.BulkBatchManager(connection)
        manager.on_job_created(bbm.utils.registry.get_registry().record_job)

        result = manager.upsert(
            'Account',
            [{'Id': '001x', 'Website': 'abc.com'}],
            external_field='Id',
            get_response=True,
        )
        for row in result['batches'][0]['response']:
            print(row['id'], row['success'])

        result = manager.query('Account', "SELECT Id, Name FROM Account")
        for record in result['batches'][0]['response']:
            print(record)

    CLI Usage:
        $ bulkbm upsert Account ./accounts.csv --external-field Id --output results.csv
        $ bulkbm query Account "SELECT Id FROM Account" --output accounts.jsonl
        $ bulkbm list-jobs --pending

Environment Setup:
    Required environment variables:
    - BULK_INSTANCE_URL (service host, e.g. https://na1.example.com)
    - BULK_SESSION_ID (authenticated session id)
    Optional:
    - BULK_API_VERSION (defaults to 32.0)

    These can be set via .env or .env.local files in the current directory.
"""

__version__ = "0.1.0"
__author__ = "Alvar"

# Load environment on package import
from .core.utils.environment import setup_environment
setup_environment()

from . import core
bulk = core.bulk
utils = core.utils
BulkBatchManager = core.BulkBatchManager
Job = core.Job

__all__ = [
    '__version__',
    '__author__',
    'bulk',              # bbm.bulk.*
    'utils',             # bbm.utils.*
    'BulkBatchManager',  # bbm.BulkBatchManager()
    'Job',               # bbm.Job()
]

# Clean up namespace
del setup_environment, core
